"""
Messaging between members of a school.

Who may write to whom is decided from the school roster:

- parents reach the staff (teachers, direction) of the schools where one of
  their children is enrolled, about those children;
- staff reach each other and the parents of the school's students;
- students reach the staff of their school.

Each participant carries an unread counter, incremented when someone else
posts and reset by mark_read(). A notification is sent only for the first
unread message of a conversation, not for every message.
"""
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from accounts.models import ParentStudentRelation
from notifications.models import Notification, NotificationType
from notifications.services import NotificationService
from tenants.models import SchoolMembership

from .models import PREVIEW_LENGTH, Conversation, ConversationParticipant, Message

logger = logging.getLogger(__name__)

Role = SchoolMembership.Role
STAFF_ROLES = (Role.DIRECTOR, Role.ADMIN, Role.TEACHER)

DEFAULT_PAGE_SIZE = 50


class MessagingError(Exception):
    pass


class ContactNotAllowed(MessagingError):
    pass


class NotAParticipant(MessagingError):
    pass


def make_preview(body):
    body = ' '.join(body.split())
    if len(body) > PREVIEW_LENGTH:
        return body[:PREVIEW_LENGTH] + '...'
    return body


class MessagingService:

    # ───────────────────────── contacts ─────────────────────────

    @staticmethod
    def school_role(user, school):
        membership = SchoolMembership.objects.filter(school=school, user=user, is_active=True).first()
        return membership.role if membership else None

    @staticmethod
    def _school_students(school):
        return SchoolMembership.objects.filter(
            school=school, role=Role.STUDENT, is_active=True,
        ).values('user_id')

    @staticmethod
    def _staff(school, exclude=None):
        qs = SchoolMembership.objects.filter(
            school=school, role__in=STAFF_ROLES, is_active=True, user__is_active=True,
        ).select_related('user')
        if exclude is not None:
            qs = qs.exclude(user=exclude)
        return list(qs)

    @staticmethod
    def children_in_school(parent, school):
        return list(
            parent.children()
            .filter(id__in=MessagingService._school_students(school))
            .order_by('last_name', 'first_name')
        )

    @staticmethod
    def contacts_for(user, school):
        """
        People ``user`` may write to inside ``school``.

        Returns a list of dicts: ``user``, ``role`` (their role in the school)
        and ``students`` (the children the conversation can be about).
        """
        role = MessagingService.school_role(user, school)
        if role is None:
            return []

        contacts = []
        if role == Role.PARENT:
            children = MessagingService.children_in_school(user, school)
            if not children:
                return []
            for membership in MessagingService._staff(school, exclude=user):
                contacts.append({'user': membership.user, 'role': membership.role, 'students': children})
        else:
            for membership in MessagingService._staff(school, exclude=user):
                contacts.append({'user': membership.user, 'role': membership.role, 'students': []})

        if role in STAFF_ROLES:
            parent_ids = SchoolMembership.objects.filter(
                school=school, role=Role.PARENT, is_active=True,
            ).values('user_id')
            relations = ParentStudentRelation.objects.filter(
                student_id__in=MessagingService._school_students(school),
                parent_id__in=parent_ids,
                parent__is_active=True,
            ).select_related('parent', 'student').order_by('student__last_name', 'student__first_name')

            by_parent = {}
            for relation in relations:
                entry = by_parent.setdefault(
                    relation.parent_id, {'user': relation.parent, 'role': Role.PARENT, 'students': []}
                )
                entry['students'].append(relation.student)
            contacts.extend(by_parent.values())

        contacts.sort(key=lambda c: (c['user'].last_name.lower(), c['user'].first_name.lower(), c['user'].id))
        return contacts

    @staticmethod
    def find_contact(user, target, school):
        for contact in MessagingService.contacts_for(user, school):
            if contact['user'].id == target.id:
                return contact
        return None

    # ───────────────────────── conversations ─────────────────────────

    @staticmethod
    def conversations_for(user, school):
        return (
            Conversation.objects.for_school(school)
            .filter(participants__user=user)
            .select_related('student')
            .prefetch_related('participants__user')
            .distinct()
        )

    @staticmethod
    def start_conversation(school, user, target, student=None, subject='', message=None):
        """
        Open a conversation with ``target``, or return the existing one.

        Two members of a school share a single conversation per student they
        talk about. Returns (conversation, created).
        """
        if target.id == user.id:
            raise MessagingError('Vous ne pouvez pas vous écrire à vous-même.')

        contact = MessagingService.find_contact(user, target, school)
        if contact is None:
            raise ContactNotAllowed('Ce destinataire n\'est pas joignable depuis votre établissement.')

        user_role = MessagingService.school_role(user, school)
        if student is not None:
            if user_role == Role.PARENT:
                allowed = MessagingService.children_in_school(user, school)
            elif contact['role'] == Role.PARENT:
                allowed = contact['students']
            else:
                allowed = None
            if allowed is not None and student.id not in {s.id for s in allowed}:
                raise MessagingError('Élève non rattaché à cette conversation.')
            if allowed is None and not SchoolMembership.objects.filter(
                school=school, user=student, role=Role.STUDENT, is_active=True,
            ).exists():
                raise MessagingError('Élève inconnu dans cet établissement.')

        existing = (
            Conversation.objects.for_school(school)
            .filter(participants__user=user)
            .filter(participants__user=target)
            .filter(student=student)
            .first()
        )
        if existing is not None:
            created = False
            conversation = existing
        else:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    school=school,
                    subject=subject or '',
                    student=student,
                    created_by=user,
                )
                ConversationParticipant.objects.bulk_create([
                    ConversationParticipant(conversation=conversation, user=user, role=user_role or ''),
                    ConversationParticipant(conversation=conversation, user=target, role=contact['role']),
                ])
            created = True
            logger.info(f'Conversation {conversation.id} opened in school {school.slug} '
                        f'between users {user.id} and {target.id}')

        if message:
            MessagingService.send_message(conversation, user, message)
        return conversation, created

    # ───────────────────────── messages ─────────────────────────

    @staticmethod
    def messages_for(conversation, limit=DEFAULT_PAGE_SIZE, before=None):
        """Latest ``limit`` messages, oldest first. Returns (messages, has_more)."""
        qs = conversation.messages.select_related('sender')
        if before:
            qs = qs.filter(id__lt=before)
        page = list(qs.order_by('-created_at', '-id')[:limit])
        page.reverse()
        return page, len(page) == limit

    @staticmethod
    def send_message(conversation, sender, body, attachment_url='', attachment_name='', reply_to=None):
        if conversation.participant_for(sender) is None:
            raise NotAParticipant('Vous ne participez pas à cette conversation.')
        if conversation.status == Conversation.Status.ARCHIVED:
            raise MessagingError('Cette conversation est archivée.')

        body = (body or '').strip()
        if not body and not attachment_url:
            raise MessagingError('Le message est vide.')

        parent_message = None
        if reply_to is not None:
            parent_message = conversation.messages.filter(pk=reply_to).first()
            if parent_message is None:
                raise MessagingError('Message cité introuvable dans cette conversation.')

        preview = make_preview(body or attachment_name or attachment_url)
        with transaction.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                body=body,
                message_type=Message.MessageType.FILE if attachment_url else Message.MessageType.TEXT,
                attachment_url=attachment_url or '',
                attachment_name=attachment_name or '',
                reply_to=parent_message,
            )
            now = message.created_at
            Conversation.objects.filter(pk=conversation.pk).update(
                last_message_at=now, last_message_preview=preview, updated_at=now,
            )

            others = conversation.participants.exclude(user=sender)
            first_unread = list(others.filter(unread_count=0).select_related('user'))
            others.update(unread_count=F('unread_count') + 1)
            conversation.participants.filter(user=sender).update(last_read_at=now)

        conversation.last_message_at = now
        conversation.last_message_preview = preview

        sender_name = sender.get_full_name()
        for participant in first_unread:
            NotificationService.notify(
                participant.user,
                title=f'Nouveau message de {sender_name}',
                message=preview,
                notification_type=NotificationType.MESSAGE,
                action_url=f'{settings.FRONTEND_URL}/messages/{conversation.id}',
                metadata={'conversation_id': conversation.id, 'message_id': message.id},
                school=conversation.school,
            )

        logger.debug(f'Message {message.id} posted in conversation {conversation.id} by user {sender.id}')
        return message

    @staticmethod
    def mark_read(conversation, user):
        """Reset the user's unread counter. Returns how many messages were unread."""
        participant = conversation.participant_for(user)
        if participant is None:
            raise NotAParticipant('Vous ne participez pas à cette conversation.')

        now = timezone.now()
        cleared = participant.unread_count
        participant.unread_count = 0
        participant.last_read_at = now
        participant.save(update_fields=['unread_count', 'last_read_at'])

        if cleared:
            Notification.objects.filter(
                user=user,
                notification_type=NotificationType.MESSAGE,
                is_read=False,
                metadata__conversation_id=conversation.id,
            ).update(is_read=True, read_at=now)
        return cleared

    @staticmethod
    def unread_count(user, school=None):
        qs = ConversationParticipant.objects.filter(user=user)
        if school is not None:
            qs = qs.filter(conversation__school=school)
        return qs.aggregate(total=Sum('unread_count'))['total'] or 0
