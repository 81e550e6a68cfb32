from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from accounts.models import ParentStudentRelation
from notifications.models import Notification
from tenants.models import School, SchoolMembership

from .models import Conversation, ConversationParticipant
from .services import ContactNotAllowed, MessagingError, MessagingService, NotAParticipant, make_preview

User = get_user_model()


class PreviewTests(SimpleTestCase):

    def test_short_body_kept(self):
        self.assertEqual(make_preview('Bonjour  Madame\n'), 'Bonjour Madame')

    def test_long_body_truncated(self):
        preview = make_preview('a' * 80)
        self.assertEqual(len(preview), 53)
        self.assertTrue(preview.endswith('...'))


class MessagingTestMixin:

    def setUp(self):
        self.director = User.objects.create_user(email='dir@joss.cm', password='pass', role='director',
                                                 first_name='Alice', last_name='Biya')
        self.teacher = User.objects.create_user(email='prof@joss.cm', password='pass', role='teacher',
                                                first_name='Jean', last_name='Mbarga')
        self.parent = User.objects.create_user(email='maman@joss.cm', password='pass', role='parent',
                                               first_name='Awa', last_name='Fotso')
        self.lonely_parent = User.objects.create_user(email='papa@joss.cm', password='pass', role='parent',
                                                      first_name='Paul', last_name='Nana')
        self.student = User.objects.create_user(email='eleve@joss.cm', password='pass', role='student',
                                                first_name='Kevin', last_name='Fotso')
        self.school = School.objects.create(slug='lycee-joss', name='Lycée Joss', owner=self.director)
        for user, role in ((self.director, 'director'), (self.teacher, 'teacher'), (self.parent, 'parent'),
                           (self.lonely_parent, 'parent'), (self.student, 'student')):
            SchoolMembership.objects.create(school=self.school, user=user, role=role)
        ParentStudentRelation.objects.create(parent=self.parent, student=self.student, relationship='mother')

        self.other_teacher = User.objects.create_user(email='prof@vogt.cm', password='pass', role='teacher')
        self.other_school = School.objects.create(slug='college-vogt', name='Collège Vogt')
        SchoolMembership.objects.create(school=self.other_school, user=self.other_teacher, role='teacher')

    def open(self, **kwargs):
        conversation, _ = MessagingService.start_conversation(
            self.school, self.parent, self.teacher, student=self.student, **kwargs
        )
        return conversation


class ContactTests(MessagingTestMixin, TestCase):

    def test_parent_reaches_staff_about_children(self):
        contacts = MessagingService.contacts_for(self.parent, self.school)
        self.assertEqual([c['user'] for c in contacts], [self.director, self.teacher])
        self.assertEqual(contacts[1]['role'], 'teacher')
        self.assertEqual(contacts[1]['students'], [self.student])

    def test_parent_without_child_in_school(self):
        self.assertEqual(MessagingService.contacts_for(self.lonely_parent, self.school), [])

    def test_teacher_reaches_staff_and_parents(self):
        contacts = MessagingService.contacts_for(self.teacher, self.school)
        by_user = {c['user']: c for c in contacts}
        self.assertEqual(set(by_user), {self.director, self.parent})
        self.assertEqual(by_user[self.parent]['students'], [self.student])

    def test_student_reaches_staff_only(self):
        contacts = MessagingService.contacts_for(self.student, self.school)
        self.assertEqual({c['user'] for c in contacts}, {self.director, self.teacher})

    def test_inactive_membership_removes_contact(self):
        SchoolMembership.objects.filter(user=self.teacher).update(is_active=False)
        contacts = MessagingService.contacts_for(self.parent, self.school)
        self.assertEqual([c['user'] for c in contacts], [self.director])


class ConversationServiceTests(MessagingTestMixin, TestCase):

    def test_conversation_is_reused(self):
        first, created = MessagingService.start_conversation(
            self.school, self.parent, self.teacher, student=self.student, subject='Devoirs'
        )
        self.assertTrue(created)
        again, created = MessagingService.start_conversation(
            self.school, self.teacher, self.parent, student=self.student
        )
        self.assertFalse(created)
        self.assertEqual(again, first)
        self.assertEqual(
            dict(first.participants.values_list('user_id', 'role')),
            {self.parent.id: 'parent', self.teacher.id: 'teacher'},
        )

    def test_other_school_unreachable(self):
        with self.assertRaises(ContactNotAllowed):
            MessagingService.start_conversation(self.school, self.parent, self.other_teacher)

    def test_cannot_write_to_self(self):
        with self.assertRaises(MessagingError):
            MessagingService.start_conversation(self.school, self.teacher, self.teacher)

    def test_student_must_be_own_child(self):
        stranger = User.objects.create_user(email='autre@joss.cm', password='pass', role='student')
        SchoolMembership.objects.create(school=self.school, user=stranger, role='student')
        with self.assertRaises(MessagingError):
            MessagingService.start_conversation(self.school, self.parent, self.teacher, student=stranger)

    def test_first_unread_message_notifies_once(self):
        conversation = self.open()
        MessagingService.send_message(conversation, self.parent, 'Bonjour Monsieur Mbarga')
        MessagingService.send_message(conversation, self.parent, 'Kevin sera absent demain.')

        teacher_row = ConversationParticipant.objects.get(conversation=conversation, user=self.teacher)
        parent_row = ConversationParticipant.objects.get(conversation=conversation, user=self.parent)
        self.assertEqual(teacher_row.unread_count, 2)
        self.assertEqual(parent_row.unread_count, 0)
        self.assertEqual(MessagingService.unread_count(self.teacher), 2)

        notifications = Notification.objects.filter(user=self.teacher, notification_type='message')
        self.assertEqual(notifications.count(), 1)
        self.assertEqual(notifications.get().metadata['conversation_id'], conversation.id)

        conversation.refresh_from_db()
        self.assertEqual(conversation.last_message_preview, 'Kevin sera absent demain.')

        self.assertEqual(MessagingService.mark_read(conversation, self.teacher), 2)
        self.assertEqual(MessagingService.unread_count(self.teacher, self.school), 0)
        self.assertFalse(notifications.filter(is_read=False).exists())

        MessagingService.send_message(conversation, self.parent, 'Merci')
        self.assertEqual(notifications.count(), 2)

    def test_empty_message_rejected(self):
        with self.assertRaises(MessagingError):
            MessagingService.send_message(self.open(), self.parent, '   ')

    def test_attachment_without_text(self):
        message = MessagingService.send_message(
            self.open(), self.parent, '', attachment_url='https://cdn.educafric.com/certificat.pdf',
            attachment_name='certificat.pdf',
        )
        self.assertEqual(message.message_type, 'file')
        self.assertEqual(message.conversation.last_message_preview, 'certificat.pdf')

    def test_non_participant_cannot_post(self):
        with self.assertRaises(NotAParticipant):
            MessagingService.send_message(self.open(), self.director, 'Bonjour')

    def test_archived_conversation_is_read_only(self):
        conversation = self.open()
        conversation.status = Conversation.Status.ARCHIVED
        conversation.save()
        with self.assertRaises(MessagingError):
            MessagingService.send_message(conversation, self.teacher, 'Bonjour')

    def test_reply_must_belong_to_conversation(self):
        conversation = self.open()
        first = MessagingService.send_message(conversation, self.parent, 'Question')
        reply = MessagingService.send_message(conversation, self.teacher, 'Réponse', reply_to=first.id)
        self.assertEqual(reply.reply_to, first)
        with self.assertRaises(MessagingError):
            MessagingService.send_message(conversation, self.teacher, 'Réponse', reply_to=first.id + 100)

    def test_messages_page(self):
        conversation = self.open()
        sent = [MessagingService.send_message(conversation, self.parent, f'Message {i}') for i in range(5)]
        page, has_more = MessagingService.messages_for(conversation, limit=3)
        self.assertEqual(page, sent[2:])
        self.assertTrue(has_more)
        page, has_more = MessagingService.messages_for(conversation, limit=3, before=sent[2].id)
        self.assertEqual(page, sent[:2])
        self.assertFalse(has_more)


class MessagingAPITests(MessagingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def test_conversation_flow(self):
        self.client.force_authenticate(self.parent)
        response = self.client.post('/api/messaging/conversations/', {
            'participant': self.teacher.id, 'student': self.student.id,
            'subject': 'Absence', 'message': 'Bonjour, Kevin est malade.',
        }, format='json')
        self.assertEqual(response.status_code, 201, response.data)
        conversation_id = response.data['id']
        self.assertEqual(response.data['other_participant']['id'], self.teacher.id)
        self.assertEqual(response.data['student_name'], 'Kevin Fotso')
        self.assertEqual(response.data['unread_count'], 0)

        response = self.client.post('/api/messaging/conversations/', {
            'participant': self.teacher.id, 'student': self.student.id,
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['id'], conversation_id)

        self.client.force_authenticate(self.teacher)
        self.assertEqual(self.client.get('/api/messaging/unread-count/').data['unread_count'], 1)
        response = self.client.get('/api/messaging/conversations/')
        self.assertEqual([(c['id'], c['unread_count']) for c in response.data], [(conversation_id, 1)])

        response = self.client.get(f'/api/messaging/conversations/{conversation_id}/messages/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([m['body'] for m in response.data['messages']], ['Bonjour, Kevin est malade.'])
        self.assertFalse(response.data['has_more'])
        self.assertEqual(self.client.get('/api/messaging/unread-count/').data['unread_count'], 0)

        response = self.client.post(f'/api/messaging/conversations/{conversation_id}/messages/',
                                    {'body': 'Bon rétablissement.'}, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['sender_name'], 'Jean Mbarga')

        self.client.force_authenticate(self.parent)
        response = self.client.post(f'/api/messaging/conversations/{conversation_id}/read/')
        self.assertEqual(response.data, {'cleared': 1})

    def test_empty_message_is_400(self):
        conversation = self.open()
        self.client.force_authenticate(self.parent)
        response = self.client.post(f'/api/messaging/conversations/{conversation.id}/messages/',
                                    {'body': '  '}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_bad_page_params(self):
        conversation = self.open()
        self.client.force_authenticate(self.parent)
        response = self.client.get(f'/api/messaging/conversations/{conversation.id}/messages/', {'limit': 'tous'})
        self.assertEqual(response.status_code, 400)

    def test_outsider_sees_404(self):
        conversation = self.open()
        self.client.force_authenticate(self.director)
        self.assertEqual(self.client.get(f'/api/messaging/conversations/{conversation.id}/messages/').status_code, 404)
        self.assertEqual(self.client.get('/api/messaging/conversations/').data, [])

    def test_unreachable_participant_is_403(self):
        self.client.force_authenticate(self.parent)
        response = self.client.post('/api/messaging/conversations/', {'participant': self.lonely_parent.id},
                                    format='json')
        self.assertEqual(response.status_code, 403)

    def test_contacts(self):
        self.client.force_authenticate(self.parent)
        response = self.client.get('/api/messaging/contacts/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([c['name'] for c in response.data], ['Alice Biya', 'Jean Mbarga'])
        self.assertEqual(response.data[1]['students'], [{'id': self.student.id, 'name': 'Kevin Fotso'}])

    def test_requires_school_membership(self):
        newcomer = User.objects.create_user(email='new@joss.cm', password='pass', role='parent')
        self.client.force_authenticate(newcomer)
        self.assertEqual(self.client.get('/api/messaging/contacts/').status_code, 403)
        self.assertEqual(self.client.get('/api/messaging/conversations/').status_code, 403)
