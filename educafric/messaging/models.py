"""
School messaging: one-to-one conversations between members of a school,
typically a parent and a teacher about a given child.

Conversation            : thread inside a school, optionally about a student
ConversationParticipant : a user in a thread, with their unread counter
Message                 : one message of a thread
"""
from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from tenants.mixins import SchoolManager, SchoolScopedModel

PREVIEW_LENGTH = 50


class Conversation(SchoolScopedModel):

    class Status(models.TextChoices):
        ACTIVE = 'active', _('Active')
        ARCHIVED = 'archived', _('Archivée')

    subject = models.CharField(_('objet'), max_length=200, blank=True, default='')
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
        verbose_name=_('élève concerné'),
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='started_conversations',
    )
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE)
    last_message_at = models.DateTimeField(null=True, blank=True, db_index=True)
    last_message_preview = models.CharField(max_length=PREVIEW_LENGTH + 3, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SchoolManager()

    class Meta:
        verbose_name = _('conversation')
        verbose_name_plural = _('conversations')
        ordering = ['-last_message_at', '-created_at']

    def __str__(self):
        return self.subject or f'Conversation #{self.pk}'

    def participant_for(self, user):
        return self.participants.filter(user=user).first()


class ConversationParticipant(models.Model):
    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name='participants',
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='conversation_memberships',
    )
    role = models.CharField(_('rôle'), max_length=20, blank=True, default='')
    unread_count = models.PositiveIntegerField(default=0)
    last_read_at = models.DateTimeField(null=True, blank=True)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('participant')
        verbose_name_plural = _('participants')
        unique_together = ['conversation', 'user']
        indexes = [
            models.Index(fields=['user', 'unread_count'], name='participant_user_unread_idx'),
        ]

    def __str__(self):
        return f'{self.user} in {self.conversation_id}'


class Message(models.Model):

    class MessageType(models.TextChoices):
        TEXT = 'text', _('Texte')
        FILE = 'file', _('Fichier')

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name='messages',
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='sent_messages',
        verbose_name=_('expéditeur'),
    )
    body = models.TextField(_('message'))
    message_type = models.CharField(max_length=10, choices=MessageType.choices, default=MessageType.TEXT)
    attachment_url = models.URLField(max_length=500, blank=True, default='')
    attachment_name = models.CharField(max_length=255, blank=True, default='')
    reply_to = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='replies',
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _('message')
        verbose_name_plural = _('messages')
        ordering = ['created_at', 'id']

    def __str__(self):
        return f'{self.sender}: {self.body[:50]}'
