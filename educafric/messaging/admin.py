from django.contrib import admin

from .models import Conversation, ConversationParticipant, Message


class ConversationParticipantInline(admin.TabularInline):
    model = ConversationParticipant
    extra = 0
    raw_id_fields = ('user',)
    readonly_fields = ('unread_count', 'last_read_at', 'joined_at')


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ('id', 'school', 'subject', 'status', 'last_message_at', 'created_at')
    list_filter = ('status',)
    search_fields = ('subject', 'participants__user__email')
    raw_id_fields = ('school', 'student', 'created_by')
    inlines = [ConversationParticipantInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ('conversation', 'sender', 'message_type', 'created_at')
    list_filter = ('message_type',)
    search_fields = ('sender__email', 'body')
    raw_id_fields = ('conversation', 'sender', 'reply_to')
