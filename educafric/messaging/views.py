"""
Messaging API.

    GET  /api/messaging/conversations/
    POST /api/messaging/conversations/                     {participant, student, subject, message}
    GET  /api/messaging/conversations/{id}/
    GET  /api/messaging/conversations/{id}/messages/?limit=&before=
    POST /api/messaging/conversations/{id}/messages/       {body, attachment_url, attachment_name, reply_to}
    POST /api/messaging/conversations/{id}/read/
    GET  /api/messaging/contacts/
    GET  /api/messaging/unread-count/

Reading the messages of a conversation marks it read for the caller.
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from tenants.mixins import SchoolAPIViewMixin, SchoolViewSetMixin
from tenants.permissions import IsSchoolMember

from .models import Conversation
from .serializers import (
    ContactSerializer,
    ConversationCreateSerializer,
    ConversationSerializer,
    MessageCreateSerializer,
    MessageSerializer,
)
from .services import DEFAULT_PAGE_SIZE, ContactNotAllowed, MessagingError, MessagingService

MAX_PAGE_SIZE = 200


class ConversationViewSet(SchoolViewSetMixin,
                          mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          viewsets.GenericViewSet):
    queryset = Conversation.objects.all()
    serializer_class = ConversationSerializer
    permission_classes = [IsAuthenticated, IsSchoolMember]

    def get_queryset(self):
        return MessagingService.conversations_for(self.request.user, self.get_school())

    def create(self, request):
        serializer = ConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            conversation, created = MessagingService.start_conversation(
                self.get_school(),
                request.user,
                data['participant'],
                student=data.get('student'),
                subject=data['subject'],
                message=data.get('message'),
            )
        except ContactNotAllowed as e:
            return Response({'detail': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except MessagingError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        conversation = self.get_queryset().get(pk=conversation.pk)
        return Response(
            ConversationSerializer(conversation, context=self.get_serializer_context()).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @action(detail=True, methods=['get', 'post'])
    def messages(self, request, pk=None):
        conversation = self.get_object()

        if request.method == 'POST':
            serializer = MessageCreateSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            try:
                message = MessagingService.send_message(conversation, request.user, **serializer.validated_data)
            except MessagingError as e:
                return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
            return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)

        try:
            limit = min(max(int(request.query_params.get('limit', DEFAULT_PAGE_SIZE)), 1), MAX_PAGE_SIZE)
            before = int(request.query_params['before']) if request.query_params.get('before') else None
        except ValueError:
            return Response({'detail': 'Paramètres de pagination invalides.'}, status=status.HTTP_400_BAD_REQUEST)

        messages, has_more = MessagingService.messages_for(conversation, limit=limit, before=before)
        MessagingService.mark_read(conversation, request.user)
        return Response({
            'messages': MessageSerializer(messages, many=True).data,
            'has_more': has_more,
        })

    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        cleared = MessagingService.mark_read(self.get_object(), request.user)
        return Response({'cleared': cleared})


class ContactListView(SchoolAPIViewMixin, APIView):
    permission_classes = [IsAuthenticated, IsSchoolMember]

    def get(self, request):
        contacts = MessagingService.contacts_for(request.user, self.school)
        return Response(ContactSerializer(contacts, many=True).data)


class UnreadCountView(SchoolAPIViewMixin, APIView):
    permission_classes = [IsAuthenticated, IsSchoolMember]

    def get(self, request):
        return Response({'unread_count': MessagingService.unread_count(request.user, self.school)})
