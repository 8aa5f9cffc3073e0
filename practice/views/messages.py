"""
Messaging endpoints: conversations, internal notes, emails sent from a
conversation, broadcasts and reusable message templates.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from practice.models import Consultation, Conversation, MessageTemplate, Patient
from practice.permissions import IsPractitioner
from practice.responses import error, ok
from practice.serializers.messages import (
    BroadcastSerializer,
    ConversationCreateSerializer,
    ConversationListQuerySerializer,
    InternalMessageSerializer,
    MessageTemplateSerializer,
    SendEmailSerializer,
)
from practice.services import messaging as svc
from practice.services.practitioners import get_practitioner

CONVERSATION_NOT_FOUND = 'Conversation non trouvée'
TEMPLATE_NOT_FOUND = 'Modèle non trouvé'


def _load(request, conversation_id):
    practitioner = get_practitioner(request.user)
    return practitioner, svc.get_conversation(practitioner, conversation_id)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def conversations(request):
    practitioner = get_practitioner(request.user)
    if request.method == 'GET':
        q = ConversationListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = svc.list_conversations(practitioner, archived=q.validated_data.get('archived'),
                                    search=q.validated_data.get('search') or '')
        return ok([svc.serialize_conversation(c) for c in qs])

    s = ConversationCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        conversation = svc.create_conversation(practitioner, s.validated_data)
    except Patient.DoesNotExist:
        return error('Patient non trouvé', status=404)
    return ok(svc.serialize_conversation(conversation, messages=True), status=201)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def conversation_detail(request, conversation_id):
    try:
        _, conversation = _load(request, conversation_id)
    except Conversation.DoesNotExist:
        return error(CONVERSATION_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)

    if request.method == 'DELETE':
        svc.delete_conversation(conversation)
        return ok({'success': True})
    return ok(svc.serialize_conversation(conversation, messages=True))


def _conversation_action(request, conversation_id, action):
    try:
        _, conversation = _load(request, conversation_id)
    except Conversation.DoesNotExist:
        return error(CONVERSATION_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)
    action(conversation)
    return ok(svc.serialize_conversation(conversation))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def conversation_read(request, conversation_id):
    return _conversation_action(request, conversation_id, svc.mark_read)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def conversation_archive(request, conversation_id):
    return _conversation_action(request, conversation_id, lambda c: svc.set_archived(c, True))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def conversation_unarchive(request, conversation_id):
    return _conversation_action(request, conversation_id, lambda c: svc.set_archived(c, False))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def conversation_messages(request, conversation_id):
    try:
        practitioner, conversation = _load(request, conversation_id)
    except Conversation.DoesNotExist:
        return error(CONVERSATION_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)

    s = InternalMessageSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    consultation_id = s.validated_data.get('consultation_id')
    if consultation_id and not Consultation.objects.filter(id=consultation_id,
                                                           patient__practitioner=practitioner).exists():
        return error('Consultation non trouvée', status=404)
    message = svc.add_internal_message(conversation, s.validated_data['content'], consultation_id)
    return ok(svc.serialize_message(message), status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def send_email(request):
    s = SendEmailSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        practitioner, conversation = _load(request, s.validated_data['conversationId'])
    except Conversation.DoesNotExist:
        return error(CONVERSATION_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)
    try:
        message = svc.send_conversation_email(practitioner, conversation, s.validated_data['content'],
                                              s.validated_data.get('subject') or '')
    except ValueError as e:
        return error(str(e), status=400)
    return ok(svc.serialize_message(message), status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def broadcast(request):
    s = BroadcastSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        result = svc.broadcast_email(get_practitioner(request.user), s.validated_data['content'],
                                     s.validated_data.get('subject') or '')
    except ValueError as e:
        return error(str(e), status=400)
    return ok(result)

broadcast.cls.throttle_scope = 'broadcast'


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def message_templates(request):
    practitioner = get_practitioner(request.user)
    if request.method == 'GET':
        qs = MessageTemplate.objects.filter(practitioner=practitioner).order_by('-use_count', 'name')
        return ok([svc.serialize_message_template(t) for t in qs])

    s = MessageTemplateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    template = MessageTemplate.objects.create(practitioner=practitioner, **s.validated_data)
    return ok(svc.serialize_message_template(template), status=201)


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def message_template_detail(request, template_id):
    try:
        template = svc.get_message_template(get_practitioner(request.user), template_id)
    except MessageTemplate.DoesNotExist:
        return error(TEMPLATE_NOT_FOUND, status=404)

    if request.method == 'GET':
        return ok(svc.serialize_message_template(template))
    if request.method == 'DELETE':
        template.delete()
        return ok({'success': True})

    s = MessageTemplateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    for k, v in s.validated_data.items():
        setattr(template, k, v)
    template.save()
    return ok(svc.serialize_message_template(template))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def message_template_use(request, template_id):
    try:
        template = svc.get_message_template(get_practitioner(request.user), template_id)
    except MessageTemplate.DoesNotExist:
        return error(TEMPLATE_NOT_FOUND, status=404)
    svc.use_message_template(template)
    return ok(svc.serialize_message_template(template))
