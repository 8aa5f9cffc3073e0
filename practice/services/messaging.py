"""
Conversations with patients (or external correspondents) and the
messages exchanged in them: internal notes, outgoing emails and the
incoming emails picked up by the inbox sync.
"""
import logging

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from practice.exceptions import EmailDeliveryError, EmailNotConfigured
from practice.models import Conversation, Message, MessageTemplate, Patient, Practitioner
from practice.services.audit import log_action
from practice.services.mailer import OutgoingEmail, SendResult, send_email, verified_settings
from practice.services.templates import message_html

logger = logging.getLogger(__name__)


def serialize_message(m: Message) -> dict:
    return {
        'id': str(m.id),
        'conversation_id': str(m.conversation_id),
        'content': m.content,
        'direction': m.direction,
        'channel': m.channel,
        'status': m.status,
        'consultation_id': str(m.consultation_id) if m.consultation_id else None,
        'sent_at': m.sent_at.isoformat() if m.sent_at else None,
        'delivered_at': m.delivered_at.isoformat() if m.delivered_at else None,
        'read_at': m.read_at.isoformat() if m.read_at else None,
        'email_subject': m.email_subject or None,
        'email_message_id': m.email_message_id or None,
        'from_email': m.from_email or None,
        'to_email': m.to_email or None,
        'created_at': m.created_at.isoformat(),
    }


def serialize_conversation(c: Conversation, *, messages: bool = False) -> dict:
    data = {
        'id': str(c.id),
        'patient_id': str(c.patient_id) if c.patient_id else None,
        'name': c.counterpart_name,
        'email': c.counterpart_email or None,
        'subject': c.subject or None,
        'last_message_at': c.last_message_at.isoformat() if c.last_message_at else None,
        'unread_count': c.unread_count,
        'is_archived': c.is_archived,
        'external_email': c.external_email or None,
        'external_name': c.external_name or None,
        'created_at': c.created_at.isoformat(),
    }
    if messages:
        data['messages'] = [serialize_message(m) for m in c.messages.order_by('created_at')]
    else:
        last = c.messages.order_by('-created_at').first()
        data['last_message'] = serialize_message(last) if last else None
    return data


def get_conversation(practitioner: Practitioner, conversation_id) -> Conversation:
    """Raises ``Conversation.DoesNotExist`` or ``PermissionError``."""
    conversation = Conversation.objects.select_related('patient').get(id=conversation_id)
    if conversation.practitioner_id != practitioner.id:
        raise PermissionError('Non autorisé')
    return conversation


def list_conversations(practitioner: Practitioner, *, archived: bool = False, search: str = ''):
    qs = Conversation.objects.select_related('patient').filter(practitioner=practitioner, is_archived=archived)
    if search:
        qs = qs.filter(
            Q(patient__first_name__icontains=search)
            | Q(patient__last_name__icontains=search)
            | Q(external_email__icontains=search)
            | Q(external_name__icontains=search)
            | Q(subject__icontains=search)
        )
    return qs.order_by(F('last_message_at').desc(nulls_last=True), '-created_at')


def patient_conversation(practitioner: Practitioner, patient: Patient, *, subject: str = '') -> Conversation:
    conversation = (Conversation.objects.filter(practitioner=practitioner, patient=patient)
                    .order_by('created_at').first())
    if conversation is None:
        conversation = Conversation.objects.create(
            practitioner=practitioner, patient=patient,
            subject=subject or f"Conversation avec {patient.full_name}",
        )
    return conversation


def external_conversation(practitioner: Practitioner, email: str, name: str = '', *, subject: str = '') -> Conversation:
    email = email.strip().lower()
    conversation = (Conversation.objects.filter(practitioner=practitioner, patient__isnull=True,
                                                external_email__iexact=email)
                    .order_by('created_at').first())
    if conversation is None:
        name = name or email.split('@', 1)[0]
        conversation = Conversation.objects.create(
            practitioner=practitioner, external_email=email, external_name=name,
            subject=subject or f"Conversation avec {name}",
        )
    return conversation


def create_conversation(practitioner: Practitioner, data: dict) -> Conversation:
    """Patient conversations are reused; raises ``Patient.DoesNotExist`` for foreign ids."""
    if data.get('patient_id'):
        patient = Patient.objects.get(id=data['patient_id'], practitioner=practitioner)
        return patient_conversation(practitioner, patient, subject=data.get('subject') or '')
    return external_conversation(practitioner, data['external_email'], data.get('external_name') or '',
                                 subject=data.get('subject') or '')


def mark_read(conversation: Conversation) -> Conversation:
    now = timezone.now()
    with transaction.atomic():
        conversation.messages.filter(direction='incoming', read_at__isnull=True).update(
            read_at=now, status='read', updated_at=now,
        )
        conversation.unread_count = 0
        conversation.save(update_fields=['unread_count', 'updated_at'])
    return conversation


def set_archived(conversation: Conversation, archived: bool) -> Conversation:
    conversation.is_archived = archived
    conversation.save(update_fields=['is_archived', 'updated_at'])
    return conversation


def delete_conversation(conversation: Conversation) -> None:
    with transaction.atomic():
        conversation.messages.all().delete()
        conversation.delete()


def _touch(conversation: Conversation, when=None) -> None:
    conversation.last_message_at = when or timezone.now()
    conversation.save(update_fields=['last_message_at', 'updated_at'])


def add_internal_message(conversation: Conversation, content: str, consultation_id=None) -> Message:
    now = timezone.now()
    message = Message.objects.create(
        conversation=conversation,
        content=content,
        direction='outgoing',
        channel='internal',
        status='sent',
        consultation_id=consultation_id,
        sent_at=now,
    )
    _touch(conversation, now)
    return message


def record_outgoing_email(conversation: Conversation, *, content: str, subject: str, to: str,
                          result: SendResult, consultation=None) -> Message:
    now = timezone.now()
    message = Message.objects.create(
        conversation=conversation,
        content=content,
        direction='outgoing',
        channel='email',
        status='sent',
        consultation=consultation,
        sent_at=now,
        email_subject=subject[:255],
        email_message_id=result.message_id,
        from_email=result.from_email,
        to_email=to,
    )
    _touch(conversation, now)
    return message


def record_incoming_email(conversation: Conversation, *, content: str, subject: str, from_email: str,
                          to_email: str, external_id: str, received_at=None) -> Message:
    now = timezone.now()
    received_at = received_at or now
    message = Message.objects.create(
        conversation=conversation,
        content=content,
        direction='incoming',
        channel='email',
        status='delivered',
        sent_at=received_at,
        delivered_at=now,
        email_subject=subject[:255],
        external_email_id=external_id[:255],
        from_email=from_email,
        to_email=to_email,
    )
    Conversation.objects.filter(id=conversation.id).update(
        unread_count=F('unread_count') + 1, last_message_at=received_at, updated_at=now,
    )
    return message


def default_subject(practitioner: Practitioner) -> str:
    return f"Message de {practitioner.display_name}"


def send_conversation_email(practitioner: Practitioner, conversation: Conversation, content: str,
                            subject: str = '') -> Message:
    """Email the conversation's counterpart and record the outgoing message."""
    to = conversation.counterpart_email
    if not to:
        raise ValueError("Ce destinataire n'a pas d'adresse email")
    subject = subject or default_subject(practitioner)
    result = send_email(practitioner, OutgoingEmail(
        to=to, subject=subject, text=content, html=message_html(practitioner, content),
    ))
    message = record_outgoing_email(conversation, content=content, subject=subject, to=to, result=result)
    log_action(practitioner=practitioner, action='email_message', object_type='conversation',
               object_id=conversation.id, detail={'to': to, 'messageId': result.message_id})
    return message


def broadcast_email(practitioner: Practitioner, content: str, subject: str = '') -> dict:
    """Send the same message to every active patient with an email address.

    Each email is personalised with the patient's first name.  One
    failed recipient does not stop the others.
    """
    cfg = verified_settings(practitioner)
    if cfg is None:
        raise EmailNotConfigured()
    patients = list(Patient.objects.filter(practitioner=practitioner, archived_at__isnull=True)
                    .exclude(email='').order_by('last_name', 'first_name'))
    if not patients:
        raise ValueError('Aucun patient avec une adresse email trouvé')

    subject = subject or default_subject(practitioner)
    sent = 0
    errors = []
    for patient in patients:
        text = f"Bonjour {patient.first_name},\n\n{content}"
        try:
            result = send_email(practitioner, OutgoingEmail(
                to=patient.email, subject=subject, text=text, html=message_html(practitioner, text),
            ), cfg=cfg)
        except EmailDeliveryError as e:
            logger.warning("Broadcast to patient %s failed: %s", patient.id, e)
            errors.append(f"{patient.full_name}: {e.detail}")
            continue
        conversation = patient_conversation(practitioner, patient, subject='Diffusion')
        record_outgoing_email(conversation, content=content, subject=subject, to=patient.email, result=result)
        sent += 1

    log_action(practitioner=practitioner, action='email_broadcast', object_type='practitioner',
               object_id=practitioner.id, detail={'sent': sent, 'total': len(patients)})
    return {'success': True, 'sent': sent, 'total': len(patients), 'errors': errors}


def serialize_message_template(t: MessageTemplate) -> dict:
    return {
        'id': str(t.id),
        'name': t.name,
        'content': t.content,
        'category': t.category or None,
        'use_count': t.use_count,
        'created_at': t.created_at.isoformat(),
    }


def get_message_template(practitioner: Practitioner, template_id) -> MessageTemplate:
    return MessageTemplate.objects.get(id=template_id, practitioner=practitioner)


def use_message_template(template: MessageTemplate) -> MessageTemplate:
    MessageTemplate.objects.filter(id=template.id).update(use_count=F('use_count') + 1)
    template.refresh_from_db(fields=['use_count'])
    return template
