import logging
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from practice.formatting import generate_invoice_number
from practice.models import (
    Consultation,
    ConsultationAttachment,
    Invoice,
    Patient,
    Payment,
    Practitioner,
    ScheduledTask,
    SessionType,
)
from practice.services.invoices import serialize_invoice
from practice.services.patients import delete_consultations

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('date_time', 'reason', 'anamnesis', 'examination', 'advice', 'follow_up_7d',
                   'send_post_session_advice')


def get_consultation(practitioner: Practitioner, consultation_id) -> Consultation:
    """Fetch a consultation; raises ``Consultation.DoesNotExist`` or ``PermissionError``."""
    consultation = Consultation.objects.select_related('patient', 'session_type').get(id=consultation_id)
    if consultation.patient.practitioner_id != practitioner.id:
        raise PermissionError('Non autorisé')
    return consultation


def serialize_attachment(a: ConsultationAttachment) -> dict:
    return {
        'id': str(a.id),
        'consultation_id': str(a.consultation_id),
        'filename': a.filename,
        'original_name': a.original_name,
        'mime_type': a.mime_type,
        'file_size': a.file_size,
        'created_at': a.created_at.isoformat(),
    }


def serialize_consultation(c: Consultation, *, extra: bool = False) -> dict:
    data = {
        'id': str(c.id),
        'patient_id': str(c.patient_id),
        'patient_name': c.patient.full_name,
        'session_type_id': str(c.session_type_id) if c.session_type_id else None,
        'session_type_name': c.session_type.name if c.session_type_id else None,
        'date_time': c.date_time.isoformat(),
        'reason': c.reason,
        'follow_up_7d': c.follow_up_7d,
        'follow_up_sent_at': c.follow_up_sent_at.isoformat() if c.follow_up_sent_at else None,
        'send_post_session_advice': c.send_post_session_advice,
        'post_session_advice_sent_at': (
            c.post_session_advice_sent_at.isoformat() if c.post_session_advice_sent_at else None
        ),
        'archived_at': c.archived_at.isoformat() if c.archived_at else None,
    }
    if extra:
        invoice = Invoice.objects.filter(consultation=c).prefetch_related('payments').first()
        data.update({
            'anamnesis': c.anamnesis or None,
            'examination': c.examination or None,
            'advice': c.advice or None,
            'invoice': serialize_invoice(invoice) if invoice else None,
            'attachments': [serialize_attachment(a) for a in c.attachments.order_by('created_at')],
        })
    return data


def list_consultations(practitioner: Practitioner, *, patient_id=None, date_from=None, date_to=None,
                       include_archived=False):
    qs = Consultation.objects.select_related('patient', 'session_type').filter(patient__practitioner=practitioner)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if date_from:
        qs = qs.filter(date_time__date__gte=date_from)
    if date_to:
        qs = qs.filter(date_time__date__lte=date_to)
    if not include_archived:
        qs = qs.filter(archived_at__isnull=True)
    return qs.order_by('-date_time')


def _default_amount(practitioner: Practitioner, session_type) -> Decimal:
    if session_type is not None:
        return session_type.price
    return practitioner.default_rate


@transaction.atomic
def create_consultation(practitioner: Practitioner, data: dict) -> Consultation:
    """Create a consultation with its paid invoice and the J+7 follow-up task.

    Raises ``Patient.DoesNotExist`` / ``SessionType.DoesNotExist`` for ids
    outside the practitioner's records.
    """
    patient = Patient.objects.get(id=data['patient_id'], practitioner=practitioner)
    session_type = None
    if data.get('session_type_id'):
        session_type = SessionType.objects.get(id=data['session_type_id'], practitioner=practitioner)

    consultation = Consultation.objects.create(
        patient=patient,
        session_type=session_type,
        date_time=data['date_time'],
        reason=data['reason'],
        anamnesis=data.get('anamnesis') or '',
        examination=data.get('examination') or '',
        advice=data.get('advice') or '',
        follow_up_7d=data.get('follow_up_7d', False),
        send_post_session_advice=data.get('send_post_session_advice', False),
    )

    if data.get('create_invoice', True):
        # Lock the counter row
        practitioner = Practitioner.objects.select_for_update().get(id=practitioner.id)
        payments = data.get('payments') or []
        amount = (data.get('invoice_amount') or sum((p['amount'] for p in payments), Decimal('0'))
                  or _default_amount(practitioner, session_type))
        now = timezone.now()
        today = timezone.localdate()
        invoice = Invoice.objects.create(
            consultation=consultation,
            invoice_number=generate_invoice_number(
                practitioner.invoice_prefix, practitioner.invoice_next_number, today
            ),
            amount=amount,
            status=Invoice.STATUS_PAID,
            issued_at=now,
            paid_at=now,
        )
        payments = payments or [{'amount': amount, 'method': 'card'}]
        Payment.objects.bulk_create([
            Payment(
                invoice=invoice,
                amount=p['amount'],
                method=p['method'],
                payment_date=p.get('payment_date') or today,
                check_number=p.get('check_number') or '',
                notes=p.get('notes') or '',
            ) for p in payments
        ])
        practitioner.invoice_next_number += 1
        practitioner.save(update_fields=['invoice_next_number', 'updated_at'])

    if consultation.follow_up_7d:
        ScheduledTask.objects.create(
            practitioner=practitioner,
            type=ScheduledTask.TYPE_FOLLOW_UP,
            consultation=consultation,
            scheduled_for=consultation.date_time + timedelta(days=7),
        )
    return consultation


@transaction.atomic
def update_consultation(practitioner: Practitioner, consultation: Consultation, data: dict) -> Consultation:
    fields = [k for k in EDITABLE_FIELDS if k in data]
    for k in fields:
        value = data[k]
        setattr(consultation, k, '' if value is None else value)
    if 'session_type_id' in data:
        consultation.session_type = (
            SessionType.objects.get(id=data['session_type_id'], practitioner=practitioner)
            if data['session_type_id'] else None
        )
        fields.append('session_type')
    if fields:
        consultation.save(update_fields=fields + ['updated_at'])

    pending = ScheduledTask.objects.filter(consultation=consultation, status=ScheduledTask.STATUS_PENDING)
    if 'follow_up_7d' in data or 'date_time' in data:
        if consultation.follow_up_7d and not consultation.follow_up_sent_at:
            due = consultation.date_time + timedelta(days=7)
            if not pending.update(scheduled_for=due):
                ScheduledTask.objects.create(practitioner=practitioner, consultation=consultation,
                                             type=ScheduledTask.TYPE_FOLLOW_UP, scheduled_for=due)
        else:
            pending.update(status=ScheduledTask.STATUS_CANCELLED)
    return consultation


def set_archived(consultation: Consultation, archived: bool = True) -> Consultation:
    consultation.archived_at = timezone.now() if archived else None
    consultation.save(update_fields=['archived_at', 'updated_at'])
    return consultation


def delete_consultation(consultation: Consultation) -> None:
    delete_consultations([consultation.id])
