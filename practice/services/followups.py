"""
Patient-facing emails tied to a consultation: the J+7 follow-up (run by
the scheduler or sent by hand), post-session advice and the invoice
email with its PDF attached, plus the listing of scheduled follow-up
tasks.
"""
import logging

from django.db.models import Count, Q
from django.utils import timezone

from practice.exceptions import DownstreamServiceError, EmailDeliveryError, SurveyWorkerError
from practice.formatting import format_date
from practice.models import Consultation, Invoice, Practitioner, ScheduledTask
from practice.services.audit import log_action
from practice.services.mailer import OutgoingEmail, send_email
from practice.services.messaging import patient_conversation, record_outgoing_email
from practice.services.pdf import generate_invoice_pdf
from practice.services.surveys import register_survey, survey_url
from practice.services.templates import (
    build_variables,
    follow_up_html,
    invoice_html,
    post_session_advice_html,
    render_template,
)

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
TASK_LIST_LIMIT = 100
TASK_TYPE_LABELS = {
    ScheduledTask.TYPE_FOLLOW_UP: 'Suivi J+7',
    'post_session_advice': 'Conseils post-séance',
}
NO_EMAIL = "Le patient n'a pas d'adresse email"


def _patient_email(consultation: Consultation) -> str:
    email = consultation.patient.email
    if not email:
        raise ValueError(NO_EMAIL)
    return email


def send_follow_up(practitioner: Practitioner, consultation: Consultation) -> dict:
    """Send the J+7 follow-up for one consultation and stamp ``follow_up_sent_at``.

    A survey is registered first so the email can link to it; when the
    survey worker is unreachable the email goes out without the link.
    """
    to = _patient_email(consultation)
    survey = None
    try:
        survey = register_survey(consultation)
    except SurveyWorkerError as e:
        logger.warning("Follow-up for consultation %s sent without survey: %s", consultation.id, e.detail)
    survey_link = survey_url(survey.token) if survey else None

    variables = build_variables(practitioner, patient=consultation.patient, consultation=consultation)
    subject, body = render_template(practitioner, 'follow_up_7d', variables)
    try:
        result = send_email(practitioner, OutgoingEmail(
            to=to, subject=subject, text=body, html=follow_up_html(practitioner, body, survey_link),
        ))
    except DownstreamServiceError:
        if survey is not None:
            survey.delete()
        raise
    consultation.follow_up_sent_at = timezone.now()
    consultation.save(update_fields=['follow_up_sent_at', 'updated_at'])
    log_action(practitioner=practitioner, action='email_follow_up', object_type='consultation',
               object_id=consultation.id, detail={'to': to, 'messageId': result.message_id})
    return {'success': True, 'survey': bool(survey_link)}


def _fail(task: ScheduledTask, reason: str) -> None:
    task.status = ScheduledTask.STATUS_FAILED
    task.error_message = reason
    task.executed_at = timezone.now()
    task.save(update_fields=['status', 'error_message', 'executed_at', 'updated_at'])


def process_due_follow_ups(limit: int = BATCH_SIZE) -> dict:
    """Run the pending follow-up tasks that are due, at most ``limit`` per call."""
    tasks = list(
        ScheduledTask.objects.select_related('practitioner', 'consultation__patient')
        .filter(type=ScheduledTask.TYPE_FOLLOW_UP, status=ScheduledTask.STATUS_PENDING,
                scheduled_for__lte=timezone.now())
        .order_by('scheduled_for')[:limit]
    )
    processed = 0
    errors = []
    for task in tasks:
        consultation = task.consultation
        if consultation is None or consultation.patient_id is None:
            _fail(task, 'Consultation ou patient non trouvé')
            continue
        if not consultation.patient.email:
            _fail(task, 'Patient sans email')
            continue
        try:
            send_follow_up(task.practitioner, consultation)
        except DownstreamServiceError as e:
            logger.warning("Follow-up task %s failed: %s", task.id, e.detail)
            errors.append(f"Task {task.id}: {e.detail}")
            _fail(task, str(e.detail))
            continue
        task.status = ScheduledTask.STATUS_COMPLETED
        task.executed_at = timezone.now()
        task.save(update_fields=['status', 'executed_at', 'updated_at'])
        processed += 1

    if tasks:
        logger.info("Follow-ups: %d processed, %d error(s)", processed, len(errors))
    return {'message': f"{processed} tâche(s) traitée(s)", 'processed': processed, 'errors': errors}


def send_post_session_advice(practitioner: Practitioner, consultation: Consultation) -> dict:
    to = _patient_email(consultation)
    patient = consultation.patient
    subject = f"Conseils post-séance - {practitioner.display_name}"
    body = (
        f"Bonjour {patient.first_name},\n\n"
        f"Merci pour votre confiance lors de votre séance du {format_date(consultation.date_time)}.\n\n"
        "Voici quelques conseils pour optimiser les bienfaits de votre consultation :"
    )
    result = send_email(practitioner, OutgoingEmail(
        to=to, subject=subject, text=f"{body}\n\n{consultation.advice}".strip(),
        html=post_session_advice_html(practitioner, body, consultation.advice),
    ))
    consultation.post_session_advice_sent_at = timezone.now()
    consultation.save(update_fields=['post_session_advice_sent_at', 'updated_at'])
    log_action(practitioner=practitioner, action='email_post_session_advice', object_type='consultation',
               object_id=consultation.id, detail={'to': to, 'messageId': result.message_id})
    return {'success': True}


def send_invoice_email(practitioner: Practitioner, invoice: Invoice) -> dict:
    """Email the invoice PDF to the patient and keep a copy in their conversation."""
    consultation = invoice.consultation
    patient = consultation.patient
    if not patient.email:
        raise ValueError(NO_EMAIL)
    variables = build_variables(practitioner, patient=patient, consultation=consultation, invoice=invoice)
    subject, body = render_template(practitioner, 'invoice', variables)
    pdf_bytes = generate_invoice_pdf(invoice)
    try:
        result = send_email(practitioner, OutgoingEmail(
            to=patient.email, subject=subject, text=body, html=invoice_html(practitioner, body),
            attachments=[(f"{invoice.invoice_number}.pdf", pdf_bytes, 'application/pdf')],
        ))
    except EmailDeliveryError:
        log_action(practitioner=practitioner, action='email_invoice', object_type='invoice',
                   object_id=invoice.id, detail={'to': patient.email, 'result': 'fail'})
        raise
    conversation = patient_conversation(practitioner, patient)
    record_outgoing_email(conversation, content=body, subject=subject, to=patient.email, result=result,
                          consultation=consultation)
    log_action(practitioner=practitioner, action='email_invoice', object_type='invoice', object_id=invoice.id,
               detail={'to': patient.email, 'messageId': result.message_id, 'result': 'ok'})
    return {'success': True, 'messageId': result.message_id}


def list_scheduled_tasks(practitioner: Practitioner, *, status=None, search=''):
    """Most recent tasks first, optionally filtered by status and patient name."""
    qs = (ScheduledTask.objects.filter(practitioner=practitioner)
          .select_related('consultation__patient')
          .order_by('-scheduled_for'))
    if status:
        qs = qs.filter(status=status)
    for term in (search or '').split():
        qs = qs.filter(Q(consultation__patient__first_name__icontains=term)
                       | Q(consultation__patient__last_name__icontains=term))
    return qs[:TASK_LIST_LIMIT]


def task_counts(practitioner: Practitioner) -> dict:
    counts = {status: 0 for status, _ in ScheduledTask.STATUS_CHOICES}
    rows = (ScheduledTask.objects.filter(practitioner=practitioner)
            .order_by().values('status').annotate(n=Count('id')))
    for row in rows:
        counts[row['status']] = row['n']
    counts['all'] = sum(counts.values())
    return counts


def serialize_task(task: ScheduledTask) -> dict:
    consultation = task.consultation
    data = {
        'id': str(task.id),
        'type': task.type,
        'type_label': TASK_TYPE_LABELS.get(task.type, task.type),
        'status': task.status,
        'consultation_id': str(task.consultation_id) if task.consultation_id else None,
        'scheduled_for': task.scheduled_for.isoformat(),
        'executed_at': task.executed_at.isoformat() if task.executed_at else None,
        'error_message': task.error_message or None,
        'created_at': task.created_at.isoformat(),
        'consultation': None,
    }
    if consultation is not None:
        patient = consultation.patient
        data['consultation'] = {
            'date_time': consultation.date_time.isoformat(),
            'reason': consultation.reason,
            'patient': {
                'first_name': patient.first_name,
                'last_name': patient.last_name,
                'email': patient.email or None,
            },
        }
    return data
