"""
Inbox synchronisation: turns new IMAP messages into incoming email
messages in the matching conversation.
"""
import logging
import time

from django.db import transaction
from django.utils import timezone

from practice.exceptions import MailboxError
from practice.models import EmailSettings, Message, Patient
from practice.services.imap import FetchedEmail, extract_reply_content, fetch_new_emails, html_to_plain_text
from practice.services.messaging import external_conversation, patient_conversation, record_incoming_email
from practice.services.realtime import broadcast

logger = logging.getLogger(__name__)

MAX_CONTENT = 10000
EMPTY_CONTENT = '(contenu vide ou pièce jointe uniquement)'


def email_content(email: FetchedEmail) -> str:
    content = email.text or ''
    if not content and email.html:
        content = html_to_plain_text(email.html)
    content = extract_reply_content(content)
    if not content.strip():
        content = EMPTY_CONTENT
    return content[:MAX_CONTENT]


@transaction.atomic
def store_email(cfg: EmailSettings, email: FetchedEmail):
    """Record one fetched email; returns the message or ``None`` for duplicates."""
    if Message.objects.filter(external_email_id=email.message_id).exists():
        return None
    practitioner = cfg.practitioner
    patient = (Patient.objects.filter(practitioner=practitioner, email__iexact=email.from_email)
               .order_by('created_at').first())
    if patient is not None:
        conversation = patient_conversation(practitioner, patient)
    else:
        conversation = external_conversation(practitioner, email.from_email, email.from_name)
    return record_incoming_email(
        conversation,
        content=email_content(email),
        subject=email.subject,
        from_email=email.from_email,
        to_email=cfg.from_email,
        external_id=email.message_id,
        received_at=email.date,
    )


def sync_mailbox(cfg: EmailSettings) -> dict:
    result = {'practitioner_id': str(cfg.practitioner_id), 'emails_fetched': 0, 'emails_matched': 0}
    try:
        fetched = fetch_new_emails(cfg, cfg.last_sync_uid or 0)
    except MailboxError as e:
        cfg.last_error = str(e.detail)
        cfg.last_error_at = timezone.now()
        cfg.save(update_fields=['last_error', 'last_error_at', 'updated_at'])
        result['error'] = cfg.last_error
        return result

    for email in fetched.emails:
        message = store_email(cfg, email)
        if message is None:
            continue
        result['emails_matched'] += 1
        broadcast('inbox.message', practitionerId=str(cfg.practitioner_id),
                  conversationId=str(message.conversation_id), messageId=str(message.id),
                  fromEmail=email.from_email, subject=email.subject)

    result['emails_fetched'] = len(fetched.emails)
    cfg.last_sync_uid = fetched.last_uid
    cfg.last_sync_at = timezone.now()
    cfg.last_error = ''
    cfg.last_error_at = None
    cfg.save(update_fields=['last_sync_uid', 'last_sync_at', 'last_error', 'last_error_at', 'updated_at'])
    return result


def check_inboxes() -> dict:
    """Sync every verified mailbox with sync enabled; one failing mailbox does not stop the others."""
    started = time.monotonic()
    mailboxes = list(EmailSettings.objects.select_related('practitioner')
                     .filter(sync_enabled=True, is_verified=True))
    results = [sync_mailbox(cfg) for cfg in mailboxes]
    summary = {
        'success': True,
        'processed': len(mailboxes),
        'total_emails_fetched': sum(r['emails_fetched'] for r in results),
        'total_emails_matched': sum(r['emails_matched'] for r in results),
        'duration': int((time.monotonic() - started) * 1000),
        'results': results,
    }
    if mailboxes:
        logger.info("Inbox check: %d mailbox(es), %d new message(s)", len(mailboxes), summary['total_emails_matched'])
    return summary
