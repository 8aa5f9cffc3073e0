"""
Outgoing email transport.

Mail goes through the practitioner's verified SMTP settings using Django's
mail framework.  When no verified settings exist and ``RESEND_API_KEY``
is configured, the Resend HTTP API is used instead.
"""
import base64
import logging
import smtplib
from dataclasses import dataclass, field
from email.utils import formataddr, make_msgid
from typing import List, Optional, Tuple

import requests
from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection

from practice.exceptions import EmailDeliveryError, EmailNotConfigured
from practice.models import EmailSettings, Practitioner

logger = logging.getLogger(__name__)


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    text: str
    html: Optional[str] = None
    attachments: List[Tuple[str, bytes, str]] = field(default_factory=list)
    reply_to: Optional[str] = None


@dataclass
class SendResult:
    message_id: str
    provider: str
    from_email: str


def verified_settings(practitioner: Practitioner) -> Optional[EmailSettings]:
    return EmailSettings.objects.filter(practitioner=practitioner, is_verified=True).first()


def smtp_connection(cfg):
    """Django mail connection for an ``EmailSettings``-like object."""
    return get_connection(
        backend=settings.PRACTICE_EMAIL_BACKEND,
        host=cfg.smtp_host,
        port=cfg.smtp_port,
        username=cfg.smtp_user,
        password=cfg.smtp_password,
        use_ssl=bool(cfg.smtp_secure),
        use_tls=not cfg.smtp_secure,
        timeout=settings.SMTP_TIMEOUT,
        fail_silently=False,
    )


def verify_smtp(cfg) -> None:
    """Open and close an SMTP session; raises on failure."""
    connection = smtp_connection(cfg)
    connection.open()
    connection.close()


def _domain(address: str) -> str:
    return address.rsplit('@', 1)[-1] if '@' in address else 'osteoflow.local'


def _send_smtp(cfg: EmailSettings, email: OutgoingEmail) -> SendResult:
    message_id = make_msgid(domain=_domain(cfg.from_email))
    sender = formataddr((cfg.from_name, cfg.from_email)) if cfg.from_name else cfg.from_email
    msg = EmailMultiAlternatives(
        subject=email.subject,
        body=email.text,
        from_email=sender,
        to=[email.to],
        reply_to=[email.reply_to or cfg.from_email],
        headers={'Message-ID': message_id},
        connection=smtp_connection(cfg),
    )
    if email.html:
        msg.attach_alternative(email.html, 'text/html')
    for filename, content, mimetype in email.attachments:
        msg.attach(filename, content, mimetype)
    try:
        msg.send()
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("SMTP send to %s failed: %s", email.to, e)
        raise EmailDeliveryError(f"Erreur SMTP: {e}")
    logger.info("Email sent via SMTP to %s (%s)", email.to, message_id)
    return SendResult(message_id=message_id, provider='smtp', from_email=cfg.from_email)


def _send_resend(practitioner: Practitioner, email: OutgoingEmail) -> SendResult:
    payload = {
        'from': formataddr((practitioner.full_name, settings.RESEND_FROM_EMAIL)),
        'to': [email.to],
        'subject': email.subject,
        'text': email.text,
    }
    if email.html:
        payload['html'] = email.html
    reply_to = email.reply_to or practitioner.email
    if reply_to:
        payload['reply_to'] = reply_to
    if email.attachments:
        payload['attachments'] = [
            {'filename': name, 'content': base64.b64encode(content).decode('ascii')}
            for name, content, _ in email.attachments
        ]
    try:
        resp = requests.post(
            settings.RESEND_API_URL,
            json=payload,
            headers={'Authorization': f'Bearer {settings.RESEND_API_KEY}'},
            timeout=settings.RESEND_TIMEOUT,
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Resend send to %s failed: %s", email.to, e)
        raise EmailDeliveryError(f"Erreur d'envoi: {e}")
    message_id = (resp.json() or {}).get('id', '')
    logger.info("Email sent via Resend to %s (%s)", email.to, message_id)
    return SendResult(message_id=message_id, provider='resend', from_email=settings.RESEND_FROM_EMAIL)


def send_email(practitioner: Practitioner, email: OutgoingEmail, cfg: Optional[EmailSettings] = None) -> SendResult:
    cfg = cfg or verified_settings(practitioner)
    if cfg is not None:
        return _send_smtp(cfg, email)
    if settings.RESEND_API_KEY:
        return _send_resend(practitioner, email)
    raise EmailNotConfigured()
