"""SMTP/IMAP configuration of a practitioner's mailbox."""
import imaplib
import logging
import smtplib

from django.db import transaction

from practice.models import EmailSettings, Practitioner
from practice.services.imap import verify_imap
from practice.services.mailer import verify_smtp

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = (
    'smtp_host', 'smtp_port', 'smtp_secure', 'smtp_user', 'smtp_password',
    'imap_host', 'imap_port', 'imap_secure', 'imap_user', 'imap_password',
    'from_name', 'from_email', 'sync_enabled',
)


def serialize_email_settings(cfg: EmailSettings) -> dict:
    """Passwords are never returned."""
    return {
        'id': str(cfg.id),
        'smtp_host': cfg.smtp_host,
        'smtp_port': cfg.smtp_port,
        'smtp_secure': cfg.smtp_secure,
        'smtp_user': cfg.smtp_user,
        'imap_host': cfg.imap_host,
        'imap_port': cfg.imap_port,
        'imap_secure': cfg.imap_secure,
        'imap_user': cfg.imap_user,
        'from_name': cfg.from_name or None,
        'from_email': cfg.from_email,
        'sync_enabled': cfg.sync_enabled,
        'is_verified': cfg.is_verified,
        'last_sync_at': cfg.last_sync_at.isoformat() if cfg.last_sync_at else None,
        'last_error': cfg.last_error or None,
        'last_error_at': cfg.last_error_at.isoformat() if cfg.last_error_at else None,
    }


def get_email_settings(practitioner: Practitioner):
    return EmailSettings.objects.filter(practitioner=practitioner).first()


def test_connections(candidate: EmailSettings) -> None:
    """Check SMTP then IMAP; raises ``ValueError`` with the user-facing reason."""
    try:
        verify_smtp(candidate)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("SMTP check for %s failed: %s", candidate.smtp_host, e)
        raise ValueError(f"Connexion SMTP échouée: {e}")
    try:
        verify_imap(candidate)
    except (imaplib.IMAP4.error, OSError) as e:
        logger.warning("IMAP check for %s failed: %s", candidate.imap_host, e)
        raise ValueError(f"Connexion IMAP échouée: {e}")


@transaction.atomic
def save_email_settings(practitioner: Practitioner, data: dict) -> EmailSettings:
    """Verify the credentials, then create or replace the practitioner's settings."""
    values = {k: data[k] for k in SETTINGS_FIELDS if k in data}
    values['from_name'] = values.get('from_name') or ''
    test_connections(EmailSettings(practitioner=practitioner, **values))

    cfg = get_email_settings(practitioner)
    if cfg is None:
        cfg = EmailSettings(practitioner=practitioner)
    elif cfg.imap_host != values['imap_host'] or cfg.imap_user != values['imap_user']:
        # another mailbox: UIDs are not comparable
        cfg.last_sync_uid = 0
    for k, v in values.items():
        setattr(cfg, k, v)
    cfg.is_verified = True
    cfg.last_error = ''
    cfg.last_error_at = None
    cfg.save()
    return cfg
