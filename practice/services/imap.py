"""
Incoming mail over IMAP.

``fetch_new_emails`` reads the practitioner's INBOX and returns parsed
messages plus the highest UID seen, so the caller can resume from there
on the next sync.
"""
import email
import html
import imaplib
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from email import policy
from email.utils import getaddresses, parseaddr, parsedate_to_datetime
from typing import List, Optional

from django.conf import settings

from practice.exceptions import MailboxError

logger = logging.getLogger(__name__)

UID_RE = re.compile(rb'UID (\d+)')


@dataclass
class FetchedEmail:
    uid: int
    message_id: str
    from_email: str
    from_name: str = ''
    to: List[str] = field(default_factory=list)
    subject: str = '(sans objet)'
    date: Optional[datetime] = None
    text: Optional[str] = None
    html: Optional[str] = None
    in_reply_to: Optional[str] = None
    references: List[str] = field(default_factory=list)


@dataclass
class FetchResult:
    emails: List[FetchedEmail]
    last_uid: int


def _connect(cfg) -> imaplib.IMAP4:
    timeout = settings.IMAP_TIMEOUT
    if cfg.imap_secure:
        conn = imaplib.IMAP4_SSL(cfg.imap_host, cfg.imap_port, timeout=timeout)
    else:
        conn = imaplib.IMAP4(cfg.imap_host, cfg.imap_port, timeout=timeout)
        if 'STARTTLS' in conn.capabilities:
            conn.starttls()
    conn.login(cfg.imap_user, cfg.imap_password)
    return conn


def _logout(conn: imaplib.IMAP4) -> None:
    try:
        conn.logout()
    except (imaplib.IMAP4.error, OSError):
        pass


def verify_imap(cfg) -> None:
    """Log in and open INBOX; raises on failure."""
    conn = _connect(cfg)
    try:
        typ, data = conn.select('INBOX', readonly=True)
        if typ != 'OK':
            raise imaplib.IMAP4.error((data[0] or b'INBOX inaccessible').decode(errors='replace'))
    finally:
        _logout(conn)


def _part_text(part) -> str:
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True) or b''
        return payload.decode('utf-8', errors='replace')


def _bodies(msg) -> tuple[Optional[str], Optional[str]]:
    text = html_body = None
    for part in msg.walk():
        if part.is_multipart() or part.get_content_disposition() == 'attachment':
            continue
        ctype = part.get_content_type()
        if ctype == 'text/plain' and text is None:
            text = _part_text(part).strip() or None
        elif ctype == 'text/html' and html_body is None:
            html_body = _part_text(part).strip() or None
    return text, html_body


def _message_date(msg) -> Optional[datetime]:
    raw = msg.get('Date')
    if not raw:
        return None
    try:
        value = parsedate_to_datetime(str(raw))
    except (TypeError, ValueError):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt_timezone.utc)
    return value


def parse_message(uid: int, raw: bytes) -> Optional[FetchedEmail]:
    """Build a ``FetchedEmail`` from RFC 822 bytes; ``None`` without a sender."""
    msg = email.message_from_bytes(raw, policy=policy.default)
    from_name, from_email = parseaddr(str(msg.get('From', '')))
    if not from_email:
        return None
    text, html_body = _bodies(msg)
    return FetchedEmail(
        uid=uid,
        message_id=str(msg.get('Message-ID') or f'uid-{uid}').strip(),
        from_email=from_email.lower(),
        from_name=from_name,
        to=[addr for _, addr in getaddresses([str(v) for v in msg.get_all('To', [])]) if addr],
        subject=str(msg.get('Subject') or '').strip() or '(sans objet)',
        date=_message_date(msg),
        text=text,
        html=html_body,
        in_reply_to=str(msg['In-Reply-To']).strip() if msg.get('In-Reply-To') else None,
        references=str(msg.get('References') or '').split(),
    )


def _fetch_uid(conn: imaplib.IMAP4, uid: int) -> Optional[bytes]:
    # BODY.PEEK leaves the \Seen flag alone
    typ, data = conn.uid('fetch', str(uid), '(BODY.PEEK[])')
    if typ != 'OK':
        return None
    for item in data:
        if isinstance(item, tuple) and UID_RE.search(item[0]):
            return item[1]
    for item in data:
        if isinstance(item, tuple):
            return item[1]
    return None


def fetch_new_emails(cfg, since_uid: int = 0) -> FetchResult:
    """Fetch messages newer than ``since_uid`` (unseen ones on the first sync).

    Raises ``MailboxError`` when the server cannot be reached or refuses
    the login.
    """
    emails: List[FetchedEmail] = []
    last_uid = since_uid
    try:
        conn = _connect(cfg)
    except (imaplib.IMAP4.error, OSError) as e:
        logger.warning("IMAP login to %s failed: %s", cfg.imap_host, e)
        raise MailboxError(str(e))

    try:
        typ, data = conn.select('INBOX', readonly=True)
        if typ != 'OK':
            raise MailboxError('INBOX inaccessible')
        if not int((data[0] or b'0').split()[0] or 0):
            return FetchResult(emails=[], last_uid=since_uid)

        criteria = f'UID {since_uid + 1}:*' if since_uid > 0 else 'UNSEEN'
        typ, data = conn.uid('search', None, criteria)
        if typ != 'OK':
            raise MailboxError('Recherche IMAP échouée')
        uids = sorted(int(u) for u in (data[0] or b'').split())

        for uid in uids:
            # n:* always matches the highest UID, even when it is below n
            if uid <= since_uid:
                continue
            raw = _fetch_uid(conn, uid)
            if raw is None:
                continue
            parsed = parse_message(uid, raw)
            if parsed is None:
                continue
            emails.append(parsed)
            last_uid = max(last_uid, uid)
    except (imaplib.IMAP4.error, OSError) as e:
        logger.warning("IMAP fetch from %s failed: %s", cfg.imap_host, e)
        raise MailboxError(str(e))
    finally:
        _logout(conn)

    logger.info("Fetched %d new email(s) from %s (last uid %d)", len(emails), cfg.imap_user, last_uid)
    return FetchResult(emails=emails, last_uid=last_uid)


BLOCK_TAG_RE = re.compile(r'</?(p|div|br|h[1-6]|li|tr)[^>]*>', re.IGNORECASE)


def html_to_plain_text(value: str) -> str:
    text = re.sub(r'<script[^>]*>.*?</script>', '', value or '', flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r'<style[^>]*>.*?</style>', '', text, flags=re.IGNORECASE | re.DOTALL)
    text = BLOCK_TAG_RE.sub('\n', text)
    text = re.sub(r'<[^>]+>', '', text)
    text = html.unescape(text).replace('\xa0', ' ')
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()


REPLY_INDICATORS = [
    re.compile(r'^>.*$', re.MULTILINE),
    re.compile(r'^Le .+ a écrit\s*:.*$', re.MULTILINE | re.IGNORECASE),
    re.compile(r'^On .+ wrote:.*$', re.MULTILINE | re.IGNORECASE),
    re.compile(r'^-{3,}.*Original Message.*-{3,}$', re.MULTILINE | re.IGNORECASE),
    re.compile(r'^_{3,}$', re.MULTILINE),
    re.compile(r'^De\s*:.+$', re.MULTILINE | re.IGNORECASE),
    re.compile(r'^From:.+$', re.MULTILINE | re.IGNORECASE),
    re.compile(r'^Envoyé\s*:.+$', re.MULTILINE | re.IGNORECASE),
    re.compile(r'^Sent:.+$', re.MULTILINE | re.IGNORECASE),
]


def extract_reply_content(text: str) -> str:
    """Keep what precedes the first quoted-reply marker."""
    starts = [m.start() for m in (p.search(text or '') for p in REPLY_INDICATORS) if m]
    if not starts:
        return text
    return text[:min(starts)].strip() or text
