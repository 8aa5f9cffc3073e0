import datetime
import imaplib

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from conftest import CRON_SECRET
from practice.exceptions import MailboxError
from practice.models import Conversation, Message
from practice.services import imap, inbox
from practice.services.imap import FetchedEmail, FetchResult, parse_message

pytestmark = pytest.mark.django_db

RECEIVED = datetime.datetime(2024, 3, 12, 9, 30, tzinfo=datetime.timezone.utc)


def fetched(uid, sender, text='Bonjour, la douleur a bien diminué.', **kw):
    return FetchedEmail(uid=uid, message_id=f'<msg-{uid}@mail.test>', from_email=sender, subject='Suivi',
                        date=RECEIVED, text=text, **kw)


@pytest.fixture
def mailbox(monkeypatch):
    """Replaces the IMAP fetch; ``box['emails']`` is what the next sync returns."""
    box = {'emails': [], 'error': None, 'since': []}

    def fake_fetch(cfg, since_uid=0):
        box['since'].append(since_uid)
        if box['error']:
            raise MailboxError(box['error'])
        uids = [e.uid for e in box['emails']]
        return FetchResult(emails=list(box['emails']), last_uid=max(uids, default=since_uid))

    monkeypatch.setattr(inbox, 'fetch_new_emails', fake_fetch)
    return box


def test_patient_reply_lands_in_patient_conversation(patient, email_settings, mailbox):
    mailbox['emails'] = [fetched(12, 'Julie.Bernard@example.fr',
                                 text="Merci !\n\nLe 10 mars 2024, Cabinet a écrit :\n> Comment allez-vous ?")]
    result = inbox.sync_mailbox(email_settings)
    assert result['emails_fetched'] == 1 and result['emails_matched'] == 1

    message = Message.objects.get()
    assert message.content == 'Merci !'
    assert (message.direction, message.channel, message.status) == ('incoming', 'email', 'delivered')
    assert message.sent_at == RECEIVED
    conversation = message.conversation
    assert conversation.patient_id == patient.id
    assert conversation.unread_count == 1

    email_settings.refresh_from_db()
    assert email_settings.last_sync_uid == 12
    assert email_settings.last_sync_at is not None


def test_unknown_sender_gets_external_conversation(practitioner, email_settings, mailbox):
    mailbox['emails'] = [fetched(3, 'mutuelle@assur.fr', from_name='Mutuelle Santé'),
                         fetched(4, 'mutuelle@assur.fr')]
    inbox.sync_mailbox(email_settings)
    conversation = Conversation.objects.get()
    assert conversation.patient_id is None
    assert conversation.external_email == 'mutuelle@assur.fr'
    assert conversation.external_name == 'Mutuelle Santé'
    assert conversation.messages.count() == 2
    assert conversation.unread_count == 2


def test_already_imported_messages_are_skipped(patient, email_settings, mailbox):
    mailbox['emails'] = [fetched(5, patient.email)]
    inbox.sync_mailbox(email_settings)
    result = inbox.sync_mailbox(email_settings)
    assert result['emails_matched'] == 0
    assert Message.objects.count() == 1
    assert mailbox['since'] == [0, 5]


def test_empty_body_placeholder(patient, email_settings, mailbox):
    mailbox['emails'] = [fetched(6, patient.email, text=None, html='<div>  </div>')]
    inbox.sync_mailbox(email_settings)
    assert Message.objects.get().content == inbox.EMPTY_CONTENT


def test_html_only_body_is_converted(patient, email_settings, mailbox):
    mailbox['emails'] = [fetched(7, patient.email, text=None, html='<p>Bonjour,</p><p>Je viendrai <b>jeudi</b>.</p>')]
    inbox.sync_mailbox(email_settings)
    content = Message.objects.get().content
    assert 'Je viendrai jeudi.' in content
    assert '<' not in content


def test_mailbox_error_is_recorded(email_settings, mailbox):
    mailbox['error'] = 'Authentification IMAP refusée'
    result = inbox.sync_mailbox(email_settings)
    assert result['error'] == 'Authentification IMAP refusée'
    email_settings.refresh_from_db()
    assert email_settings.last_error == 'Authentification IMAP refusée'
    assert email_settings.last_error_at is not None
    assert email_settings.last_sync_uid == 0


def test_successful_sync_clears_previous_error(patient, email_settings, mailbox):
    email_settings.last_error = 'timeout'
    email_settings.last_error_at = timezone.now()
    email_settings.save()
    inbox.sync_mailbox(email_settings)
    email_settings.refresh_from_db()
    assert email_settings.last_error == ''
    assert email_settings.last_error_at is None


def test_check_inbox_route(patient, email_settings, mailbox):
    mailbox['emails'] = [fetched(9, patient.email)]
    client = APIClient()
    r = client.get(f'/api/emails/check-inbox?secret={CRON_SECRET}')
    assert r.status_code == 200
    data = r.data['data']
    assert data['processed'] == 1
    assert data['total_emails_fetched'] == 1
    assert data['total_emails_matched'] == 1


def test_check_inbox_skips_unverified_and_disabled(email_settings, mailbox):
    email_settings.sync_enabled = False
    email_settings.save()
    assert inbox.check_inboxes()['processed'] == 0
    assert mailbox['since'] == []


def test_check_inbox_requires_secret(api):
    assert APIClient().get('/api/emails/check-inbox').status_code == 401
    assert APIClient().get('/api/emails/check-inbox?secret=nope').status_code == 401
    # a logged-in practitioner is not the scheduler
    assert api.get('/api/emails/check-inbox').status_code == 403


def test_parse_message():
    raw = (
        b"From: Julie Bernard <Julie.Bernard@Example.fr>\r\n"
        b"To: cabinet@example.fr\r\n"
        b"Subject: Re: Votre facture\r\n"
        b"Message-ID: <abc@example.fr>\r\n"
        b"In-Reply-To: <orig@example.fr>\r\n"
        b"Date: Tue, 12 Mar 2024 10:30:00 +0100\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"Bien re\xc3\xa7ue, merci.\r\n"
    )
    email = parse_message(42, raw)
    assert email.from_email == 'julie.bernard@example.fr'
    assert email.from_name == 'Julie Bernard'
    assert email.to == ['cabinet@example.fr']
    assert email.message_id == '<abc@example.fr>'
    assert email.in_reply_to == '<orig@example.fr>'
    assert email.date == RECEIVED
    assert email.text.strip() == 'Bien reçue, merci.'


def test_parse_message_without_sender():
    assert parse_message(1, b"Subject: hello\r\n\r\nbody") is None


def raw_email(uid, sender='julie.bernard@example.fr'):
    return (
        f"From: Julie Bernard <{sender}>\r\n"
        f"To: cabinet@example.fr\r\n"
        f"Subject: Suivi {uid}\r\n"
        f"Message-ID: <m{uid}@mail.test>\r\n"
        f"Date: Tue, 12 Mar 2024 10:30:00 +0100\r\n"
        f"\r\n"
        f"Bonjour {uid}\r\n"
    ).encode()


class FakeImapServer:
    """Stands in for ``imaplib.IMAP4_SSL``; a plain FETCH clears the unseen flag like a real server."""

    def __init__(self):
        self.messages = {}
        self.unseen = set()
        self.login_error = None
        self.selects = []
        self.searches = []
        self.fetches = []

    def __call__(self, host, port, timeout=None):
        return self

    def login(self, user, password):
        if self.login_error:
            raise imaplib.IMAP4.error(self.login_error)
        return 'OK', [b'Logged in']

    def select(self, mailbox='INBOX', readonly=False):
        self.selects.append((mailbox, readonly))
        return 'OK', [str(len(self.messages)).encode()]

    def uid(self, command, *args):
        if command == 'search':
            criteria = args[-1]
            self.searches.append(criteria)
            if criteria == 'UNSEEN':
                found = sorted(self.unseen)
            else:
                start = int(criteria.split()[1].split(':')[0])
                # n:* matches the highest UID even when it is below n
                found = [u for u in sorted(self.messages) if u >= start] or sorted(self.messages)[-1:]
            return 'OK', [' '.join(str(u) for u in found).encode()]
        uid, items = int(args[0]), args[1]
        self.fetches.append((uid, items))
        if 'PEEK' not in items:
            self.unseen.discard(uid)
        raw = self.messages[uid]
        return 'OK', [(f'1 (UID {uid} BODY[] {{{len(raw)}}}'.encode(), raw), b')']

    def logout(self):
        return 'BYE', [b'']


@pytest.fixture
def imap_server(monkeypatch):
    server = FakeImapServer()
    monkeypatch.setattr(imap.imaplib, 'IMAP4_SSL', server)
    return server


def test_first_sync_reads_unseen_mail_without_flagging_it(email_settings, imap_server):
    imap_server.messages = {3: raw_email(3), 4: raw_email(4), 5: raw_email(5)}
    imap_server.unseen = {4, 5}

    result = imap.fetch_new_emails(email_settings)

    assert [e.uid for e in result.emails] == [4, 5]
    assert result.last_uid == 5
    assert result.emails[0].subject == 'Suivi 4'
    assert result.emails[0].from_email == 'julie.bernard@example.fr'
    assert imap_server.searches == ['UNSEEN']
    assert imap_server.selects == [('INBOX', True)]
    assert {items for _, items in imap_server.fetches} == {'(BODY.PEEK[])'}
    assert imap_server.unseen == {4, 5}


def test_later_sync_resumes_after_last_uid(email_settings, imap_server):
    imap_server.messages = {5: raw_email(5), 6: raw_email(6), 9: raw_email(9)}

    result = imap.fetch_new_emails(email_settings, since_uid=6)

    assert imap_server.searches == ['UID 7:*']
    assert [uid for uid, _ in imap_server.fetches] == [9]
    assert [e.uid for e in result.emails] == [9]
    assert result.last_uid == 9


def test_open_uid_range_past_the_newest_message(email_settings, imap_server):
    imap_server.messages = {5: raw_email(5), 7: raw_email(7)}

    result = imap.fetch_new_emails(email_settings, since_uid=7)

    assert imap_server.searches == ['UID 8:*']
    assert imap_server.fetches == []
    assert result.emails == []
    assert result.last_uid == 7


def test_empty_mailbox_skips_search(email_settings, imap_server):
    result = imap.fetch_new_emails(email_settings, since_uid=4)
    assert imap_server.searches == []
    assert (result.emails, result.last_uid) == ([], 4)


def test_rejected_login_raises_mailbox_error(email_settings, imap_server):
    imap_server.login_error = 'AUTHENTICATIONFAILED'
    with pytest.raises(MailboxError):
        imap.fetch_new_emails(email_settings)
