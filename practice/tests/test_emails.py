import datetime
import smtplib

import pytest
from django.core import mail
from django.utils import timezone
from rest_framework.test import APIClient

from conftest import CRON_SECRET
from practice.models import EmailSettings, EmailTemplate, Invoice, Message, ScheduledTask, SurveyResponse
from practice.services import email_settings as email_settings_svc

pytestmark = pytest.mark.django_db

SETTINGS = {
    'smtp_host': 'smtp.example.fr', 'smtp_port': 465, 'smtp_secure': True, 'smtp_user': 'cabinet@example.fr',
    'smtp_password': 'secret', 'imap_host': 'imap.example.fr', 'imap_port': 993, 'imap_secure': True,
    'imap_user': 'cabinet@example.fr', 'imap_password': 'secret', 'from_name': 'Cabinet Martin',
    'from_email': 'cabinet@example.fr',
}


@pytest.fixture
def imap_ok(monkeypatch):
    checked = []
    monkeypatch.setattr(email_settings_svc, 'verify_imap', lambda cfg: checked.append(cfg.imap_host))
    return checked


class TestEmailSettings:
    def test_save_verifies_and_hides_passwords(self, api, practitioner, imap_ok):
        r = api.post('/api/emails/settings', SETTINGS, format='json')
        assert r.status_code == 200
        assert r.data['data']['is_verified'] is True
        assert 'smtp_password' not in r.data['data'] and 'imap_password' not in r.data['data']
        assert imap_ok == ['imap.example.fr']
        assert api.get('/api/emails/settings').data['data']['from_email'] == 'cabinet@example.fr'

    def test_smtp_failure_is_reported(self, api, monkeypatch, imap_ok):
        def refuse(cfg):
            raise smtplib.SMTPAuthenticationError(535, b'bad credentials')
        monkeypatch.setattr(email_settings_svc, 'verify_smtp', refuse)
        r = api.post('/api/emails/settings', SETTINGS, format='json')
        assert r.status_code == 400
        assert r.data['error'].startswith('Connexion SMTP échouée')
        assert not EmailSettings.objects.exists()

    def test_imap_failure_is_reported(self, api, monkeypatch):
        def refuse(cfg):
            raise OSError('connection refused')
        monkeypatch.setattr(email_settings_svc, 'verify_imap', refuse)
        r = api.post('/api/emails/settings', SETTINGS, format='json')
        assert r.status_code == 400
        assert r.data['error'] == 'Connexion IMAP échouée: connection refused'

    def test_changing_mailbox_resets_sync_cursor(self, api, email_settings, imap_ok):
        email_settings.last_sync_uid = 42
        email_settings.save()
        api.post('/api/emails/settings', {**SETTINGS, 'imap_user': 'autre@example.fr'}, format='json')
        email_settings.refresh_from_db()
        assert email_settings.last_sync_uid == 0

    def test_delete(self, api, email_settings):
        assert api.delete('/api/emails/settings').status_code == 200
        assert api.get('/api/emails/settings').data['data'] is None


class TestTemplates:
    def test_defaults_then_override(self, api, practitioner):
        listed = api.get('/api/emails/templates').data['data']
        assert [t['type'] for t in listed] == ['invoice', 'follow_up_7d']
        assert all(t['is_default'] for t in listed)

        r = api.put('/api/emails/templates/invoice', {'subject': 'Facture {{invoice_number}}', 'body': 'Ci-joint.'},
                    format='json')
        assert r.status_code == 200
        assert r.data['data']['is_default'] is False
        assert EmailTemplate.objects.filter(practitioner=practitioner, type='invoice').count() == 1

    def test_unknown_type(self, api):
        r = api.put('/api/emails/templates/newsletter', {'subject': 'x', 'body': 'y'}, format='json')
        assert r.status_code == 400
        assert r.data['error'] == 'Type de modèle invalide'


def test_invoice_email_attaches_pdf_and_records_message(api, consultation, email_settings):
    invoice = Invoice.objects.create(consultation=consultation, invoice_number='FACT-240304-001', amount='60',
                                     status='paid', issued_at=timezone.now(), paid_at=timezone.now())
    r = api.post('/api/emails/invoice', {'invoiceId': str(invoice.id)}, format='json')
    assert r.status_code == 200
    assert len(mail.outbox) == 1
    sent = mail.outbox[0]
    assert sent.to == ['julie.bernard@example.fr']
    assert sent.subject == 'Votre facture FACT-240304-001 - Cabinet Martin'
    assert sent.attachments[0][0] == 'FACT-240304-001.pdf'
    message = Message.objects.get()
    assert (message.direction, message.channel) == ('outgoing', 'email')
    assert message.conversation.patient_id == consultation.patient_id


def test_invoice_email_without_patient_email(api, consultation, email_settings):
    consultation.patient.email = ''
    consultation.patient.save()
    invoice = Invoice.objects.create(consultation=consultation, invoice_number='FACT-1', amount='60')
    r = api.post('/api/emails/invoice', {'invoiceId': str(invoice.id)}, format='json')
    assert r.status_code == 400
    assert r.data['error'] == "Le patient n'a pas d'adresse email"


def test_email_without_configuration(api, consultation):
    invoice = Invoice.objects.create(consultation=consultation, invoice_number='FACT-1', amount='60')
    r = api.post('/api/emails/invoice', {'invoiceId': str(invoice.id)}, format='json')
    assert r.status_code == 400
    assert r.data['error'].startswith('Aucun paramètre email configuré')


def test_email_falls_back_to_resend(api, consultation, settings, monkeypatch):
    settings.RESEND_API_KEY = 're_test'
    posted = []

    class Resp:
        def raise_for_status(self):
            pass

        def json(self):
            return {'id': 'resend-1'}

    def fake_post(url, json=None, headers=None, timeout=None):
        posted.append(json)
        return Resp()

    from practice.services import mailer
    monkeypatch.setattr(mailer.requests, 'post', fake_post)
    invoice = Invoice.objects.create(consultation=consultation, invoice_number='FACT-1', amount='60')
    r = api.post('/api/emails/invoice', {'invoiceId': str(invoice.id)}, format='json')
    assert r.status_code == 200
    assert r.data['data']['messageId'] == 'resend-1'
    assert posted[0]['to'] == ['julie.bernard@example.fr']
    assert posted[0]['attachments'][0]['filename'] == 'FACT-1.pdf'


class TestFollowUps:
    def test_manual_follow_up_links_survey(self, api, consultation, email_settings, survey_worker):
        r = api.put('/api/emails/follow-up', {'consultationId': str(consultation.id)}, format='json')
        assert r.status_code == 200
        assert r.data['data'] == {'success': True, 'survey': True}
        survey = SurveyResponse.objects.get()
        html = mail.outbox[0].alternatives[0][0]
        assert f'/survey/{survey.token}' in html
        assert consultation.reason not in mail.outbox[0].body
        consultation.refresh_from_db()
        assert consultation.follow_up_sent_at is not None

    def test_follow_up_goes_out_without_survey_when_worker_is_down(self, api, consultation, email_settings,
                                                                   survey_worker):
        survey_worker['fail'] = True
        r = api.put('/api/emails/follow-up', {'consultationId': str(consultation.id)}, format='json')
        assert r.data['data']['survey'] is False
        assert len(mail.outbox) == 1
        assert not SurveyResponse.objects.exists()

    def test_cron_processes_due_tasks(self, practitioner, make_consultation, make_patient, email_settings,
                                      survey_worker):
        past = timezone.now() - datetime.timedelta(days=8)
        due = make_consultation(date_time=past, follow_up_7d=True)
        no_email = make_consultation(make_patient(first_name='Marc', email=''), date_time=past, follow_up_7d=True)
        later = make_consultation(date_time=timezone.now(), follow_up_7d=True)
        for c in (due, no_email, later):
            ScheduledTask.objects.create(practitioner=practitioner, consultation=c,
                                         scheduled_for=c.date_time + datetime.timedelta(days=7))

        client = APIClient()
        r = client.post('/api/emails/follow-up', HTTP_AUTHORIZATION=f'Bearer {CRON_SECRET}')
        assert r.status_code == 200
        assert r.data['data']['processed'] == 1
        statuses = dict(ScheduledTask.objects.values_list('consultation_id', 'status'))
        assert statuses == {due.id: 'completed', no_email.id: 'failed', later.id: 'pending'}
        assert ScheduledTask.objects.get(consultation=no_email).error_message == 'Patient sans email'
        assert len(mail.outbox) == 1

    def test_cron_route_requires_secret(self):
        client = APIClient()
        assert client.post('/api/emails/follow-up').status_code == 401
        assert client.post('/api/emails/follow-up', HTTP_AUTHORIZATION='Bearer wrong').status_code == 401

    def test_cron_secret_from_remote_address_is_refused(self):
        r = APIClient().post('/api/emails/follow-up', HTTP_AUTHORIZATION=f'Bearer {CRON_SECRET}',
                             REMOTE_ADDR='192.168.1.20')
        assert r.status_code == 403

    def test_manual_follow_up_needs_a_user(self):
        r = APIClient().put('/api/emails/follow-up', {'consultationId': '00000000-0000-0000-0000-000000000000'},
                            format='json', HTTP_AUTHORIZATION=f'Bearer {CRON_SECRET}')
        assert r.status_code == 401


def test_post_session_advice(api, consultation, email_settings):
    r = api.post('/api/emails/post-session-advice', {'consultationId': str(consultation.id)}, format='json')
    assert r.status_code == 200
    assert 'Marcher 20 minutes par jour.' in mail.outbox[0].body
    assert mail.outbox[0].subject == 'Conseils post-séance - Cabinet Martin'
    consultation.refresh_from_db()
    assert consultation.post_session_advice_sent_at is not None


def test_accounting_recap_email(api, practitioner, consultation, email_settings):
    Invoice.objects.create(consultation=consultation, invoice_number='FACT-1', amount='60', status='paid',
                           issued_at=timezone.now(), paid_at=timezone.now())
    today = timezone.localdate().isoformat()
    r = api.post('/api/emails/accounting-recap', {'startDate': today, 'endDate': today}, format='json')
    assert r.status_code == 200
    assert r.data['data']['totalConsultations'] == 1
    sent = mail.outbox[0]
    assert sent.to == ['compta@example.fr']
    assert sent.attachments[0][0] == f'recap_comptable_{today}_{today}.csv'


def test_accounting_recap_requires_accountant(api, practitioner, email_settings):
    practitioner.accountant_email = ''
    practitioner.save()
    r = api.post('/api/emails/accounting-recap', {'startDate': '2024-01-01', 'endDate': '2024-01-31'},
                 format='json')
    assert r.status_code == 400
    assert r.data['error'] == 'Email comptable manquant'
