import datetime

import pytest
import requests
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from practice.models import Consultation, EmailSettings, Patient, SessionType
from practice.services.practitioners import create_account

CRON_SECRET = 'test-cron-secret'


@pytest.fixture(autouse=True)
def _isolated(settings, tmp_path):
    settings.ATTACHMENTS_DIR = tmp_path / 'attachments'
    settings.STAMPS_DIR = tmp_path / 'stamps'
    settings.PRACTICE_EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    settings.RESEND_API_KEY = ''
    settings.CRON_SECRET = CRON_SECRET
    settings.SURVEY_WORKER_URL = 'https://survey.test'
    # throttle counters and cached statistics live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def practitioner(db):
    p = create_account(email='dr.martin@example.fr', password='P@ssw0rd1', first_name='Claire',
                       last_name='Martin', practice_name='Cabinet Martin', specialty='Ostéopathe D.O.')
    p.city = 'Lyon'
    p.accountant_email = 'compta@example.fr'
    p.save()
    return p


@pytest.fixture
def other_practitioner(db):
    return create_account(email='dr.durand@example.fr', password='P@ssw0rd1', first_name='Paul',
                          last_name='Durand')


@pytest.fixture
def api(practitioner):
    client = APIClient()
    client.force_authenticate(user=practitioner.user)
    return client


@pytest.fixture
def other_api(other_practitioner):
    client = APIClient()
    client.force_authenticate(user=other_practitioner.user)
    return client


@pytest.fixture
def make_patient(practitioner):
    def _make(owner=None, **kwargs):
        values = {
            'gender': 'F',
            'first_name': 'Julie',
            'last_name': 'Bernard',
            'birth_date': datetime.date(1985, 6, 15),
            'phone': '06 12 34 56 78',
            'email': 'julie.bernard@example.fr',
        }
        values.update(kwargs)
        return Patient.objects.create(practitioner=owner or practitioner, **values)
    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient()


@pytest.fixture
def session_type(practitioner):
    return SessionType.objects.create(practitioner=practitioner, name='Séance adulte', price='65.00')


@pytest.fixture
def make_consultation(patient):
    def _make(target=None, **kwargs):
        values = {'date_time': timezone.now(), 'reason': 'Lombalgie aiguë'}
        values.update(kwargs)
        return Consultation.objects.create(patient=target or patient, **values)
    return _make


@pytest.fixture
def consultation(make_consultation):
    return make_consultation(advice='Marcher 20 minutes par jour.')


@pytest.fixture
def email_settings(practitioner):
    return EmailSettings.objects.create(
        practitioner=practitioner,
        smtp_host='smtp.example.fr', smtp_port=587, smtp_user='cabinet@example.fr', smtp_password='secret',
        imap_host='imap.example.fr', imap_port=993, imap_user='cabinet@example.fr', imap_password='secret',
        from_name='Cabinet Martin', from_email='cabinet@example.fr', is_verified=True,
    )


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload or {}
        self.status_code = status_code
        self.text = ''

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


@pytest.fixture
def survey_worker(monkeypatch):
    """Stands in for the external survey worker; records every call."""
    from practice.services import surveys

    calls = []
    state = {'results': [], 'fail': False}

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        if state['fail']:
            raise requests.ConnectionError('worker down')
        if url.endswith('/api/surveys/sync'):
            return FakeResponse({'results': state['results']})
        return FakeResponse({'success': True})

    monkeypatch.setattr(surveys.requests, 'post', fake_post)
    state['calls'] = calls
    return state
