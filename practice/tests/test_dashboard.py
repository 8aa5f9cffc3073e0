import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from practice.models import Conversation, Invoice, Payment, ScheduledTask, SurveyResponse
from practice.services.dashboard import upcoming_birthdays

pytestmark = pytest.mark.django_db

MARCH = 'startDate=2024-03-01&endDate=2024-03-31'


def at(day, hour=10):
    return datetime.datetime(2024, 3, day, hour, 0, tzinfo=datetime.timezone.utc)


def years_ago(n):
    return datetime.date(timezone.localdate().year - n, 1, 1)


@pytest.fixture
def activity(patient, make_patient, make_consultation):
    patient.birth_date = years_ago(35)
    patient.save()
    child = make_patient(first_name='Léo', gender='M', birth_date=years_ago(10), email='')
    make_patient(first_name='Odette', birth_date=years_ago(80), email='')

    # Monday, Tuesday, Saturday
    first = make_consultation(date_time=at(4), reason='Lombalgie aiguë')
    make_consultation(date_time=at(5), reason='mal de dos depuis 3 jours')
    make_consultation(child, date_time=at(9), reason='Migraine')
    make_consultation(date_time=at(6), reason='Entorse', archived_at=timezone.now())
    make_consultation(date_time=datetime.datetime(2024, 4, 2, 10, tzinfo=datetime.timezone.utc))

    inv = Invoice.objects.create(consultation=first, invoice_number='FACT-1', amount=Decimal('65'), status='paid',
                                 issued_at=at(4), paid_at=at(4, 11))
    Payment.objects.create(invoice=inv, amount=Decimal('65'), method='card', payment_date=at(4).date())
    return child


def test_statistics(api, activity):
    r = api.get(f'/api/statistics?{MARCH}')
    assert r.status_code == 200
    data = r.data['data']

    patients = data['patients']
    assert patients['total'] == 3
    assert patients['by_gender'] == [{'gender': 'M', 'count': 1}, {'gender': 'F', 'count': 2}]
    groups = {g['age_group']: g['count'] for g in patients['by_age_group']}
    assert (groups['0-17'], groups['30-44'], groups['75+']) == (1, 1, 1)

    consultations = data['consultations']
    assert consultations['total'] == 3
    assert consultations['unique_patients'] == 2
    assert consultations['avg_per_patient'] == 1.5
    assert consultations['by_month'] == [{'year': 2024, 'month': 3, 'count': 3}]
    days = {d['day']: d['count'] for d in consultations['by_day_of_week']}
    assert days == {0: 0, 1: 1, 2: 1, 3: 0, 4: 0, 5: 0, 6: 1}
    assert consultations['by_reason'] == [{'reason': 'Lombalgie', 'count': 2}, {'reason': 'Céphalées', 'count': 1}]

    revenue = data['revenue']
    assert revenue['total'] == 65.0
    assert revenue['count'] == 1
    assert revenue['by_month'] == [{'year': 2024, 'month': 3, 'total': 65.0, 'count': 1}]
    assert revenue['by_payment_method'] == [{'method': 'card', 'total': 65.0}]


def test_statistics_demographic_filters(api, activity):
    data = api.get(f'/api/statistics?{MARCH}&gender=M&ageGroup=all').data['data']
    assert data['patients']['total'] == 1
    assert data['consultations']['total'] == 1
    assert data['revenue']['count'] == 0

    data = api.get(f'/api/statistics?{MARCH}&ageGroup=30-44').data['data']
    assert data['consultations']['total'] == 2


def test_statistics_are_cached(api, activity, make_consultation):
    first = api.get(f'/api/statistics?{MARCH}').data['data']['consultations']['total']
    make_consultation(date_time=at(20))
    assert api.get(f'/api/statistics?{MARCH}').data['data']['consultations']['total'] == first
    # another filter set is computed afresh
    assert api.get('/api/statistics?startDate=2024-03-01&endDate=2024-03-30').data['data']['consultations'][
        'total'] == first + 1


def test_statistics_invalid_filter(api):
    assert api.get('/api/statistics?gender=X').status_code == 400


def test_upcoming_birthdays():
    today = datetime.date(2024, 3, 14)

    def p(pk, born):
        return SimpleNamespace(id=pk, first_name='P', last_name=str(pk), birth_date=born)

    result = upcoming_birthdays([
        p(1, datetime.date(1990, 3, 16)),
        p(2, datetime.date(1980, 3, 13)),
        p(3, datetime.date(2000, 3, 21)),
        p(4, datetime.date(1992, 3, 22)),
    ], today)
    assert [b['id'] for b in result] == ['1', '3']
    assert result[0]['next_birthday'] == '2024-03-16'

    leap = upcoming_birthdays([p(5, datetime.date(1996, 2, 29))], datetime.date(2023, 2, 26))
    assert leap[0]['next_birthday'] == '2023-03-01'

    many = upcoming_birthdays([p(i, datetime.date(1990, 3, 14 + i)) for i in range(5)], today)
    assert [b['id'] for b in many] == ['0', '1', '2']


def test_dashboard(api, practitioner, patient, make_consultation, consultation):
    Invoice.objects.create(consultation=consultation, invoice_number='FACT-1', amount=Decimal('65'),
                           status='paid', issued_at=timezone.now(), paid_at=timezone.now())
    ScheduledTask.objects.create(practitioner=practitioner, consultation=consultation,
                                 scheduled_for=timezone.now() + datetime.timedelta(days=7))
    Conversation.objects.create(practitioner=practitioner, patient=patient, unread_count=2)
    Conversation.objects.create(practitioner=practitioner, external_email='x@example.fr', unread_count=1)
    SurveyResponse.objects.create(practitioner=practitioner, patient=patient, consultation=consultation,
                                  token='a' * 32, status='completed', overall_rating=4)
    for days in range(1, 7):
        make_consultation(date_time=timezone.now() - datetime.timedelta(days=days))

    data = api.get('/api/dashboard').data['data']
    assert data['stats'] == {'totalPatients': 1, 'todayConsultations': 1, 'monthlyRevenue': 65.0,
                             'pendingFollowUps': 1, 'unreadMessages': 1}
    assert data['surveys'] == {'total': 1, 'completed': 1, 'avg_rating': 4.0}
    recent = data['recentConsultations']
    assert len(recent) == 5
    assert recent[0]['id'] == str(consultation.id)
    assert recent[0]['patient']['first_name'] == 'Julie'


def test_healthz():
    r = APIClient().get('/healthz')
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'db': True}


class TestPractitionerSettings:
    def test_read(self, api):
        data = api.get('/api/settings/practitioner').data['data']
        assert data['practice_name'] == 'Cabinet Martin'
        assert data['accountant_email'] == 'compta@example.fr'

    def test_partial_update(self, api, practitioner):
        r = api.patch('/api/settings/practitioner', {'city': 'Villeurbanne', 'default_rate': '70.00'},
                      format='json')
        assert r.status_code == 200
        assert r.data['data']['city'] == 'Villeurbanne'
        assert r.data['data']['default_rate'] == 70.0
        practitioner.refresh_from_db()
        assert practitioner.practice_name == 'Cabinet Martin'

    @pytest.mark.parametrize('payload,message', [
        ({'primary_color': 'blue'}, 'Format de couleur invalide (ex: #2563eb)'),
        ({'default_rate': '-5'}, 'Le tarif doit être positif'),
        ({'accountant_email': 'compta'}, "Format d'email invalide"),
        ({'siret': '1' * 15}, 'Le SIRET ne peut pas dépasser 14 caractères'),
    ])
    def test_validation(self, api, payload, message):
        r = api.patch('/api/settings/practitioner', payload, format='json')
        assert r.status_code == 400
        assert r.data['error'] == message
