import datetime

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from practice.models import ScheduledTask

pytestmark = pytest.mark.django_db


@pytest.fixture
def tasks(practitioner, patient, make_patient, make_consultation):
    now = timezone.now()
    marc = make_patient(first_name='Marc', last_name='Roux', email='')
    first = make_consultation(date_time=now - datetime.timedelta(days=14))
    second = make_consultation(marc, date_time=now - datetime.timedelta(days=8), reason='Cervicalgie')
    third = make_consultation(date_time=now - datetime.timedelta(days=2))
    return [
        ScheduledTask.objects.create(practitioner=practitioner, consultation=first, status='completed',
                                     scheduled_for=now - datetime.timedelta(days=7), executed_at=now),
        ScheduledTask.objects.create(practitioner=practitioner, consultation=second, status='failed',
                                     scheduled_for=now - datetime.timedelta(days=1),
                                     error_message='Adresse email manquante'),
        ScheduledTask.objects.create(practitioner=practitioner, consultation=third,
                                     scheduled_for=now + datetime.timedelta(days=5)),
    ]


def test_list_newest_first_with_counts(api, tasks):
    r = api.get('/api/scheduled-tasks')
    assert r.status_code == 200
    data = r.data['data']
    assert [t['id'] for t in data['tasks']] == [str(t.id) for t in reversed(tasks)]
    assert data['counts'] == {'pending': 1, 'completed': 1, 'failed': 1, 'cancelled': 0, 'all': 3}


def test_task_carries_consultation_and_patient(api, tasks):
    failed = next(t for t in api.get('/api/scheduled-tasks').data['data']['tasks'] if t['status'] == 'failed')
    assert failed['type'] == 'follow_up_email'
    assert failed['type_label'] == 'Suivi J+7'
    assert failed['error_message'] == 'Adresse email manquante'
    assert failed['executed_at'] is None
    assert failed['consultation']['reason'] == 'Cervicalgie'
    assert failed['consultation']['patient'] == {'first_name': 'Marc', 'last_name': 'Roux', 'email': None}


def test_filter_by_status_keeps_global_counts(api, tasks):
    data = api.get('/api/scheduled-tasks', {'status': 'pending'}).data['data']
    assert [t['id'] for t in data['tasks']] == [str(tasks[2].id)]
    assert data['counts']['all'] == 3


def test_search_by_patient_name(api, tasks):
    data = api.get('/api/scheduled-tasks', {'search': 'roux'}).data['data']
    assert [t['id'] for t in data['tasks']] == [str(tasks[1].id)]
    assert api.get('/api/scheduled-tasks', {'search': 'Julie Bernard'}).data['data']['tasks'][0]['id'] == str(tasks[2].id)


def test_unknown_status_is_rejected(api):
    r = api.get('/api/scheduled-tasks', {'status': 'running'})
    assert r.status_code == 400
    assert r.data['error'] == 'Statut invalide'


def test_tasks_are_private(other_api, tasks):
    data = other_api.get('/api/scheduled-tasks').data['data']
    assert data['tasks'] == []
    assert data['counts']['all'] == 0


def test_requires_authentication():
    assert APIClient().get('/api/scheduled-tasks').status_code == 401
