import pytest
from rest_framework.test import APIClient

from conftest import CRON_SECRET
from practice.models import SurveyResponse
from practice.services import surveys

pytestmark = pytest.mark.django_db


@pytest.fixture
def make_survey(practitioner, consultation):
    def _make(token, owner=None, target=None, **kw):
        c = target or consultation
        return SurveyResponse.objects.create(practitioner=owner or practitioner, patient=c.patient,
                                             consultation=c, token=token, **kw)
    return _make


@pytest.fixture
def events(monkeypatch):
    sent = []
    monkeypatch.setattr(surveys, 'broadcast', lambda event_type, **payload: sent.append((event_type, payload)))
    return sent


def answer(token, rating=5, pain='better', recommend=True):
    return {'token': token, 'responded_at': '2024-03-20T18:45:00Z',
            'response': {'overall_rating': rating, 'pain_evolution': pain, 'comment': 'Merci !',
                         'would_recommend': recommend}}


def test_generate_token():
    token = surveys.generate_token()
    assert len(token) == 32
    assert set(token) <= set(surveys.TOKEN_ALPHABET)


def test_register_survey(consultation, survey_worker):
    survey = surveys.register_survey(consultation)
    url, payload = survey_worker['calls'][0]
    assert url == 'https://survey.test/api/surveys'
    assert payload['token'] == survey.token
    assert payload['patient_first_name'] == 'Julie'
    assert payload['consultation_id'] == str(consultation.id)
    assert survey.status == 'pending'


def test_register_survey_worker_down(consultation, survey_worker):
    survey_worker['fail'] = True
    with pytest.raises(surveys.SurveyWorkerError):
        surveys.register_survey(consultation)
    assert not SurveyResponse.objects.exists()


def test_nothing_pending(api, survey_worker):
    r = api.post('/api/surveys/sync')
    assert r.data['data'] == {'message': 'Aucun questionnaire en attente', 'synced': 0}
    assert survey_worker['calls'] == []


def test_sync_applies_answers(api, make_survey, survey_worker, events):
    make_survey('a' * 32)
    make_survey('b' * 32)
    survey_worker['results'] = [answer('a' * 32, pain='sideways'), answer('z' * 32)]

    r = api.post('/api/surveys/sync')
    assert r.data['data'] == {'message': '1 questionnaire(s) synchronisé(s)', 'synced': 1}

    done = SurveyResponse.objects.get(token='a' * 32)
    assert done.status == 'completed'
    assert done.overall_rating == 5
    assert done.pain_evolution == ''
    assert done.comment == 'Merci !'
    assert done.would_recommend is True
    assert done.responded_at.isoformat() == '2024-03-20T18:45:00+00:00'
    assert done.synced_at is not None
    assert SurveyResponse.objects.get(token='b' * 32).status == 'pending'

    urls = [url for url, _ in survey_worker['calls']]
    assert urls == ['https://survey.test/api/surveys/sync', 'https://survey.test/api/surveys/delete']
    assert survey_worker['calls'][1][1] == {'tokens': ['a' * 32]}
    assert events == [('survey.synced', {'synced': 1})]


def test_user_sync_is_scoped_to_practitioner(api, make_survey, other_practitioner, make_patient,
                                             make_consultation, survey_worker, events):
    make_survey('a' * 32)
    foreign = make_consultation(make_patient(other_practitioner))
    make_survey('c' * 32, owner=other_practitioner, target=foreign)
    api.post('/api/surveys/sync')
    assert survey_worker['calls'][0][1] == {'tokens': ['a' * 32]}


def test_cron_sync_covers_everyone(make_survey, other_practitioner, make_patient, make_consultation,
                                   survey_worker, events):
    make_survey('a' * 32)
    foreign = make_consultation(make_patient(other_practitioner))
    make_survey('c' * 32, owner=other_practitioner, target=foreign)
    survey_worker['results'] = [answer('a' * 32), answer('c' * 32, rating=3, pain='same')]

    r = APIClient().post('/api/surveys/sync', HTTP_AUTHORIZATION=f'Bearer {CRON_SECRET}')
    assert r.status_code == 200
    assert sorted(survey_worker['calls'][0][1]['tokens']) == ['a' * 32, 'c' * 32]
    assert r.data['data']['synced'] == 2


def test_worker_failure_is_502(api, make_survey, survey_worker):
    make_survey('a' * 32)
    survey_worker['fail'] = True
    r = api.post('/api/surveys/sync')
    assert r.status_code == 502
    assert r.data['error'].startswith('Erreur de synchronisation')


def test_sync_without_credentials():
    assert APIClient().post('/api/surveys/sync').status_code == 401


def test_list_with_stats(api, make_survey, make_consultation, other_practitioner, make_patient):
    make_survey('a' * 32, status='completed', overall_rating=5, pain_evolution='better', would_recommend=True)
    make_survey('b' * 32, status='completed', overall_rating=4, pain_evolution='same', would_recommend=False)
    other = make_consultation()
    make_survey('d' * 32, target=other)
    make_survey('c' * 32, owner=other_practitioner, target=make_consultation(make_patient(other_practitioner)))

    data = api.get('/api/surveys').data['data']
    assert len(data['surveys']) == 3
    assert data['stats'] == {'total': 3, 'completed': 2, 'pending': 1, 'avg_rating': 4.5, 'pain_better': 1,
                             'pain_same': 1, 'pain_worse': 0, 'would_recommend': 1}

    scoped = api.get(f'/api/surveys?consultation_id={other.id}').data['data']
    assert [s['token'] for s in scoped['surveys']] == ['d' * 32]
