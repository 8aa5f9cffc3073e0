import pytest

from practice.models import AuditLog, Consultation, MedicalHistoryEntry, Patient, SessionType

pytestmark = pytest.mark.django_db

PATIENT = {
    'gender': 'M',
    'first_name': 'Hugo',
    'last_name': 'Lefèvre',
    'birth_date': '1979-02-03',
    'phone': '06 11 22 33 44',
    'email': 'hugo@example.fr',
}


def test_create_patient(api, practitioner):
    r = api.post('/api/patients', PATIENT, format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['last_name'] == 'Lefèvre'
    assert data['age'] >= 45
    assert Patient.objects.get(id=data['id']).practitioner == practitioner
    assert AuditLog.objects.filter(action='patient_create', object_id=data['id']).exists()


@pytest.mark.parametrize('field,value,message', [
    ('phone', '12345', 'Format de téléphone français invalide (ex: 06 12 34 56 78)'),
    ('birth_date', '2999-01-01', 'La date de naissance ne peut pas être dans le futur'),
    ('birth_date', '1850-01-01', 'La date de naissance semble incorrecte'),
    ('first_name', '', 'Le prénom est requis'),
    ('gender', 'X', 'Le sexe est requis'),
])
def test_create_patient_validation(api, field, value, message):
    r = api.post('/api/patients', {**PATIENT, field: value}, format='json')
    assert r.status_code == 400
    assert r.data['error'] == message


def test_patient_names_are_sanitised(api):
    r = api.post('/api/patients', {**PATIENT, 'first_name': '<span>Hugo</span>'}, format='json')
    assert r.status_code == 201
    assert r.data['data']['first_name'] == 'Hugo'


def test_list_searches_and_hides_archived(api, patient, make_patient, make_consultation):
    julie = patient
    make_patient(first_name='Marc', last_name='Roux', email='')
    make_patient(first_name='Anne', last_name='Bernardin', archived_at='2024-01-01T00:00:00Z')
    make_consultation(julie)

    r = api.get('/api/patients', {'q': 'bern'})
    assert r.status_code == 200
    assert [p['first_name'] for p in r.data['data']] == ['Julie']
    assert r.data['data'][0]['consultation_count'] == 1
    assert r.data['pagination'] == {'total': 1, 'page': 1, 'pageSize': 20}

    r = api.get('/api/patients', {'q': 'bern', 'includeArchived': 'true'})
    assert len(r.data['data']) == 2


def test_list_paginates(api, make_patient):
    for i in range(5):
        make_patient(last_name=f'Nom{i}')
    r = api.get('/api/patients', {'page': 2, 'pageSize': 2})
    assert [p['last_name'] for p in r.data['data']] == ['Nom2', 'Nom3']
    assert r.data['pagination']['total'] == 5


def test_other_practitioner_cannot_read_patient(other_api, patient):
    r = other_api.get(f'/api/patients/{patient.id}')
    assert r.status_code == 403


def test_unknown_patient_is_404(api):
    r = api.get('/api/patients/00000000-0000-0000-0000-000000000000')
    assert r.status_code == 404
    assert r.data['error'] == 'Patient non trouvé'


def test_detail_includes_last_consultation(api, patient, make_consultation):
    c = make_consultation(reason='Cervicalgie')
    r = api.get(f'/api/patients/{patient.id}')
    assert r.status_code == 200
    assert r.data['data']['consultation_count'] == 1
    assert r.data['data']['last_consultation']['id'] == str(c.id)


def test_partial_update(api, patient):
    r = api.patch(f'/api/patients/{patient.id}', {'profession': 'Menuisier', 'email': ''}, format='json')
    assert r.status_code == 200
    patient.refresh_from_db()
    assert patient.profession == 'Menuisier'
    assert patient.email == ''
    assert patient.first_name == 'Julie'


def test_archive_and_unarchive(api, patient):
    r = api.post(f'/api/patients/{patient.id}/archive')
    assert r.data['data']['archived_at'] is not None
    r = api.post(f'/api/patients/{patient.id}/unarchive')
    assert r.data['data']['archived_at'] is None


def test_delete_patient_cascades(api, patient, make_consultation, django_capture_on_commit_callbacks):
    make_consultation()
    MedicalHistoryEntry.objects.create(patient=patient, history_type='medical', description='Asthme')
    with django_capture_on_commit_callbacks(execute=True):
        r = api.delete(f'/api/patients/{patient.id}')
    assert r.status_code == 200
    assert not Patient.objects.filter(id=patient.id).exists()
    assert not Consultation.objects.exists()
    assert not MedicalHistoryEntry.objects.exists()
    assert AuditLog.objects.filter(action='patient_delete').exists()


class TestMedicalHistory:
    def test_create_assigns_display_order(self, api, patient):
        url = f'/api/patients/{patient.id}/history'
        first = api.post(url, {'history_type': 'traumatic', 'description': 'Entorse cheville',
                               'onset_age': 16}, format='json')
        second = api.post(url, {'history_type': 'surgical', 'description': 'Appendicectomie',
                                'onset_date': '2010-05-01'}, format='json')
        assert first.status_code == second.status_code == 201
        assert [first.data['data']['display_order'], second.data['data']['display_order']] == [0, 1]
        listed = api.get(url).data['data']
        assert [e['description'] for e in listed] == ['Entorse cheville', 'Appendicectomie']

    def test_single_onset_mode(self, api, patient):
        r = api.post(f'/api/patients/{patient.id}/history', {
            'history_type': 'medical', 'description': 'Migraine', 'onset_age': 20, 'onset_date': '2000-01-01',
        }, format='json')
        assert r.status_code == 400

    def test_duration_requires_unit(self, api, patient):
        r = api.post(f'/api/patients/{patient.id}/history', {
            'history_type': 'medical', 'description': 'Migraine', 'onset_duration_value': 3,
        }, format='json')
        assert r.status_code == 400
        assert r.data['error'] == 'La durée et son unité doivent être renseignées ensemble'

    def test_update_switches_onset_mode(self, api, patient):
        entry = MedicalHistoryEntry.objects.create(patient=patient, history_type='medical', description='Asthme',
                                                   onset_age=8)
        url = f'/api/patients/{patient.id}/history/{entry.id}'
        r = api.patch(url, {'onset_age': None, 'onset_duration_value': 2, 'onset_duration_unit': 'years'},
                      format='json')
        assert r.status_code == 200
        entry.refresh_from_db()
        assert entry.onset_age is None
        assert (entry.onset_duration_value, entry.onset_duration_unit) == (2, 'years')

        r = api.patch(url, {'onset_date': '2020-01-01'}, format='json')
        assert r.status_code == 400

    def test_delete(self, api, patient):
        entry = MedicalHistoryEntry.objects.create(patient=patient, history_type='family', description='Diabète')
        assert api.delete(f'/api/patients/{patient.id}/history/{entry.id}').status_code == 200
        assert not MedicalHistoryEntry.objects.exists()


class TestSessionTypes:
    def test_create_and_list_active(self, api):
        api.post('/api/session-types', {'name': 'Nourrisson', 'price': '50'}, format='json')
        api.post('/api/session-types', {'name': 'Ancien', 'price': '40', 'is_active': False}, format='json')
        r = api.get('/api/session-types', {'active': 'true'})
        assert [st['name'] for st in r.data['data']] == ['Nourrisson']
        assert r.data['data'][0]['price'] == 50.0

    def test_price_must_be_positive(self, api):
        r = api.post('/api/session-types', {'name': 'Gratuit', 'price': '0'}, format='json')
        assert r.status_code == 400
        assert r.data['error'] == 'Le tarif doit être positif'

    def test_delete_used_type_deactivates_it(self, api, session_type, make_consultation):
        make_consultation(session_type=session_type)
        r = api.delete(f'/api/session-types/{session_type.id}')
        assert r.data['data'] == {'success': True, 'deleted': False}
        session_type.refresh_from_db()
        assert session_type.is_active is False

    def test_delete_unused_type(self, api, session_type):
        r = api.delete(f'/api/session-types/{session_type.id}')
        assert r.data['data']['deleted'] is True
        assert not SessionType.objects.exists()
