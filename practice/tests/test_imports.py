import datetime

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone

from practice.models import AuditLog, Consultation, Patient
from practice.services.imports import detect_mapping, normalize_gender, parse_csv, parse_french_date

pytestmark = pytest.mark.django_db

EXPORT = (
    "Nom;Prénom;Date de naissance;Téléphone;Sexe;Email;Date séance;Motif\n"
    "Bernard;Julie;15/06/1985;06 12 34 56 78;F;julie@example.fr;04/03/2024;Lombalgie\n"
    "Bernard;Julie;15/06/1985;06 12 34 56 78;F;julie@example.fr;11/03/2024;Contrôle\n"
    "Roux;Marc;03/02/79;0611223344;Homme;;;\n"
    "Petit;Léa;;06 00 00 00 01;F;;;\n"
    ";;;;;;;\n"
)


def test_parse_french_dates():
    assert parse_french_date('15/06/1985') == datetime.date(1985, 6, 15)
    assert parse_french_date('3.2.79') == datetime.date(1979, 2, 3)
    assert parse_french_date('01-01-24') == datetime.date(2024, 1, 1)
    assert parse_french_date('1985-06-15') == datetime.date(1985, 6, 15)
    assert parse_french_date('31/02/2024') is None
    assert parse_french_date('juin 1985') is None


def test_gender_values():
    assert [normalize_gender(v) for v in ('F', 'femme', 'Féminin', 'W', 'Homme', 'M', '')] == [
        'F', 'F', 'F', 'F', 'M', 'M', 'M']


def test_header_detection_ignores_accents_and_duplicates():
    headers = ['NOM', 'Prénom', 'Téléphone', 'Nom de famille', 'Anamnèse', 'Remarque']
    assert detect_mapping(headers) == {0: 'last_name', 1: 'first_name', 2: 'phone', 4: 'anamnesis'}


def test_parse_csv_handles_quotes_and_commas():
    rows = parse_csv('\ufeffNom,Motif\r\n"Roux","Dos, cou ""aigu"""\r\n,\r\n')
    assert rows == [['Nom', 'Motif'], ['Roux', 'Dos, cou "aigu"']]


def test_import_creates_patients_and_consultations(api, practitioner):
    r = api.post('/api/patients/import', {'content': EXPORT}, format='json')
    assert r.status_code == 200
    assert r.data['data'] == {
        'total': 4,
        'patientsImported': 2,
        'consultationsImported': 2,
        'errors': [{'row': 5, 'message': 'La date de naissance est requise'}],
    }

    julie = Patient.objects.get(practitioner=practitioner, last_name='Bernard')
    assert julie.birth_date == datetime.date(1985, 6, 15)
    assert julie.email == 'julie@example.fr'
    visits = list(julie.consultations.order_by('date_time'))
    assert [c.reason for c in visits] == ['Lombalgie', 'Contrôle']
    assert timezone.localtime(visits[0].date_time).replace(tzinfo=None) == datetime.datetime(2024, 3, 4, 9, 0)

    marc = Patient.objects.get(last_name='Roux')
    assert (marc.gender, marc.birth_date) == ('M', datetime.date(1979, 2, 3))
    assert not marc.consultations.exists()
    assert AuditLog.objects.filter(action='patient_import', practitioner=practitioner).exists()


def test_import_attaches_consultations_to_existing_patient(api, patient):
    content = "Patient;Date;Motif;Conseils\nBERNARD Julie;12/03/2024;Cervicalgie;Bouger souvent\n"
    r = api.post('/api/patients/import', {'content': content}, format='json')
    assert r.data['data']['patientsImported'] == 0
    assert r.data['data']['consultationsImported'] == 1
    consultation = Consultation.objects.get()
    assert consultation.patient == patient
    assert consultation.advice == 'Bouger souvent'


def test_import_with_explicit_mapping(api, practitioner):
    content = "a,b,c,d,e\nRoux,Marc,1979-02-03,0611223344,inutile\n"
    mapping = {'0': 'last_name', '1': 'first_name', '2': 'birth_date', '3': 'phone', '4': '__ignore__'}
    r = api.post('/api/patients/import', {'content': content, 'mapping': mapping}, format='json')
    assert r.status_code == 200
    assert r.data['data']['patientsImported'] == 1
    assert Patient.objects.get().phone == '0611223344'


def test_import_reports_invalid_consultation_rows(api, patient):
    content = "Nom;Prénom;Motif\nBernard;Julie;" + 'x' * 501 + "\n"
    r = api.post('/api/patients/import', {'content': content}, format='json')
    assert r.data['data']['errors'] == [{'row': 2, 'message': 'Consultation: Le motif ne peut pas dépasser 500 caractères'}]
    assert not Consultation.objects.exists()


def test_import_uploaded_file(api, practitioner):
    upload = SimpleUploadedFile('export.csv', EXPORT.encode('utf-8-sig'), content_type='text/csv')
    r = api.post('/api/patients/import', {'file': upload}, format='multipart')
    assert r.status_code == 200
    assert r.data['data']['patientsImported'] == 2


@pytest.mark.parametrize('payload,message', [
    ({'content': 'Prénom;Motif\nJulie;Dos\n'}, 'Le champ "Nom" ou "Nom Prénom" est obligatoire'),
    ({'content': 'Nom;Prénom\n'}, 'Le fichier CSV ne contient pas de données à importer'),
    ({'content': ''}, 'Fichier CSV requis'),
    ({'content': 'Nom\nRoux\n', 'mapping': {'0': 'nickname'}}, 'Champ de correspondance invalide'),
])
def test_import_rejects_unusable_input(api, payload, message):
    r = api.post('/api/patients/import', payload, format='json')
    assert r.status_code == 400
    assert r.data['error'] == message
    assert not Patient.objects.exists()


def test_import_requires_csv_file(api):
    upload = SimpleUploadedFile('export.xlsx', b'PK\x03\x04', content_type='application/octet-stream')
    r = api.post('/api/patients/import', {'file': upload}, format='multipart')
    assert r.status_code == 400
    assert r.data['error'] == 'Veuillez sélectionner un fichier CSV'
