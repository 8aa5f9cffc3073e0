"""
CSV import of patients and their consultations.

Exports from other practice software rarely agree on column names, so
headers are matched against a table of common French aliases unless the
caller sends an explicit column mapping.  Each row is validated with the
same serializers as the API; rejected rows are reported by line number
and do not stop the import.
"""
import csv
import datetime
import io
import logging
import re
import unicodedata

from django.db import transaction
from django.utils import timezone

from practice.exceptions import first_message
from practice.formatting import GENDER_LABELS
from practice.models import Consultation, Patient, Practitioner
from practice.serializers.consultations import ConsultationSerializer
from practice.serializers.patients import PatientSerializer
from practice.services.audit import log_action
from practice.services.patients import create_patient

logger = logging.getLogger(__name__)

IGNORE = '__ignore__'
PATIENT_FIELDS = [
    'last_name', 'first_name', 'full_name', 'email', 'phone', 'birth_date', 'gender', 'profession',
    'trauma_history', 'medical_history', 'surgical_history', 'family_history',
]
CONSULTATION_FIELDS = ['consultation_date', 'reason', 'anamnesis', 'examination', 'advice']
IMPORT_FIELDS = PATIENT_FIELDS + CONSULTATION_FIELDS
EXTRA_FIELDS = ['email', 'profession', 'trauma_history', 'medical_history', 'surgical_history', 'family_history']

# keys are lower-cased and stripped of accents
COLUMN_ALIASES = {
    'nom': 'last_name',
    'last_name': 'last_name',
    'nom de famille': 'last_name',
    'nom_famille': 'last_name',
    'nom prenom': 'full_name',
    'nom et prenom': 'full_name',
    'nom_prenom': 'full_name',
    'nom complet': 'full_name',
    'nom patient': 'full_name',
    'patient': 'full_name',
    'prenom': 'first_name',
    'first_name': 'first_name',
    'email': 'email',
    'e-mail': 'email',
    'mail': 'email',
    'courriel': 'email',
    'telephone': 'phone',
    'tel': 'phone',
    'phone': 'phone',
    'portable': 'phone',
    'mobile': 'phone',
    'date de naissance': 'birth_date',
    'date_naissance': 'birth_date',
    'birth_date': 'birth_date',
    'naissance': 'birth_date',
    'ddn': 'birth_date',
    'sexe': 'gender',
    'genre': 'gender',
    'gender': 'gender',
    'profession': 'profession',
    'metier': 'profession',
    'date': 'consultation_date',
    'date consultation': 'consultation_date',
    'date de consultation': 'consultation_date',
    'date rdv': 'consultation_date',
    'date rendez-vous': 'consultation_date',
    'date de rendez-vous': 'consultation_date',
    'date seance': 'consultation_date',
    'date de seance': 'consultation_date',
    'motif': 'reason',
    'motif consultation': 'reason',
    'motif de consultation': 'reason',
    'raison': 'reason',
    'objet': 'reason',
    'plainte': 'reason',
    'anamnese': 'anamnesis',
    'anamnesis': 'anamnesis',
    'interrogatoire': 'anamnesis',
    'histoire clinique': 'anamnesis',
    'antecedents traumatiques': 'trauma_history',
    'histoire traumatique': 'trauma_history',
    'traumatismes': 'trauma_history',
    'trauma': 'trauma_history',
    'antecedents medicaux': 'medical_history',
    'histoire medicale': 'medical_history',
    'antecedents': 'medical_history',
    'antecedents chirurgicaux': 'surgical_history',
    'chirurgie': 'surgical_history',
    'operations': 'surgical_history',
    'antecedents familiaux': 'family_history',
    'histoire familiale': 'family_history',
    'heredite': 'family_history',
    'examen': 'examination',
    'examen clinique': 'examination',
    'examination': 'examination',
    'observation': 'examination',
    'bilan': 'examination',
    'bilan clinique': 'examination',
    'conseil': 'advice',
    'conseils': 'advice',
    'advice': 'advice',
    'recommandations': 'advice',
    'conseils post-seance': 'advice',
    'traitement': 'advice',
}

GENDER_VALUES = {
    **{label.upper(): code for code, label in GENDER_LABELS.items()},
    'M': 'M', 'H': 'M', 'MASCULIN': 'M',
    'F': 'F', 'W': 'F', 'FEMININ': 'F', 'FEMININE': 'F',
}

ISO_DATE_RE = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$')
FRENCH_DATE_RE = re.compile(r'^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4}|\d{2})$')
CONSULTATION_HOUR = datetime.time(9, 0)


def strip_accents(value: str) -> str:
    return ''.join(c for c in unicodedata.normalize('NFD', value) if not unicodedata.combining(c))


def parse_csv(content: str) -> list:
    """Rows of stripped cells; the delimiter is whichever of ``;`` and ``,`` the header uses more."""
    content = content.lstrip('\ufeff')
    header = content.split('\n', 1)[0]
    delimiter = ';' if header.count(';') > header.count(',') else ','
    rows = []
    for row in csv.reader(io.StringIO(content), delimiter=delimiter):
        cells = [cell.strip() for cell in row]
        if any(cells):
            rows.append(cells)
    return rows


def detect_mapping(headers) -> dict:
    mapping = {}
    used = set()
    for index, header in enumerate(headers):
        field = COLUMN_ALIASES.get(strip_accents(header.strip().lower()))
        if field and field not in used:
            mapping[index] = field
            used.add(field)
    return mapping


def parse_french_date(raw: str):
    """``dd/mm/yyyy``, ``dd-mm-yy``, ``dd.mm.yyyy`` or ISO; ``None`` when unreadable."""
    raw = (raw or '').strip()
    m = ISO_DATE_RE.match(raw)
    if m:
        year, month, day = m.groups()
    else:
        m = FRENCH_DATE_RE.match(raw)
        if not m:
            return None
        day, month, year = m.groups()
        if len(year) == 2:
            year = int(year) + (1900 if int(year) >= 50 else 2000)
    try:
        return datetime.date(int(year), int(month), int(day))
    except ValueError:
        return None


def normalize_gender(raw: str) -> str:
    return GENDER_VALUES.get(strip_accents((raw or '').strip().upper()), 'M')


def _cell(row, columns: dict, field: str) -> str:
    index = columns.get(field)
    if index is None or index >= len(row):
        return ''
    return row[index].strip()


def _names(row, columns: dict):
    last_name, first_name = _cell(row, columns, 'last_name'), _cell(row, columns, 'first_name')
    full_name = _cell(row, columns, 'full_name')
    if full_name and not last_name:
        last_name, _, first_name = full_name.partition(' ')
        first_name = ' '.join(first_name.split())
    return last_name, first_name


def _patient_payload(row, columns: dict, last_name: str, first_name: str) -> dict:
    birth_raw = _cell(row, columns, 'birth_date')
    birth_date = parse_french_date(birth_raw)
    payload = {
        'gender': normalize_gender(_cell(row, columns, 'gender')),
        'last_name': last_name,
        'first_name': first_name,
        'phone': _cell(row, columns, 'phone'),
        'birth_date': birth_date.isoformat() if birth_date else (birth_raw or None),
    }
    for field in EXTRA_FIELDS:
        payload[field] = _cell(row, columns, field)
    return payload


def _consultation_time(raw: str):
    day = parse_french_date(raw)
    if day is None:
        return timezone.now()
    return timezone.make_aware(datetime.datetime.combine(day, CONSULTATION_HOUR))


@transaction.atomic
def import_patients(practitioner: Practitioner, content: str, mapping=None) -> dict:
    """Create the patients (and consultations) described by a CSV export.

    Rows naming a patient already in the practitioner's file, or earlier
    in the same file, attach their consultation to that patient instead
    of creating a duplicate.  Raises ``ValueError`` when the file has no
    data rows or no name column.
    """
    rows = parse_csv(content)
    if len(rows) < 2:
        raise ValueError('Le fichier CSV ne contient pas de données à importer')
    headers, data_rows = rows[0], rows[1:]

    columns = {}
    for index, field in sorted((mapping or detect_mapping(headers)).items()):
        if field != IGNORE and 0 <= index < len(headers):
            columns.setdefault(field, index)
    if 'last_name' not in columns and 'full_name' not in columns:
        raise ValueError('Le champ "Nom" ou "Nom Prénom" est obligatoire')
    with_consultations = any(f in columns for f in CONSULTATION_FIELDS)

    result = {'total': len(data_rows), 'patientsImported': 0, 'consultationsImported': 0, 'errors': []}
    seen = {}
    for line, row in enumerate(data_rows, start=2):
        last_name, first_name = _names(row, columns)
        if not last_name and not first_name:
            continue

        key = (last_name.lower(), first_name.lower())
        patient = seen.get(key) or Patient.objects.filter(
            practitioner=practitioner, last_name__iexact=last_name, first_name__iexact=first_name,
        ).first()
        if patient is None:
            s = PatientSerializer(data=_patient_payload(row, columns, last_name, first_name))
            if not s.is_valid():
                result['errors'].append({'row': line, 'message': first_message(s.errors)})
                continue
            patient = create_patient(practitioner, s.validated_data)
            result['patientsImported'] += 1
        seen[key] = patient

        if not with_consultations:
            continue
        reason, date_raw = _cell(row, columns, 'reason'), _cell(row, columns, 'consultation_date')
        if not (reason or date_raw):
            continue
        s = ConsultationSerializer(data={
            'patient_id': str(patient.id),
            'date_time': _consultation_time(date_raw),
            'reason': reason or 'Consultation',
            'anamnesis': _cell(row, columns, 'anamnesis'),
            'examination': _cell(row, columns, 'examination'),
            'advice': _cell(row, columns, 'advice'),
        })
        if not s.is_valid():
            result['errors'].append({'row': line, 'message': f"Consultation: {first_message(s.errors)}"})
            continue
        vd = s.validated_data
        Consultation.objects.create(patient=patient, date_time=vd['date_time'], reason=vd['reason'],
                                    anamnesis=vd.get('anamnesis', ''), examination=vd.get('examination', ''),
                                    advice=vd.get('advice', ''))
        result['consultationsImported'] += 1

    logger.info("CSV import for practitioner %s: %d patient(s), %d consultation(s), %d error(s)",
                practitioner.id, result['patientsImported'], result['consultationsImported'], len(result['errors']))
    log_action(practitioner=practitioner, action='patient_import', object_type='patient',
               detail={k: result[k] for k in ('total', 'patientsImported', 'consultationsImported')})
    return result
