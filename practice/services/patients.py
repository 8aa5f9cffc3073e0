from django.db import transaction
from django.db.models import Count, Max, Q
from django.utils import timezone

from practice.formatting import calculate_age
from practice.models import (
    Conversation,
    Consultation,
    Invoice,
    MedicalHistoryEntry,
    Patient,
    Payment,
    Practitioner,
    ScheduledTask,
    SessionType,
    SurveyResponse,
)
from practice.services.files import remove_files_for

PATIENT_FIELDS = (
    'gender', 'first_name', 'last_name', 'birth_date', 'phone', 'email', 'profession', 'sport_activity',
    'primary_physician', 'trauma_history', 'medical_history', 'surgical_history', 'family_history', 'notes',
)
HISTORY_FIELDS = (
    'history_type', 'description', 'onset_date', 'onset_age', 'onset_duration_value', 'onset_duration_unit',
    'is_vigilance', 'note', 'display_order',
)


def get_patient(practitioner: Practitioner, patient_id) -> Patient:
    """Fetch a patient; raises ``Patient.DoesNotExist`` or ``PermissionError``."""
    patient = Patient.objects.get(id=patient_id)
    if patient.practitioner_id != practitioner.id:
        raise PermissionError('Non autorisé')
    return patient


def serialize_patient(p: Patient, *, extra: bool = False) -> dict:
    data = {
        'id': str(p.id),
        'gender': p.gender,
        'first_name': p.first_name,
        'last_name': p.last_name,
        'birth_date': p.birth_date.isoformat(),
        'age': calculate_age(p.birth_date),
        'phone': p.phone,
        'email': p.email or None,
        'profession': p.profession or None,
        'sport_activity': p.sport_activity or None,
        'primary_physician': p.primary_physician or None,
        'archived_at': p.archived_at.isoformat() if p.archived_at else None,
        'created_at': p.created_at.isoformat(),
    }
    if extra:
        data.update({
            'trauma_history': p.trauma_history or None,
            'medical_history': p.medical_history or None,
            'surgical_history': p.surgical_history or None,
            'family_history': p.family_history or None,
            'notes': p.notes or None,
        })
    return data


def list_patients(practitioner: Practitioner, *, q=None, include_archived=False):
    qs = Patient.objects.filter(practitioner=practitioner)
    if not include_archived:
        qs = qs.filter(archived_at__isnull=True)
    if q:
        for term in q.split():
            qs = qs.filter(
                Q(first_name__icontains=term) | Q(last_name__icontains=term)
                | Q(email__icontains=term) | Q(phone__icontains=term)
            )
    return qs.annotate(
        consultation_count=Count('consultations'),
        last_consultation_at=Max('consultations__date_time'),
    ).order_by('last_name', 'first_name')


def patient_detail(patient: Patient) -> dict:
    data = serialize_patient(patient, extra=True)
    consultations = patient.consultations.filter(archived_at__isnull=True)
    last = consultations.order_by('-date_time').first()
    data['consultation_count'] = consultations.count()
    data['last_consultation'] = {
        'id': str(last.id),
        'date_time': last.date_time.isoformat(),
        'reason': last.reason,
    } if last else None
    return data


def create_patient(practitioner: Practitioner, data: dict) -> Patient:
    return Patient.objects.create(
        practitioner=practitioner,
        **{k: (data.get(k) or '') for k in PATIENT_FIELDS if k != 'birth_date'},
        birth_date=data['birth_date'],
    )


def update_patient(patient: Patient, data: dict) -> Patient:
    fields = [k for k in PATIENT_FIELDS if k in data]
    for k in fields:
        setattr(patient, k, data[k] if data[k] is not None else '')
    if fields:
        patient.save(update_fields=fields + ['updated_at'])
    return patient


def set_archived(patient: Patient, archived: bool) -> Patient:
    patient.archived_at = timezone.now() if archived else None
    patient.save(update_fields=['archived_at', 'updated_at'])
    return patient


@transaction.atomic
def delete_consultations(consultation_ids) -> None:
    """Delete consultations and everything hanging off them, children first."""
    consultation_ids = list(consultation_ids)
    remove_files_for(consultation_ids)
    Payment.objects.filter(invoice__consultation_id__in=consultation_ids).delete()
    Invoice.objects.filter(consultation_id__in=consultation_ids).delete()
    ScheduledTask.objects.filter(consultation_id__in=consultation_ids).delete()
    SurveyResponse.objects.filter(consultation_id__in=consultation_ids).delete()
    Consultation.objects.filter(id__in=consultation_ids).delete()


@transaction.atomic
def delete_patient(patient: Patient) -> None:
    delete_consultations(patient.consultations.values_list('id', flat=True))
    SurveyResponse.objects.filter(patient=patient).delete()
    Conversation.objects.filter(patient=patient).delete()
    MedicalHistoryEntry.objects.filter(patient=patient).delete()
    patient.delete()


# ---------------------------------------------------------------------
# Medical history
# ---------------------------------------------------------------------
def serialize_history(e: MedicalHistoryEntry) -> dict:
    return {
        'id': str(e.id),
        'patient_id': str(e.patient_id),
        'history_type': e.history_type,
        'description': e.description,
        'onset_date': e.onset_date.isoformat() if e.onset_date else None,
        'onset_age': e.onset_age,
        'onset_duration_value': e.onset_duration_value,
        'onset_duration_unit': e.onset_duration_unit or None,
        'is_vigilance': e.is_vigilance,
        'note': e.note or None,
        'display_order': e.display_order,
    }


def create_history_entry(patient: Patient, data: dict) -> MedicalHistoryEntry:
    if 'display_order' not in data:
        last = patient.history_entries.aggregate(m=Max('display_order'))['m']
        data = {**data, 'display_order': 0 if last is None else last + 1}
    return MedicalHistoryEntry.objects.create(
        patient=patient, **{k: data[k] for k in HISTORY_FIELDS if k in data}
    )


def history_values(entry: MedicalHistoryEntry) -> dict:
    return {k: getattr(entry, k) for k in HISTORY_FIELDS}


def update_history_entry(entry: MedicalHistoryEntry, data: dict) -> MedicalHistoryEntry:
    nullable = {'onset_date', 'onset_age', 'onset_duration_value'}
    for k in HISTORY_FIELDS:
        if k in data:
            value = data[k]
            setattr(entry, k, '' if value is None and k not in nullable else value)
    entry.save()
    return entry


def get_history_entry(patient: Patient, entry_id) -> MedicalHistoryEntry:
    return MedicalHistoryEntry.objects.get(id=entry_id, patient=patient)


# ---------------------------------------------------------------------
# Session types
# ---------------------------------------------------------------------
def serialize_session_type(st: SessionType) -> dict:
    return {'id': str(st.id), 'name': st.name, 'price': float(st.price), 'is_active': st.is_active}


def get_session_type(practitioner: Practitioner, session_type_id) -> SessionType:
    return SessionType.objects.get(id=session_type_id, practitioner=practitioner)


def delete_session_type(st: SessionType) -> bool:
    """Delete unused session types, deactivate the ones referenced by consultations."""
    if st.consultations.exists():
        st.is_active = False
        st.save(update_fields=['is_active', 'updated_at'])
        return False
    st.delete()
    return True
