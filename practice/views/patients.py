"""
Patient endpoints: the patient file, its medical history entries and
the practitioner's session types.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from practice.models import MedicalHistoryEntry, Patient, SessionType
from practice.permissions import IsPractitioner
from practice.responses import error, ok, paginate
from practice.serializers.imports import PatientImportSerializer
from practice.serializers.patients import (
    MedicalHistorySerializer,
    PatientListQuerySerializer,
    PatientSerializer,
    SessionTypeSerializer,
)
from practice.services import imports
from practice.services import patients as svc
from practice.services.audit import log_action
from practice.services.practitioners import get_practitioner

PATIENT_NOT_FOUND = 'Patient non trouvé'


def _load(request, patient_id):
    practitioner = get_practitioner(request.user)
    return practitioner, svc.get_patient(practitioner, patient_id)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def patients(request):
    practitioner = get_practitioner(request.user)
    if request.method == 'GET':
        q = PatientListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = svc.list_patients(practitioner, q=q.validated_data.get('q'),
                               include_archived=q.validated_data.get('includeArchived'))
        items, pagination = paginate(qs, q.validated_data.get('page'), q.validated_data.get('pageSize'))
        data = []
        for p in items:
            row = svc.serialize_patient(p)
            row['consultation_count'] = p.consultation_count
            row['last_consultation_at'] = p.last_consultation_at.isoformat() if p.last_consultation_at else None
            data.append(row)
        return ok(data, pagination=pagination)

    s = PatientSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = svc.create_patient(practitioner, s.validated_data)
    log_action(practitioner=practitioner, action='patient_create', object_type='patient', object_id=patient.id)
    return ok(svc.serialize_patient(patient, extra=True), status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def patient_import(request):
    s = PatientImportSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        result = imports.import_patients(get_practitioner(request.user), s.validated_data['content'],
                                         s.validated_data.get('mapping'))
    except ValueError as e:
        return error(str(e), status=400)
    return ok(result)


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def patient_detail(request, patient_id):
    try:
        practitioner, patient = _load(request, patient_id)
    except Patient.DoesNotExist:
        return error(PATIENT_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)

    if request.method == 'GET':
        return ok(svc.patient_detail(patient))

    if request.method == 'DELETE':
        svc.delete_patient(patient)
        log_action(practitioner=practitioner, action='patient_delete', object_type='patient', object_id=patient_id)
        return ok({'success': True})

    s = PatientSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    svc.update_patient(patient, s.validated_data)
    return ok(svc.serialize_patient(patient, extra=True))


def _archive(request, patient_id, archived: bool):
    try:
        _, patient = _load(request, patient_id)
    except Patient.DoesNotExist:
        return error(PATIENT_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)
    svc.set_archived(patient, archived)
    return ok(svc.serialize_patient(patient))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def patient_archive(request, patient_id):
    return _archive(request, patient_id, True)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def patient_unarchive(request, patient_id):
    return _archive(request, patient_id, False)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def history(request, patient_id):
    try:
        _, patient = _load(request, patient_id)
    except Patient.DoesNotExist:
        return error(PATIENT_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)

    if request.method == 'GET':
        return ok([svc.serialize_history(e) for e in patient.history_entries.order_by('display_order', 'created_at')])

    s = MedicalHistorySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    entry = svc.create_history_entry(patient, s.validated_data)
    return ok(svc.serialize_history(entry), status=201)


@api_view(['PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def history_entry(request, patient_id, entry_id):
    try:
        _, patient = _load(request, patient_id)
        entry = svc.get_history_entry(patient, entry_id)
    except Patient.DoesNotExist:
        return error(PATIENT_NOT_FOUND, status=404)
    except MedicalHistoryEntry.DoesNotExist:
        return error('Antécédent non trouvé', status=404)
    except PermissionError as e:
        return error(str(e), status=403)

    if request.method == 'DELETE':
        entry.delete()
        return ok({'success': True})

    # the onset rule applies to the merged record
    merged = {**svc.history_values(entry), **request.data}
    for key in ('onset_date', 'onset_age', 'onset_duration_value', 'onset_duration_unit'):
        if merged.get(key) == '':
            merged[key] = None
    s = MedicalHistorySerializer(data=merged)
    s.is_valid(raise_exception=True)
    svc.update_history_entry(entry, s.validated_data)
    return ok(svc.serialize_history(entry))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def session_types(request):
    practitioner = get_practitioner(request.user)
    if request.method == 'GET':
        qs = SessionType.objects.filter(practitioner=practitioner)
        if request.query_params.get('active') in ('1', 'true'):
            qs = qs.filter(is_active=True)
        return ok([svc.serialize_session_type(st) for st in qs.order_by('name')])

    s = SessionTypeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    st = SessionType.objects.create(practitioner=practitioner, **s.validated_data)
    return ok(svc.serialize_session_type(st), status=201)


@api_view(['PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def session_type_detail(request, session_type_id):
    practitioner = get_practitioner(request.user)
    try:
        st = svc.get_session_type(practitioner, session_type_id)
    except SessionType.DoesNotExist:
        return error('Type de séance non trouvé', status=404)

    if request.method == 'DELETE':
        deleted = svc.delete_session_type(st)
        return ok({'success': True, 'deleted': deleted})

    s = SessionTypeSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    for k, v in s.validated_data.items():
        setattr(st, k, v)
    st.save()
    return ok(svc.serialize_session_type(st))
