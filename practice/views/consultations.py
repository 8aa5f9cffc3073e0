"""
Consultation endpoints.

Creating a consultation also raises its invoice and schedules the J+7
follow-up in the same transaction; see ``services.consultations``.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from practice.models import Consultation, Patient, SessionType
from practice.permissions import IsPractitioner
from practice.responses import error, ok, paginate
from practice.serializers.consultations import (
    ConsultationCreateSerializer,
    ConsultationListQuerySerializer,
    ConsultationSerializer,
)
from practice.services import consultations as svc
from practice.services.audit import log_action
from practice.services.practitioners import get_practitioner

CONSULTATION_NOT_FOUND = 'Consultation non trouvée'


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def consultations(request):
    practitioner = get_practitioner(request.user)
    if request.method == 'GET':
        q = ConsultationListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = svc.list_consultations(practitioner, patient_id=vd.get('patient'), date_from=vd.get('from'),
                                    date_to=vd.get('to'), include_archived=vd.get('includeArchived'))
        items, pagination = paginate(qs, vd.get('page'), vd.get('pageSize'))
        return ok([svc.serialize_consultation(c) for c in items], pagination=pagination)

    s = ConsultationCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        consultation = svc.create_consultation(practitioner, s.validated_data)
    except Patient.DoesNotExist:
        return error('Patient non trouvé', status=404)
    except SessionType.DoesNotExist:
        return error('Type de séance non trouvé', status=404)
    log_action(practitioner=practitioner, action='consultation_create', object_type='consultation',
               object_id=consultation.id, detail={'patient_id': str(consultation.patient_id)})
    return ok(svc.serialize_consultation(consultation, extra=True), status=201)


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def consultation_detail(request, consultation_id):
    practitioner = get_practitioner(request.user)
    try:
        consultation = svc.get_consultation(practitioner, consultation_id)
    except Consultation.DoesNotExist:
        return error(CONSULTATION_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)

    if request.method == 'GET':
        return ok(svc.serialize_consultation(consultation, extra=True))

    if request.method == 'DELETE':
        svc.delete_consultation(consultation)
        log_action(practitioner=practitioner, action='consultation_delete', object_type='consultation',
                   object_id=consultation_id)
        return ok({'success': True})

    s = ConsultationSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    data = dict(s.validated_data)
    # moving a consultation to another patient is not supported
    data.pop('patient_id', None)
    try:
        svc.update_consultation(practitioner, consultation, data)
    except SessionType.DoesNotExist:
        return error('Type de séance non trouvé', status=404)
    return ok(svc.serialize_consultation(consultation, extra=True))


def _archive(request, consultation_id, archived: bool):
    practitioner = get_practitioner(request.user)
    try:
        consultation = svc.get_consultation(practitioner, consultation_id)
    except Consultation.DoesNotExist:
        return error(CONSULTATION_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)
    svc.set_archived(consultation, archived)
    return ok(svc.serialize_consultation(consultation))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def consultation_archive(request, consultation_id):
    return _archive(request, consultation_id, True)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def consultation_unarchive(request, consultation_id):
    return _archive(request, consultation_id, False)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPractitioner])
def consultation_attachments(request, consultation_id):
    practitioner = get_practitioner(request.user)
    try:
        consultation = svc.get_consultation(practitioner, consultation_id)
    except Consultation.DoesNotExist:
        return error(CONSULTATION_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)
    return ok([svc.serialize_attachment(a) for a in consultation.attachments.order_by('created_at')])
