"""
Attachment and stamp endpoints.

Attachments are uploaded as base64 JSON and served back inline; stamps
are multipart image uploads, one per practitioner.
"""
from __future__ import annotations

from urllib.parse import quote

from django.http import FileResponse
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated

from practice.models import Consultation, ConsultationAttachment
from practice.permissions import IsPractitioner
from practice.responses import error, ok
from practice.serializers.consultations import AttachmentUploadSerializer
from practice.services import files
from practice.services.consultations import get_consultation, serialize_attachment
from practice.services.practitioners import get_practitioner

FILE_NOT_FOUND = 'Fichier non trouvé'


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def attachment_upload(request):
    s = AttachmentUploadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    practitioner = get_practitioner(request.user)
    try:
        consultation = get_consultation(practitioner, vd['consultationId'])
    except Consultation.DoesNotExist:
        return error('Consultation non trouvée', status=404)
    except PermissionError as e:
        return error(str(e), status=403)
    try:
        attachment = files.store_attachment(consultation, file_name=vd['fileName'],
                                            mime_type=vd.get('mimeType') or '', data=vd['data'])
    except ValueError as e:
        return error(str(e), status=400)
    return ok(serialize_attachment(attachment), status=201)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def attachment_detail(request, attachment_id):
    practitioner = get_practitioner(request.user)
    attachment = (ConsultationAttachment.objects.select_related('consultation__patient')
                  .filter(id=attachment_id).first())
    if attachment is None:
        return error(FILE_NOT_FOUND, status=404)
    if attachment.consultation.patient.practitioner_id != practitioner.id:
        return error('Non autorisé', status=403)

    if request.method == 'DELETE':
        files.delete_attachment(attachment)
        return ok({'success': True})

    try:
        path = files.attachment_path(attachment)
    except files.InvalidPath as e:
        return error(str(e), status=400)
    if not path.is_file():
        return error(FILE_NOT_FOUND, status=404)
    resp = FileResponse(open(path, 'rb'),
                        content_type=files.mime_for(attachment.filename, files.ATTACHMENT_MIME_TYPES))
    resp['Content-Disposition'] = f"inline; filename*=UTF-8''{quote(attachment.original_name)}"
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
@parser_classes([MultiPartParser, FormParser])
def stamp_upload(request):
    upload = request.FILES.get('file')
    if upload is None:
        return error('Aucun fichier fourni', status=400)
    practitioner = get_practitioner(request.user)
    try:
        url = files.store_stamp(practitioner, upload)
    except ValueError as e:
        return error(str(e), status=400)
    return ok({'stamp_url': url}, status=201)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def stamp_clear(request):
    files.clear_stamp(get_practitioner(request.user))
    return ok({'success': True})


@api_view(['GET'])
@permission_classes([AllowAny])
def stamp_file(request, filename):
    """Stamps are loaded by ``<img>`` tags, so no credentials are required."""
    try:
        path = files.stamp_path(filename)
    except files.InvalidPath as e:
        return error(str(e), status=400)
    if not path.is_file():
        return error(FILE_NOT_FOUND, status=404)
    resp = FileResponse(open(path, 'rb'), content_type=files.mime_for(filename, files.STAMP_MIME_TYPES))
    resp['Cache-Control'] = 'public, max-age=3600'
    return resp
