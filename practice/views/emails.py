"""
Email endpoints.

``follow-up`` (POST) and ``check-inbox`` are called by the in-process
scheduler with the cron secret; everything else acts for the logged-in
practitioner.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.settings import api_settings

from practice.authentication import CronSecretAuthentication
from practice.models import Consultation, Invoice
from practice.permissions import IsCron, IsCronOrPractitioner, IsPractitioner
from practice.responses import error, ok
from practice.serializers.accounting import AccountingRangeSerializer
from practice.serializers.invoices import InvoiceEmailSerializer
from practice.serializers.messages import ConsultationRefSerializer
from practice.serializers.settings import EmailSettingsSerializer, EmailTemplateSerializer
from practice.services import email_settings
from practice.services.accounting import send_accounting_recap
from practice.services.consultations import get_consultation
from practice.services.followups import process_due_follow_ups, send_follow_up, send_invoice_email, send_post_session_advice
from practice.services.inbox import check_inboxes
from practice.services.invoices import get_invoice
from practice.services.practitioners import get_practitioner
from practice.services.templates import DEFAULT_TEMPLATES, list_templates, upsert_template

CRON_OR_USER_AUTH = [CronSecretAuthentication, *api_settings.DEFAULT_AUTHENTICATION_CLASSES]


@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def settings_view(request):
    practitioner = get_practitioner(request.user)
    cfg = email_settings.get_email_settings(practitioner)
    if request.method == 'GET':
        return ok(email_settings.serialize_email_settings(cfg) if cfg else None)

    if request.method == 'DELETE':
        if cfg is not None:
            cfg.delete()
        return ok({'success': True})

    s = EmailSettingsSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        cfg = email_settings.save_email_settings(practitioner, s.validated_data)
    except ValueError as e:
        return error(str(e), status=400)
    return ok(email_settings.serialize_email_settings(cfg))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPractitioner])
def templates(request):
    return ok(list_templates(get_practitioner(request.user)))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsPractitioner])
def template_detail(request, template_type):
    if template_type not in DEFAULT_TEMPLATES:
        return error('Type de modèle invalide', status=400)
    s = EmailTemplateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    practitioner = get_practitioner(request.user)
    upsert_template(practitioner, template_type, subject=s.validated_data['subject'], body=s.validated_data['body'])
    return ok(next(t for t in list_templates(practitioner) if t['type'] == template_type))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def invoice_email(request):
    s = InvoiceEmailSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    practitioner = get_practitioner(request.user)
    try:
        invoice = get_invoice(practitioner, s.validated_data['invoiceId'])
    except Invoice.DoesNotExist:
        return error('Facture non trouvée', status=404)
    except PermissionError as e:
        return error(str(e), status=403)
    try:
        result = send_invoice_email(practitioner, invoice)
    except ValueError as e:
        return error(str(e), status=400)
    return ok(result)


def _consultation(request, data):
    s = ConsultationRefSerializer(data=data)
    s.is_valid(raise_exception=True)
    practitioner = get_practitioner(request.user)
    return practitioner, get_consultation(practitioner, s.validated_data['consultationId'])


@api_view(['POST', 'PUT'])
@authentication_classes(CRON_OR_USER_AUTH)
@permission_classes([IsCronOrPractitioner])
def follow_up(request):
    if request.method == 'POST':
        return ok(process_due_follow_ups())

    if request.user is None:
        return error('Non autorisé', status=401)
    try:
        practitioner, consultation = _consultation(request, request.data)
        result = send_follow_up(practitioner, consultation)
    except Consultation.DoesNotExist:
        return error('Consultation non trouvée', status=404)
    except PermissionError as e:
        return error(str(e), status=403)
    except ValueError as e:
        return error(str(e), status=400)
    return ok(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def post_session_advice(request):
    try:
        practitioner, consultation = _consultation(request, request.data)
    except Consultation.DoesNotExist:
        return error('Consultation non trouvée', status=404)
    except PermissionError as e:
        return error(str(e), status=403)
    try:
        result = send_post_session_advice(practitioner, consultation)
    except ValueError as e:
        return error(str(e), status=400)
    return ok(result)


@api_view(['GET'])
@authentication_classes([CronSecretAuthentication])
@permission_classes([IsCron])
def check_inbox(request):
    return ok(check_inboxes())


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def accounting_recap(request):
    s = AccountingRangeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        result = send_accounting_recap(get_practitioner(request.user), start=vd['startDate'], end=vd['endDate'],
                                       payment_method=vd.get('paymentMethod'))
    except ValueError as e:
        return error(str(e), status=400)
    return ok(result)
