"""
Invoice and payment endpoints, including the PDF receipt.
"""
from __future__ import annotations

from django.http import HttpResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from practice.models import Invoice, Payment
from practice.permissions import IsPractitioner
from practice.responses import error, ok, paginate
from practice.serializers.consultations import PaymentInputSerializer
from practice.serializers.invoices import InvoiceListQuerySerializer, InvoiceStatusSerializer, InvoiceUpdateSerializer
from practice.services import invoices as svc
from practice.services.audit import log_action
from practice.services.pdf import generate_invoice_pdf
from practice.services.practitioners import get_practitioner

INVOICE_NOT_FOUND = 'Facture non trouvée'


def _load(request, invoice_id):
    practitioner = get_practitioner(request.user)
    return practitioner, svc.get_invoice(practitioner, invoice_id)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPractitioner])
def invoices(request):
    q = InvoiceListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = svc.list_invoices(get_practitioner(request.user), status=vd.get('status'), date_from=vd.get('from'),
                           date_to=vd.get('to'), q=vd.get('q'))
    items, pagination = paginate(qs, vd.get('page'), vd.get('pageSize'))
    return ok([svc.serialize_invoice(i) for i in items], pagination=pagination)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsPractitioner])
def invoice_detail(request, invoice_id):
    try:
        _, invoice = _load(request, invoice_id)
    except Invoice.DoesNotExist:
        return error(INVOICE_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)

    if request.method == 'PATCH':
        s = InvoiceUpdateSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        try:
            svc.update_invoice(invoice, s.validated_data)
        except ValueError as e:
            return error(str(e), status=400)
    return ok(svc.serialize_invoice(invoice))


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def invoice_status(request, invoice_id):
    try:
        practitioner, invoice = _load(request, invoice_id)
    except Invoice.DoesNotExist:
        return error(INVOICE_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)

    s = InvoiceStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    previous = invoice.status
    try:
        svc.change_status(invoice, s.validated_data['status'])
    except ValueError as e:
        return error(str(e), status=400)
    log_action(practitioner=practitioner, action='invoice_status', object_type='invoice', object_id=invoice.id,
               detail={'from': previous, 'to': invoice.status})
    return ok(svc.serialize_invoice(invoice))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def invoice_payments(request, invoice_id):
    try:
        _, invoice = _load(request, invoice_id)
    except Invoice.DoesNotExist:
        return error(INVOICE_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)

    s = PaymentInputSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        payment = svc.add_payment(invoice, s.validated_data)
    except ValueError as e:
        return error(str(e), status=400)
    invoice.refresh_from_db()
    return ok({'payment': svc.serialize_payment(payment), 'invoice': svc.serialize_invoice(invoice)}, status=201)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def payment_detail(request, payment_id):
    try:
        payment = svc.get_payment(get_practitioner(request.user), payment_id)
    except Payment.DoesNotExist:
        return error('Paiement non trouvé', status=404)
    except PermissionError as e:
        return error(str(e), status=403)
    payment.delete()
    return ok({'success': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPractitioner])
def invoice_pdf(request, invoice_id):
    try:
        _, invoice = _load(request, invoice_id)
    except Invoice.DoesNotExist:
        return error(INVOICE_NOT_FOUND, status=404)
    except PermissionError as e:
        return error(str(e), status=403)

    resp = HttpResponse(generate_invoice_pdf(invoice), content_type='application/pdf')
    resp['Content-Disposition'] = f'inline; filename="{invoice.invoice_number}.pdf"'
    return resp
