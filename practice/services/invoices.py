from decimal import Decimal

from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone

from practice.formatting import INVOICE_STATUS_LABELS, PAYMENT_METHOD_LABELS
from practice.models import Invoice, Payment, Practitioner

# Allowed status moves; anything not listed is rejected
TRANSITIONS = {
    Invoice.STATUS_DRAFT: {Invoice.STATUS_ISSUED, Invoice.STATUS_CANCELLED},
    Invoice.STATUS_ISSUED: {Invoice.STATUS_PAID, Invoice.STATUS_CANCELLED},
    Invoice.STATUS_PAID: {Invoice.STATUS_CANCELLED},
    Invoice.STATUS_CANCELLED: set(),
}


def serialize_payment(p: Payment) -> dict:
    return {
        'id': str(p.id),
        'invoice_id': str(p.invoice_id),
        'amount': float(p.amount),
        'method': p.method,
        'method_label': PAYMENT_METHOD_LABELS.get(p.method, p.method),
        'payment_date': p.payment_date.isoformat(),
        'check_number': p.check_number or None,
        'notes': p.notes or None,
    }


def serialize_invoice(inv: Invoice) -> dict:
    consultation = inv.consultation
    patient = consultation.patient
    return {
        'id': str(inv.id),
        'invoice_number': inv.invoice_number,
        'consultation_id': str(inv.consultation_id),
        'consultation_date': consultation.date_time.isoformat(),
        'patient_id': str(patient.id),
        'patient_name': patient.full_name,
        'patient_email': patient.email or None,
        'amount': float(inv.amount),
        'status': inv.status,
        'status_label': INVOICE_STATUS_LABELS.get(inv.status, inv.status),
        'issued_at': inv.issued_at.isoformat() if inv.issued_at else None,
        'paid_at': inv.paid_at.isoformat() if inv.paid_at else None,
        'notes': inv.notes or None,
        'payments': [serialize_payment(p) for p in inv.payments.all()],
        'created_at': inv.created_at.isoformat(),
    }


def get_invoice(practitioner: Practitioner, invoice_id) -> Invoice:
    """Fetch an invoice; raises ``Invoice.DoesNotExist`` or ``PermissionError``."""
    invoice = Invoice.objects.select_related('consultation__patient', 'consultation__session_type').get(id=invoice_id)
    if invoice.consultation.patient.practitioner_id != practitioner.id:
        raise PermissionError('Non autorisé')
    return invoice


def list_invoices(practitioner: Practitioner, *, status=None, date_from=None, date_to=None, q=None):
    qs = (Invoice.objects.select_related('consultation__patient')
          .prefetch_related('payments')
          .filter(consultation__patient__practitioner=practitioner))
    if status:
        qs = qs.filter(status=status)
    if date_from:
        qs = qs.filter(created_at__date__gte=date_from)
    if date_to:
        qs = qs.filter(created_at__date__lte=date_to)
    if q:
        qs = qs.filter(
            Q(invoice_number__icontains=q)
            | Q(consultation__patient__first_name__icontains=q)
            | Q(consultation__patient__last_name__icontains=q)
        )
    return qs.order_by('-created_at')


def change_status(invoice: Invoice, new_status: str) -> Invoice:
    if new_status not in TRANSITIONS.get(invoice.status, set()):
        raise ValueError('Transition de statut invalide')
    now = timezone.now()
    invoice.status = new_status
    if new_status == Invoice.STATUS_ISSUED and not invoice.issued_at:
        invoice.issued_at = now
    if new_status == Invoice.STATUS_PAID:
        invoice.issued_at = invoice.issued_at or now
        invoice.paid_at = now
    invoice.save(update_fields=['status', 'issued_at', 'paid_at', 'updated_at'])
    return invoice


def update_invoice(invoice: Invoice, data: dict) -> Invoice:
    if invoice.status not in (Invoice.STATUS_DRAFT, Invoice.STATUS_ISSUED):
        raise ValueError('Seules les factures en brouillon ou émises peuvent être modifiées')
    fields = []
    if 'amount' in data:
        invoice.amount = data['amount']
        fields.append('amount')
    if 'notes' in data:
        invoice.notes = data['notes'] or ''
        fields.append('notes')
    if fields:
        invoice.save(update_fields=fields + ['updated_at'])
    return invoice


def paid_total(invoice: Invoice) -> Decimal:
    return invoice.payments.aggregate(total=Sum('amount'))['total'] or Decimal('0')


@transaction.atomic
def add_payment(invoice: Invoice, data: dict) -> Payment:
    if invoice.status == Invoice.STATUS_CANCELLED:
        raise ValueError('Impossible d\'ajouter un paiement à une facture annulée')
    payment = Payment.objects.create(
        invoice=invoice,
        amount=data['amount'],
        method=data['method'],
        payment_date=data.get('payment_date') or timezone.localdate(),
        check_number=data.get('check_number') or '',
        notes=data.get('notes') or '',
    )
    if invoice.status != Invoice.STATUS_PAID and paid_total(invoice) >= invoice.amount:
        now = timezone.now()
        invoice.status = Invoice.STATUS_PAID
        invoice.issued_at = invoice.issued_at or now
        invoice.paid_at = now
        invoice.save(update_fields=['status', 'issued_at', 'paid_at', 'updated_at'])
    return payment


def get_payment(practitioner: Practitioner, payment_id) -> Payment:
    payment = Payment.objects.select_related('invoice__consultation__patient').get(id=payment_id)
    if payment.invoice.consultation.patient.practitioner_id != practitioner.id:
        raise PermissionError('Non autorisé')
    return payment
