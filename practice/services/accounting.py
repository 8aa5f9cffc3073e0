"""
Accounting recap over paid invoices.

Invoices count on the day they were paid.  The same summary feeds the
JSON endpoint, the CSV export/recap email and the PDF report sent to
the accountant.
"""
import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from practice.formatting import PAYMENT_METHOD_LABELS, format_amount, format_currency, format_date
from practice.models import Invoice, Practitioner, SavedReport
from practice.services.audit import log_action
from practice.services.mailer import OutgoingEmail, send_email
from practice.services.pdf import generate_accounting_pdf
from practice.services.templates import message_html

logger = logging.getLogger(__name__)

CSV_METHODS = ['card', 'cash', 'check', 'transfer', 'other']
CSV_HEADERS = ['Date', 'Nombre de consultations', "Chiffre d'affaires", 'CB', 'Espèces', 'Chèque', 'Virement',
               'Autre']


def period_range(period: str = 'month', today=None):
    """(start, end) for a named period ending today; ``None`` for custom ranges."""
    today = today or timezone.localdate()
    if period == 'day':
        return today, today
    if period == 'week':
        return today - timedelta(days=7), today
    if period == 'month':
        return today.replace(day=1), today
    if period == 'year':
        return today.replace(month=1, day=1), today
    return None


def paid_invoices(practitioner: Practitioner, *, start=None, end=None, payment_method=None, patient_id=None):
    qs = (Invoice.objects.select_related('consultation__patient')
          .prefetch_related('payments')
          .filter(consultation__patient__practitioner=practitioner, status=Invoice.STATUS_PAID))
    if start:
        qs = qs.filter(paid_at__date__gte=start)
    if end:
        qs = qs.filter(paid_at__date__lte=end)
    if patient_id:
        qs = qs.filter(consultation__patient_id=patient_id)
    if payment_method and payment_method != 'all':
        qs = qs.filter(payments__method=payment_method).distinct()
    return qs.order_by('-paid_at')


def _recap_date(inv: Invoice):
    stamp = inv.paid_at or inv.issued_at or inv.created_at
    return timezone.localtime(stamp).date()


def build_summary(invoices) -> dict:
    total = Decimal('0')
    by_method = defaultdict(Decimal)
    days = {}
    checks = []
    count = 0
    for inv in invoices:
        count += 1
        total += inv.amount
        day = _recap_date(inv)
        recap = days.setdefault(day, {'count': 0, 'total': Decimal('0'), 'byMethod': {}})
        recap['count'] += 1
        recap['total'] += inv.amount
        for p in inv.payments.all():
            by_method[p.method] += p.amount
            slot = recap['byMethod'].setdefault(p.method, {'count': 0, 'amount': Decimal('0')})
            slot['count'] += 1
            slot['amount'] += p.amount
            if p.method == 'check' and p.check_number:
                checks.append(f"N° {p.check_number} ({format_date(day)} - {format_currency(p.amount)})")

    daily = [
        {
            'date': day.isoformat(),
            'count': r['count'],
            'total': float(r['total']),
            'byMethod': {m: {'count': v['count'], 'amount': float(v['amount'])} for m, v in r['byMethod'].items()},
        }
        for day, r in sorted(days.items(), key=lambda kv: kv[0], reverse=True)
    ]
    return {
        'totalRevenue': float(total),
        'totalConsultations': count,
        'averageAmount': round(float(total) / count, 2) if count else 0,
        'revenueByMethod': {m: float(v) for m, v in by_method.items()},
        'dailyRecaps': daily,
        'checkNumbers': checks,
    }


def accounting_summary(practitioner: Practitioner, **filters) -> dict:
    return build_summary(paid_invoices(practitioner, **filters))


def recap_csv(summary: dict, start, end, payment_method=None) -> str:
    """``;``-separated recap with a UTF-8 BOM so spreadsheet tools pick the encoding."""
    method_line = (f"Mode de paiement: {PAYMENT_METHOD_LABELS.get(payment_method, payment_method)}"
                   if payment_method and payment_method != 'all' else 'Mode de paiement: Tous')
    lines = [
        f"Récapitulatif comptable du {format_date(start)} au {format_date(end)}",
        method_line,
        '',
        ';'.join(CSV_HEADERS),
    ]
    for recap in summary['dailyRecaps']:
        by_method = recap['byMethod']
        lines.append(';'.join(
            [format_date(recap['date']), str(recap['count']), format_amount(recap['total'])]
            + [format_amount(by_method.get(m, {}).get('amount', 0)) for m in CSV_METHODS]
        ))
    lines.append('')
    lines.append(';'.join(
        ['TOTAL', str(summary['totalConsultations']), format_amount(summary['totalRevenue'])]
        + [format_amount(summary['revenueByMethod'].get(m, 0)) for m in CSV_METHODS]
    ))
    return '\ufeff' + '\n'.join(lines)


def _accountant_email(practitioner: Practitioner) -> str:
    if not practitioner.accountant_email:
        raise ValueError('Email comptable manquant')
    return practitioner.accountant_email


def send_accounting_recap(practitioner: Practitioner, *, start, end, payment_method=None) -> dict:
    """Email the CSV recap to the accountant.  Raises ``ValueError`` without an accountant email."""
    to = _accountant_email(practitioner)
    summary = accounting_summary(practitioner, start=start, end=end, payment_method=payment_method)
    body = (
        "Bonjour,\n\n"
        "Veuillez trouver en pièce jointe le récapitulatif comptable demandé.\n\n"
        f"Période : {format_date(start)} - {format_date(end)}\n"
        f"Consultations : {summary['totalConsultations']}\n"
        f"Total : {format_currency(summary['totalRevenue'])}\n\n"
        f"Bonne journée,\n{practitioner.display_name}"
    )
    csv_bytes = recap_csv(summary, start, end, payment_method).encode('utf-8')
    result = send_email(practitioner, OutgoingEmail(
        to=to,
        subject=f"Récapitulatif comptable {format_date(start)} - {format_date(end)}",
        text=body,
        html=message_html(practitioner, body),
        attachments=[(f"recap_comptable_{start.isoformat()}_{end.isoformat()}.csv", csv_bytes, 'text/csv')],
    ))
    logger.info("Accounting recap %s - %s sent to %s", start, end, to)
    log_action(practitioner=practitioner, action='email_accounting_recap', object_type='practitioner',
               object_id=practitioner.id, detail={'to': to, 'messageId': result.message_id})
    return {'success': True, 'totalConsultations': summary['totalConsultations']}


def send_accounting_report(practitioner: Practitioner, *, start, end) -> dict:
    """Email the PDF recap to the accountant."""
    to = _accountant_email(practitioner)
    summary = accounting_summary(practitioner, start=start, end=end)
    pdf_bytes = generate_accounting_pdf(
        practitioner_name=practitioner.display_name,
        period_label=f"Période : {format_date(start)} - {format_date(end)}",
        summary=summary,
    )
    body = (
        "Bonjour,\n\n"
        f"Veuillez trouver en pièce jointe le récapitulatif comptable pour la période du {format_date(start)} "
        f"au {format_date(end)}.\n\nCordialement,"
    )
    result = send_email(practitioner, OutgoingEmail(
        to=to,
        subject=f"Récapitulatif comptable {format_date(start)} - {format_date(end)}",
        text=body,
        html=message_html(practitioner, body),
        attachments=[(f"recap_comptable_{start.isoformat()}_{end.isoformat()}.pdf", pdf_bytes, 'application/pdf')],
    ))
    logger.info("Accounting report %s - %s sent to %s", start, end, to)
    log_action(practitioner=practitioner, action='email_accounting_report', object_type='practitioner',
               object_id=practitioner.id, detail={'to': to, 'messageId': result.message_id})
    return {'success': True}


def serialize_report(r: SavedReport) -> dict:
    return {'id': str(r.id), 'name': r.name, 'filters': r.filters, 'created_at': r.created_at.isoformat()}


def _json_filters(filters: dict) -> dict:
    out = {}
    for key, value in (filters or {}).items():
        out[key] = value.isoformat() if hasattr(value, 'isoformat') else (str(value) if value is not None else None)
    return out


def create_report(practitioner: Practitioner, *, name: str, filters: dict) -> SavedReport:
    return SavedReport.objects.create(practitioner=practitioner, name=name.strip(), filters=_json_filters(filters))


def list_reports(practitioner: Practitioner):
    return SavedReport.objects.filter(practitioner=practitioner).order_by('-created_at')
