"""
PDF documents generated with fpdf2: the patient fee receipt (invoice)
and the accounting recap sent to the accountant.

fpdf2's core Helvetica font only covers latin-1, so every string goes
through ``pdf_text`` before it is drawn.
"""
from __future__ import annotations

import logging
from pathlib import Path

from django.utils import timezone
from fpdf import FPDF

from practice.formatting import PAYMENT_METHOD_LABELS, format_currency, format_date, format_datetime
from practice.models import Invoice
from practice.services.files import practitioner_stamp_file

logger = logging.getLogger(__name__)

METHOD_COLUMNS = [('card', 'CB'), ('cash', 'Espèces'), ('check', 'Chèque'), ('transfer', 'Virement')]

LEGAL_FOOTER = [
    'TVA non applicable selon article 261, 4-1 du CGI',
    "Absence d'escompte pour paiement anticipé",
    'En cas de retard, pénalités suivant le taux minimum légal en vigueur',
    'Indemnité forfaitaire pour frais de recouvrement: 40 euros',
]


def pdf_text(value) -> str:
    text = str(value or '')
    text = text.replace('€', 'EUR').replace('\u202f', ' ').replace('\xa0', ' ')
    return text.encode('latin-1', errors='replace').decode('latin-1')


def invoice_pdf_data(invoice: Invoice) -> dict:
    """Flatten an invoice and its relations into the strings printed on the receipt."""
    consultation = invoice.consultation
    patient = consultation.patient
    practitioner = patient.practitioner
    payment = invoice.payments.order_by('payment_date', 'created_at').first()
    invoice_date = invoice.issued_at or invoice.created_at or timezone.now()
    return {
        'practitioner_name': f"{practitioner.last_name.upper()} {practitioner.first_name}".strip(),
        'practitioner_specialty': practitioner.specialty,
        'practitioner_address': practitioner.address,
        'practitioner_city_line': f"{practitioner.postal_code} {practitioner.city}".strip(),
        'practitioner_siret': practitioner.siret,
        'practitioner_rpps': practitioner.rpps,
        'patient_name': f"{patient.last_name.upper()} {patient.first_name}".strip(),
        'patient_email': patient.email,
        'location_line': f"{practitioner.city or 'Paris'}, le {format_date(invoice_date)}",
        'invoice_number': invoice.invoice_number,
        'session_type_label': consultation.session_type.name if consultation.session_type_id else 'Type de séance',
        'amount': format_currency(invoice.amount),
        'payment_method': PAYMENT_METHOD_LABELS.get(payment.method, 'Comptant') if payment else 'Comptant',
        'payment_type': 'Comptant',
        'payment_date': format_date(payment.payment_date if payment else invoice_date),
        'invoice_date': format_date(invoice_date),
        'stamp_path': practitioner_stamp_file(practitioner),
    }


class InvoicePdfGenerator:
    """A4 fee receipt ("Reçu d'honoraires") for one invoice."""

    PAGE_WIDTH = 210
    MARGIN = 15

    TEXT_COLOR = (31, 41, 55)
    MUTED_COLOR = (107, 114, 128)
    ACCENT_COLOR = (16, 185, 129)
    FOOTER_COLOR = (156, 163, 175)

    def __init__(self, data: dict):
        self.data = data

    def generate(self) -> bytes:
        pdf = FPDF(format='A4')
        pdf.set_auto_page_break(auto=False)
        pdf.add_page()
        self._add_practitioner(pdf)
        self._add_patient_box(pdf)
        self._add_title(pdf)
        self._add_lines(pdf)
        self._add_payment(pdf)
        self._add_stamp(pdf)
        self._add_footer(pdf)
        pdf_bytes = bytes(pdf.output())
        logger.info("Invoice PDF %s generated: %d bytes", self.data['invoice_number'], len(pdf_bytes))
        return pdf_bytes

    def _add_practitioner(self, pdf: FPDF) -> None:
        d = self.data
        pdf.set_xy(self.MARGIN, self.MARGIN)
        pdf.set_font('Helvetica', 'B', 12)
        pdf.set_text_color(*self.TEXT_COLOR)
        pdf.cell(90, 6, pdf_text(d['practitioner_name']), new_x='LMARGIN', new_y='NEXT')
        pdf.set_font('Helvetica', size=10)
        pdf.set_text_color(*self.MUTED_COLOR)
        for line in (
            d['practitioner_specialty'],
            d['practitioner_address'],
            d['practitioner_city_line'],
            f"N° SIREN: {d['practitioner_siret']}" if d['practitioner_siret'] else '',
            f"N° RPPS: {d['practitioner_rpps']}" if d['practitioner_rpps'] else '',
        ):
            if line:
                pdf.set_x(self.MARGIN)
                pdf.cell(90, 5, pdf_text(line), new_x='LMARGIN', new_y='NEXT')

    def _add_patient_box(self, pdf: FPDF) -> None:
        d = self.data
        box_w = 78
        x = self.PAGE_WIDTH - self.MARGIN - box_w
        pdf.set_fill_color(*self.ACCENT_COLOR)
        pdf.rect(x, self.MARGIN, box_w, 16, style='F')
        pdf.set_text_color(255, 255, 255)
        pdf.set_font('Helvetica', 'B', 10)
        pdf.set_xy(x + 4, self.MARGIN + 2)
        pdf.cell(box_w - 8, 6, pdf_text(d['patient_name']))
        if d['patient_email']:
            pdf.set_font('Helvetica', size=8)
            pdf.set_xy(x + 4, self.MARGIN + 8)
            pdf.cell(box_w - 8, 5, pdf_text(d['patient_email']))
        pdf.set_text_color(*self.ACCENT_COLOR)
        pdf.set_font('Helvetica', size=9)
        pdf.set_xy(x, self.MARGIN + 20)
        pdf.cell(box_w, 5, pdf_text(d['location_line']), align='R')

    def _add_title(self, pdf: FPDF) -> None:
        pdf.set_xy(self.MARGIN, 60)
        pdf.set_font('Helvetica', size=12)
        pdf.set_text_color(*self.TEXT_COLOR)
        pdf.cell(55, 8, pdf_text("Reçu d'honoraires n°"))
        pdf.set_font('Helvetica', 'B', 12)
        pdf.set_text_color(*self.ACCENT_COLOR)
        pdf.cell(0, 8, pdf_text(self.data['invoice_number']))

    def _add_lines(self, pdf: FPDF) -> None:
        d = self.data
        right = self.PAGE_WIDTH - self.MARGIN
        pdf.set_font('Helvetica', 'B', 9)
        pdf.set_text_color(*self.MUTED_COLOR)
        pdf.set_xy(self.MARGIN, 78)
        pdf.cell(120, 6, 'DESCRIPTION')
        pdf.set_xy(right - 35, 78)
        pdf.cell(35, 6, 'MONTANT', align='R')
        pdf.set_draw_color(229, 231, 235)
        pdf.line(self.MARGIN, 85, right, 85)

        pdf.set_font('Helvetica', size=10)
        pdf.set_text_color(*self.TEXT_COLOR)
        pdf.set_xy(self.MARGIN, 88)
        pdf.cell(120, 6, pdf_text(f"Type de séance - {d['session_type_label']}"))
        pdf.set_font('Helvetica', 'B', 10)
        pdf.set_text_color(*self.ACCENT_COLOR)
        pdf.set_xy(right - 35, 88)
        pdf.cell(35, 6, pdf_text(d['amount']), align='R')

        pdf.set_font('Helvetica', 'B', 11)
        pdf.set_text_color(*self.TEXT_COLOR)
        pdf.set_xy(right - 90, 105)
        pdf.cell(55, 7, pdf_text('Somme à régler'))
        pdf.set_text_color(*self.ACCENT_COLOR)
        pdf.cell(35, 7, pdf_text(d['amount']), align='R')

    def _add_payment(self, pdf: FPDF) -> None:
        d = self.data
        right = self.PAGE_WIDTH - self.MARGIN
        y = 120
        for label, value in (
            ('Règlement', d['payment_method']),
            ('Type de règlement', d['payment_type']),
            ('Date du règlement', d['payment_date']),
            ('Date de facturation', d['invoice_date']),
        ):
            pdf.set_xy(right - 90, y)
            pdf.set_font('Helvetica', size=9)
            pdf.set_text_color(*self.MUTED_COLOR)
            pdf.cell(55, 5, pdf_text(label))
            pdf.set_text_color(*self.TEXT_COLOR)
            pdf.cell(35, 5, pdf_text(value), align='R')
            y += 5

    def _add_stamp(self, pdf: FPDF) -> None:
        path: Path | None = self.data.get('stamp_path')
        if not path:
            return
        try:
            pdf.image(str(path), x=self.PAGE_WIDTH - self.MARGIN - 45, y=225, w=42)
        except (OSError, ValueError, RuntimeError) as e:
            logger.warning("Invoice PDF: unable to load stamp image %s: %s", path, e)

    def _add_footer(self, pdf: FPDF) -> None:
        pdf.set_font('Helvetica', size=7)
        pdf.set_text_color(*self.FOOTER_COLOR)
        y = 275
        for line in LEGAL_FOOTER:
            pdf.set_xy(self.MARGIN, y)
            pdf.cell(0, 3.5, pdf_text(line))
            y += 3.5


def generate_invoice_pdf(invoice: Invoice) -> bytes:
    return InvoicePdfGenerator(invoice_pdf_data(invoice)).generate()


class AccountingPdfGenerator:
    """Accounting recap: totals, split by payment method, then one row per day."""

    MARGIN = 18
    PAGE_WIDTH = 210
    PAGE_BOTTOM = 280

    TITLE_COLOR = (15, 23, 42)
    TEXT_COLOR = (51, 65, 85)
    MUTED_COLOR = (71, 85, 105)

    COLUMNS = [('Date', 26), ('Consult.', 18), ('Total', 28)] + [(label, 26) for _, label in METHOD_COLUMNS]

    def __init__(self, *, practitioner_name: str, period_label: str, summary: dict):
        self.practitioner_name = practitioner_name
        self.period_label = period_label
        self.summary = summary

    def generate(self) -> bytes:
        pdf = FPDF(format='A4')
        pdf.set_auto_page_break(auto=False)
        pdf.add_page()
        self._add_header(pdf)
        self._add_synthesis(pdf)
        self._add_daily_table(pdf)
        return bytes(pdf.output())

    def _add_header(self, pdf: FPDF) -> None:
        pdf.set_xy(self.MARGIN, 14)
        pdf.set_font('Helvetica', 'B', 18)
        pdf.set_text_color(*self.TITLE_COLOR)
        pdf.cell(0, 9, pdf_text('Récapitulatif comptable'), new_x='LMARGIN', new_y='NEXT')
        pdf.set_font('Helvetica', size=10)
        pdf.set_text_color(*self.MUTED_COLOR)
        for line in (self.practitioner_name, self.period_label,
                     f"Généré le {format_datetime(timezone.now())}"):
            pdf.set_x(self.MARGIN)
            pdf.cell(0, 5.5, pdf_text(line), new_x='LMARGIN', new_y='NEXT')
        y = pdf.get_y() + 3
        pdf.set_draw_color(226, 232, 240)
        pdf.line(self.MARGIN, y, self.PAGE_WIDTH - self.MARGIN, y)
        pdf.set_y(y + 5)

    def _add_synthesis(self, pdf: FPDF) -> None:
        s = self.summary
        pdf.set_x(self.MARGIN)
        pdf.set_font('Helvetica', 'B', 12)
        pdf.set_text_color(*self.TITLE_COLOR)
        pdf.cell(0, 7, pdf_text('Synthèse'), new_x='LMARGIN', new_y='NEXT')
        pdf.set_font('Helvetica', size=10)
        pdf.set_text_color(*self.TEXT_COLOR)
        for line in (f"Chiffre d'affaires : {format_currency(s['totalRevenue'])}",
                     f"Consultations : {s['totalConsultations']}"):
            pdf.set_x(self.MARGIN)
            pdf.cell(0, 5.5, pdf_text(line), new_x='LMARGIN', new_y='NEXT')
        pdf.ln(3)
        pdf.set_x(self.MARGIN)
        pdf.set_font('Helvetica', 'B', 10)
        pdf.cell(0, 6, pdf_text('Répartition par moyen de paiement'), new_x='LMARGIN', new_y='NEXT')
        pdf.set_font('Helvetica', size=10)
        for method, label in PAYMENT_METHOD_LABELS.items():
            amount = s['revenueByMethod'].get(method, 0)
            pdf.set_x(self.MARGIN)
            pdf.cell(0, 5, pdf_text(f"{label} : {format_currency(amount)}"), new_x='LMARGIN', new_y='NEXT')
        if s.get('checkNumbers'):
            pdf.ln(2)
            pdf.set_x(self.MARGIN)
            pdf.set_font('Helvetica', 'B', 10)
            pdf.cell(0, 6, pdf_text('Chèques encaissés'), new_x='LMARGIN', new_y='NEXT')
            pdf.set_font('Helvetica', size=9)
            for line in s['checkNumbers']:
                pdf.set_x(self.MARGIN)
                pdf.cell(0, 4.5, pdf_text(line), new_x='LMARGIN', new_y='NEXT')
        pdf.ln(6)

    def _table_header(self, pdf: FPDF) -> None:
        pdf.set_x(self.MARGIN)
        pdf.set_font('Helvetica', 'B', 9)
        pdf.set_text_color(*self.TITLE_COLOR)
        for title, width in self.COLUMNS:
            pdf.cell(width, 6, pdf_text(title))
        pdf.ln(6)
        y = pdf.get_y()
        pdf.line(self.MARGIN, y, self.PAGE_WIDTH - self.MARGIN, y)
        pdf.ln(2)

    def _add_daily_table(self, pdf: FPDF) -> None:
        pdf.set_x(self.MARGIN)
        pdf.set_font('Helvetica', 'B', 12)
        pdf.set_text_color(*self.TITLE_COLOR)
        pdf.cell(0, 7, pdf_text('Détail par jour'), new_x='LMARGIN', new_y='NEXT')
        self._table_header(pdf)
        widths = [w for _, w in self.COLUMNS]
        for recap in self.summary['dailyRecaps']:
            if pdf.get_y() > self.PAGE_BOTTOM:
                pdf.add_page()
                pdf.set_y(20)
                self._table_header(pdf)
            by_method = recap['byMethod']
            cells = [format_date(recap['date']), str(recap['count']), format_currency(recap['total'])]
            cells += [format_currency(by_method[m]['amount']) if m in by_method else '-' for m, _ in METHOD_COLUMNS]
            pdf.set_x(self.MARGIN)
            pdf.set_font('Helvetica', size=9)
            pdf.set_text_color(*self.TEXT_COLOR)
            for value, width in zip(cells, widths):
                pdf.cell(width, 5, pdf_text(value))
            pdf.ln(5)


def generate_accounting_pdf(*, practitioner_name: str, period_label: str, summary: dict) -> bytes:
    return AccountingPdfGenerator(
        practitioner_name=practitioner_name, period_label=period_label, summary=summary,
    ).generate()
