"""
French display formatting shared by views, emails and PDFs.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

# thousands separator and the space before the currency sign, as fr-FR prints them
NNBSP = '\u202f'
NBSP = '\xa0'

PAYMENT_METHOD_LABELS = {
    'card': 'Carte bancaire',
    'cash': 'Espèces',
    'check': 'Chèque',
    'transfer': 'Virement',
    'other': 'Autre',
}

INVOICE_STATUS_LABELS = {
    'draft': 'Brouillon',
    'issued': 'Émise',
    'paid': 'Payée',
    'cancelled': 'Annulée',
}

GENDER_LABELS = {'M': 'Homme', 'F': 'Femme'}


def to_date(value) -> date | None:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    parsed = parse_datetime(text)
    if parsed is not None:
        return to_date(parsed)
    parsed_date = parse_date(text[:10])
    if parsed_date is None:
        raise ValueError(f"Date invalide: {value!r}")
    return parsed_date


def to_datetime(value) -> datetime | None:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return timezone.localtime(value) if timezone.is_aware(value) else value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    parsed = parse_datetime(str(value))
    if parsed is None:
        d = to_date(value)
        return datetime(d.year, d.month, d.day)
    return to_datetime(parsed)


def format_date(value) -> str:
    d = to_date(value)
    return d.strftime('%d/%m/%Y') if d else ''


def format_datetime(value) -> str:
    dt = to_datetime(value)
    return dt.strftime('%d/%m/%Y %H:%M') if dt else ''


def format_currency(amount) -> str:
    """``1234.56`` -> ``1 234,56 €`` (narrow no-break spaces between groups)."""
    value = Decimal(str(amount or 0)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    sign = '-' if value < 0 else ''
    integer, _, cents = f"{abs(value):.2f}".partition('.')
    groups = []
    while integer:
        groups.insert(0, integer[-3:])
        integer = integer[:-3]
    return f"{sign}{NNBSP.join(groups)},{cents}{NBSP}€"


def format_amount(amount) -> str:
    """Plain ``1234.56`` string for CSV exports."""
    return f"{Decimal(str(amount or 0)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"


def format_phone(phone: str | None) -> str:
    if not phone:
        return ''
    digits = re.sub(r'\D', '', phone)
    if len(digits) == 10 and not phone.strip().startswith('+'):
        return ' '.join(digits[i:i + 2] for i in range(0, 10, 2))
    return phone


def calculate_age(birth_date, today: date | None = None) -> int | None:
    born = to_date(birth_date)
    if born is None:
        return None
    today = today or timezone.localdate()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def generate_invoice_number(prefix: str, number: int, on=None) -> str:
    d = to_date(on) or timezone.localdate()
    return f"{prefix}-{d.strftime('%y%m%d')}-{int(number):03d}"


def get_initials(first_name: str, last_name: str) -> str:
    return f"{(first_name or '')[:1]}{(last_name or '')[:1]}".upper()
