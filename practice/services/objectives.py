"""
Revenue objectives: the practitioner's yearly target broken down per
working day/week/month, compared with what was actually cashed in.

Actual revenue is the sum of payments by ``payment_date``; manual
monthly entries cover income recorded outside the application.
"""
from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum
from django.db.models.functions import ExtractMonth
from django.utils import timezone

from practice.models import ManualRevenueEntry, Payment, Practitioner

OBJECTIVE_FIELDS = ('annual_revenue_objective', 'vacation_weeks_per_year', 'working_days_per_week',
                    'average_consultation_price')
FIELD_DEFAULTS = {'vacation_weeks_per_year': 5, 'working_days_per_week': 4}


def _float(value):
    return float(value) if value is not None else None


def objective_settings(p: Practitioner) -> dict:
    return {
        'annual_revenue_objective': _float(p.annual_revenue_objective),
        'vacation_weeks_per_year': p.vacation_weeks_per_year,
        'working_days_per_week': p.working_days_per_week,
        'average_consultation_price': _float(p.average_consultation_price),
    }


def compute_objectives(p: Practitioner) -> dict:
    working_weeks = 52 - p.vacation_weeks_per_year
    working_days = working_weeks * p.working_days_per_week
    annual = float(p.annual_revenue_objective or 0)
    return {
        'working_weeks': working_weeks,
        'working_days': working_days,
        'daily_objective': annual / working_days if working_days > 0 else 0,
        'weekly_objective': annual / working_weeks if working_weeks > 0 else 0,
        'monthly_objective': annual / 12,
    }


def _payments(p: Practitioner):
    return Payment.objects.filter(invoice__consultation__patient__practitioner=p)


def _total(qs) -> Decimal:
    return qs.aggregate(total=Sum('amount'))['total'] or Decimal('0')


def revenue_summary(p: Practitioner, today=None) -> dict:
    today = today or timezone.localdate()
    monday = today - timedelta(days=today.weekday())
    first_of_month = today.replace(day=1)
    first_of_year = today.replace(month=1, day=1)

    payments = _payments(p).filter(payment_date__lte=today)
    year_payments = payments.filter(payment_date__gte=first_of_year)
    monthly = dict(
        year_payments.annotate(month=ExtractMonth('payment_date')).values('month')
        .annotate(actual=Sum('amount')).values_list('month', 'actual')
    )
    manual = dict(ManualRevenueEntry.objects.filter(practitioner=p, year=today.year)
                  .values_list('month', 'amount'))

    breakdown = []
    for month in range(1, 13):
        actual = monthly.get(month) or Decimal('0')
        extra = manual.get(month) or Decimal('0')
        breakdown.append({'month': month, 'actual': float(actual), 'manual': float(extra),
                          'total': float(actual + extra)})

    return {
        'today': float(_total(payments.filter(payment_date=today))),
        'this_week': float(_total(payments.filter(payment_date__gte=monday))),
        'this_month': float(_total(payments.filter(payment_date__gte=first_of_month))
                            + (manual.get(today.month) or Decimal('0'))),
        'this_year': float(_total(year_payments) + sum(manual.values(), Decimal('0'))),
        'monthly_breakdown': breakdown,
    }


def objectives_overview(p: Practitioner, today=None) -> dict:
    return {
        'settings': objective_settings(p),
        'computed': compute_objectives(p),
        'revenue': revenue_summary(p, today),
    }


def update_objectives(p: Practitioner, data: dict) -> Practitioner:
    """Missing or null values fall back to the model defaults."""
    for field in OBJECTIVE_FIELDS:
        value = data.get(field)
        setattr(p, field, value if value is not None else FIELD_DEFAULTS.get(field))
    p.save(update_fields=[*OBJECTIVE_FIELDS, 'updated_at'])
    return p


def set_manual_revenue(p: Practitioner, *, year: int, month: int, amount) -> ManualRevenueEntry:
    entry, _ = ManualRevenueEntry.objects.update_or_create(
        practitioner=p, year=year, month=month, defaults={'amount': amount},
    )
    return entry


def delete_manual_revenue(p: Practitioner, *, year: int, month: int) -> int:
    deleted, _ = ManualRevenueEntry.objects.filter(practitioner=p, year=year, month=month).delete()
    return deleted
