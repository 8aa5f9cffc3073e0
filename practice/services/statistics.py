"""
Practice statistics: patient demographics, consultation activity and
revenue over a date range.
"""
from collections import Counter, defaultdict
from decimal import Decimal

from django.utils import timezone

from practice.formatting import calculate_age
from practice.models import Consultation, Invoice, Patient, Practitioner

AGE_GROUPS = ['0-17', '18-29', '30-44', '45-59', '60-74', '75+']
TOP_REASONS = 15

# Substring to label, first match wins.
REASON_MAPPINGS = [
    ('lombalgie', 'Lombalgie'),
    ('mal de dos', 'Lombalgie'),
    ('douleur lombaire', 'Lombalgie'),
    ('cervicalgie', 'Cervicalgie'),
    ('douleur cervicale', 'Cervicalgie'),
    ('torticolis', 'Cervicalgie'),
    ('céphalée', 'Céphalées'),
    ('migraine', 'Céphalées'),
    ('maux de tête', 'Céphalées'),
    ('sciatique', 'Sciatique'),
    ('suivi', 'Suivi'),
    ('contrôle', 'Suivi'),
    ('bilan', 'Bilan'),
    ('première consultation', 'Bilan'),
    ('entorse', 'Entorse'),
    ('dorsalgie', 'Dorsalgie'),
]


def age_group(age: int) -> str:
    if age < 18:
        return '0-17'
    if age < 30:
        return '18-29'
    if age < 45:
        return '30-44'
    if age < 60:
        return '45-59'
    if age < 75:
        return '60-74'
    return '75+'


def normalize_reason(reason: str) -> str:
    reason = (reason or '').strip() or 'Non spécifié'
    lowered = reason.lower()
    for key, label in REASON_MAPPINGS:
        if key in lowered:
            return label
    return reason[:1].upper() + reason[1:].lower()


def patient_stats(practitioner: Practitioner, *, gender=None, group=None, today=None) -> tuple[dict, set]:
    """Returns the stats and the ids of the patients kept by the filters."""
    today = today or timezone.localdate()
    qs = Patient.objects.filter(practitioner=practitioner, archived_at__isnull=True)
    if gender:
        qs = qs.filter(gender=gender)
    by_gender = Counter()
    by_age = Counter()
    kept = set()
    for patient_id, g, birth_date in qs.values_list('id', 'gender', 'birth_date'):
        bucket = age_group(calculate_age(birth_date, today))
        if group and bucket != group:
            continue
        kept.add(patient_id)
        by_gender[g] += 1
        by_age[bucket] += 1
    return {
        'total': len(kept),
        'by_gender': [{'gender': g, 'count': by_gender.get(g, 0)} for g in ('M', 'F')],
        'by_age_group': [{'age_group': a, 'count': by_age.get(a, 0)} for a in AGE_GROUPS],
    }, kept


def consultation_stats(practitioner: Practitioner, *, start=None, end=None, patient_ids=None) -> dict:
    qs = Consultation.objects.filter(patient__practitioner=practitioner, archived_at__isnull=True)
    if start:
        qs = qs.filter(date_time__date__gte=start)
    if end:
        qs = qs.filter(date_time__date__lte=end)
    if patient_ids is not None:
        qs = qs.filter(patient_id__in=patient_ids)

    by_month = Counter()
    by_day = Counter()
    reasons = Counter()
    patients = set()
    total = 0
    for date_time, reason, patient_id in qs.values_list('date_time', 'reason', 'patient_id'):
        local = timezone.localtime(date_time)
        total += 1
        by_month[(local.year, local.month)] += 1
        # 0 = Sunday
        by_day[(local.weekday() + 1) % 7] += 1
        reasons[normalize_reason(reason)] += 1
        patients.add(patient_id)

    return {
        'total': total,
        'unique_patients': len(patients),
        'avg_per_patient': round(total / len(patients), 2) if patients else 0,
        'by_month': [{'year': y, 'month': m, 'count': c} for (y, m), c in sorted(by_month.items())],
        'by_day_of_week': [{'day': d, 'count': by_day.get(d, 0)} for d in range(7)],
        'by_reason': [{'reason': r, 'count': c} for r, c in reasons.most_common(TOP_REASONS)],
    }


def revenue_stats(practitioner: Practitioner, *, start=None, end=None, patient_ids=None) -> dict:
    qs = (Invoice.objects.prefetch_related('payments')
          .filter(consultation__patient__practitioner=practitioner, consultation__archived_at__isnull=True,
                  status=Invoice.STATUS_PAID, paid_at__isnull=False))
    if start:
        qs = qs.filter(consultation__date_time__date__gte=start)
    if end:
        qs = qs.filter(consultation__date_time__date__lte=end)
    if patient_ids is not None:
        qs = qs.filter(consultation__patient_id__in=patient_ids)

    total = Decimal('0')
    count = 0
    by_month = defaultdict(lambda: {'total': Decimal('0'), 'count': 0})
    by_method = defaultdict(Decimal)
    for inv in qs:
        paid = timezone.localtime(inv.paid_at)
        total += inv.amount
        count += 1
        slot = by_month[(paid.year, paid.month)]
        slot['total'] += inv.amount
        slot['count'] += 1
        for p in inv.payments.all():
            by_method[p.method] += p.amount

    return {
        'total': float(total),
        'count': count,
        'average': round(float(total) / count, 2) if count else 0,
        'by_month': [{'year': y, 'month': m, 'total': float(v['total']), 'count': v['count']}
                     for (y, m), v in sorted(by_month.items())],
        'by_payment_method': [{'method': m, 'total': float(v)} for m, v in by_method.items()],
    }


def practice_statistics(practitioner: Practitioner, *, start=None, end=None, gender=None, group=None) -> dict:
    patients, kept = patient_stats(practitioner, gender=gender, group=group)
    patient_ids = kept if (gender or group) else None
    return {
        'patients': patients,
        'consultations': consultation_stats(practitioner, start=start, end=end, patient_ids=patient_ids),
        'revenue': revenue_stats(practitioner, start=start, end=end, patient_ids=patient_ids),
    }
