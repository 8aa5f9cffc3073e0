from datetime import timedelta

from django.db.models import Sum
from django.utils import timezone

from practice.models import Consultation, Conversation, Invoice, Patient, Practitioner, ScheduledTask
from practice.services.surveys import practitioner_survey_summary

RECENT_LIMIT = 5
BIRTHDAY_LIMIT = 3


def upcoming_birthdays(patients, today, days: int = 7) -> list[dict]:
    out = []
    for p in patients:
        try:
            next_bday = p.birth_date.replace(year=today.year)
        except ValueError:
            # 29 February
            next_bday = p.birth_date.replace(year=today.year, month=3, day=1)
        if next_bday < today:
            try:
                next_bday = next_bday.replace(year=today.year + 1)
            except ValueError:
                next_bday = next_bday.replace(year=today.year + 1, month=3, day=1)
        if next_bday <= today + timedelta(days=days):
            out.append({'id': str(p.id), 'first_name': p.first_name, 'last_name': p.last_name,
                        'birth_date': p.birth_date.isoformat(), 'next_birthday': next_bday.isoformat()})
    out.sort(key=lambda b: b['next_birthday'])
    return out[:BIRTHDAY_LIMIT]


def dashboard(practitioner: Practitioner) -> dict:
    today = timezone.localdate()
    first_of_month = today.replace(day=1)
    patients = Patient.objects.filter(practitioner=practitioner, archived_at__isnull=True)
    consultations = Consultation.objects.select_related('patient').filter(patient__practitioner=practitioner)

    month_revenue = Invoice.objects.filter(
        consultation__patient__practitioner=practitioner, status=Invoice.STATUS_PAID,
        paid_at__date__gte=first_of_month,
    ).aggregate(total=Sum('amount'))['total']

    recent = consultations.filter(archived_at__isnull=True).order_by('-date_time')[:RECENT_LIMIT]
    return {
        'stats': {
            'totalPatients': patients.count(),
            'todayConsultations': consultations.filter(date_time__date=today).count(),
            'monthlyRevenue': float(month_revenue or 0),
            'pendingFollowUps': ScheduledTask.objects.filter(
                practitioner=practitioner, type=ScheduledTask.TYPE_FOLLOW_UP,
                status=ScheduledTask.STATUS_PENDING,
            ).count(),
            'unreadMessages': Conversation.objects.filter(
                practitioner=practitioner, patient__isnull=False, unread_count__gt=0,
            ).count(),
        },
        'surveys': practitioner_survey_summary(practitioner),
        'birthdaysThisWeek': upcoming_birthdays(patients.only('id', 'first_name', 'last_name', 'birth_date'),
                                                today),
        'recentConsultations': [
            {
                'id': str(c.id),
                'date_time': c.date_time.isoformat(),
                'reason': c.reason,
                'patient': {'id': str(c.patient_id), 'first_name': c.patient.first_name,
                            'last_name': c.patient.last_name},
            }
            for c in recent
        ],
    }
