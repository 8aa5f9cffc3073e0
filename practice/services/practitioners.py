from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction

from practice.exceptions import PractitionerNotFound
from practice.models import Practitioner

User = get_user_model()

SETTINGS_FIELDS = (
    'first_name', 'last_name', 'email', 'phone', 'practice_name', 'specialty', 'address', 'city',
    'postal_code', 'siret', 'rpps', 'default_rate', 'invoice_prefix', 'primary_color',
    'accountant_email', 'google_review_url',
)


def get_practitioner(user) -> Practitioner:
    if not user or not getattr(user, 'is_authenticated', False):
        raise PractitionerNotFound()
    try:
        return Practitioner.objects.get(user=user)
    except Practitioner.DoesNotExist:
        raise PractitionerNotFound()


def serialize_practitioner(p: Practitioner) -> dict:
    return {
        'id': str(p.id),
        'first_name': p.first_name,
        'last_name': p.last_name,
        'email': p.email,
        'phone': p.phone,
        'practice_name': p.practice_name,
        'address': p.address,
        'city': p.city,
        'postal_code': p.postal_code,
        'siret': p.siret,
        'rpps': p.rpps,
        'specialty': p.specialty,
        'default_rate': float(p.default_rate),
        'invoice_prefix': p.invoice_prefix,
        'invoice_next_number': p.invoice_next_number,
        'logo_url': p.logo_url or None,
        'primary_color': p.primary_color,
        'stamp_url': p.stamp_url or None,
        'accountant_email': p.accountant_email or None,
        'google_review_url': p.google_review_url or None,
        'annual_revenue_objective': float(p.annual_revenue_objective) if p.annual_revenue_objective is not None else None,
        'vacation_weeks_per_year': p.vacation_weeks_per_year,
        'working_days_per_week': p.working_days_per_week,
        'average_consultation_price': (
            float(p.average_consultation_price) if p.average_consultation_price is not None else None
        ),
    }


@transaction.atomic
def create_account(*, email: str, password: str, first_name: str = '', last_name: str = '',
                   practice_name: str = '', specialty: str = '') -> Practitioner:
    """Create the login user and its practitioner profile."""
    if User.objects.filter(email__iexact=email).exists():
        raise ValueError('Un compte existe déjà avec cet email')
    user = User.objects.create_user(username=email, email=email, password=password,
                                    first_name=first_name, last_name=last_name)
    return Practitioner.objects.create(
        user=user, first_name=first_name, last_name=last_name, email=email,
        practice_name=practice_name, specialty=specialty,
    )


def update_settings(practitioner: Practitioner, data: dict) -> Practitioner:
    changed = []
    for field in SETTINGS_FIELDS:
        if field in data:
            value = data[field]
            setattr(practitioner, field, '' if value is None else value)
            changed.append(field)
    if changed:
        practitioner.save(update_fields=changed + ['updated_at'])
    return practitioner


def local_practitioners() -> list[dict]:
    return [{
        'id': str(p.id),
        'name': p.full_name,
        'email': p.email,
        'practice_name': p.practice_name or None,
    } for p in Practitioner.objects.order_by('last_name', 'first_name')]


def find_user_by_email(email: str) -> Optional[User]:
    return User.objects.filter(email__iexact=email).first()
