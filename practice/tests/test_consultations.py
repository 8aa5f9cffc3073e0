import datetime
from decimal import Decimal

import pytest
from django.utils import timezone

from practice.models import AuditLog, Consultation, Invoice, Payment, ScheduledTask

pytestmark = pytest.mark.django_db


def consultation_payload(patient, **extra):
    return {
        'patient_id': str(patient.id),
        'date_time': '2024-03-04T10:00:00+01:00',
        'reason': 'Lombalgie',
        **extra,
    }


def test_create_raises_paid_invoice_and_bumps_counter(api, practitioner, patient, session_type):
    r = api.post('/api/consultations', consultation_payload(patient, session_type_id=str(session_type.id)),
                 format='json')
    assert r.status_code == 201
    invoice = Invoice.objects.get(consultation_id=r.data['data']['id'])
    assert invoice.status == Invoice.STATUS_PAID
    assert invoice.amount == Decimal('65.00')
    assert invoice.invoice_number.startswith('FACT-') and invoice.invoice_number.endswith('-001')
    assert list(invoice.payments.values_list('method', flat=True)) == ['card']
    practitioner.refresh_from_db()
    assert practitioner.invoice_next_number == 2
    assert r.data['data']['invoice']['invoice_number'] == invoice.invoice_number
    assert AuditLog.objects.filter(action='consultation_create').exists()


def test_create_with_split_payments(api, patient):
    r = api.post('/api/consultations', consultation_payload(patient, payments=[
        {'amount': '40', 'method': 'cash'},
        {'amount': '20', 'method': 'check', 'check_number': '1234567'},
    ]), format='json')
    assert r.status_code == 201
    invoice = Invoice.objects.get(consultation_id=r.data['data']['id'])
    assert invoice.amount == 60
    assert sorted(invoice.payments.values_list('method', flat=True)) == ['cash', 'check']


def test_create_without_invoice_uses_no_counter(api, practitioner, patient):
    r = api.post('/api/consultations', consultation_payload(patient, create_invoice=False), format='json')
    assert r.status_code == 201
    assert not Invoice.objects.exists()
    practitioner.refresh_from_db()
    assert practitioner.invoice_next_number == 1


def test_create_schedules_follow_up_seven_days_later(api, patient):
    r = api.post('/api/consultations', consultation_payload(patient, follow_up_7d=True), format='json')
    task = ScheduledTask.objects.get(consultation_id=r.data['data']['id'])
    c = Consultation.objects.get(id=r.data['data']['id'])
    assert task.status == ScheduledTask.STATUS_PENDING
    assert task.scheduled_for == c.date_time + datetime.timedelta(days=7)


def test_create_for_foreign_patient_is_404(other_api, patient):
    r = other_api.post('/api/consultations', consultation_payload(patient), format='json')
    assert r.status_code == 404
    assert not Consultation.objects.exists()


def test_reason_is_required(api, patient):
    r = api.post('/api/consultations', consultation_payload(patient, reason='   '), format='json')
    assert r.status_code == 400
    assert r.data['error'] == 'Le motif de consultation est requis'


def test_list_filters_by_patient_and_dates(api, patient, make_patient, make_consultation):
    other = make_patient(first_name='Marc')
    make_consultation(date_time=timezone.make_aware(datetime.datetime(2024, 1, 10, 9)))
    make_consultation(date_time=timezone.make_aware(datetime.datetime(2024, 2, 10, 9)))
    make_consultation(other, date_time=timezone.make_aware(datetime.datetime(2024, 2, 11, 9)))

    r = api.get('/api/consultations', {'patient': str(patient.id)})
    assert r.data['pagination']['total'] == 2
    r = api.get('/api/consultations', {'from': '2024-02-01', 'to': '2024-02-28'})
    assert [c['patient_name'] for c in r.data['data']] == ['Marc Bernard', 'Julie Bernard']


def test_disabling_follow_up_cancels_pending_task(api, practitioner, consultation):
    consultation.follow_up_7d = True
    consultation.save()
    task = ScheduledTask.objects.create(practitioner=practitioner, consultation=consultation,
                                        scheduled_for=consultation.date_time + datetime.timedelta(days=7))
    r = api.patch(f'/api/consultations/{consultation.id}', {'follow_up_7d': False}, format='json')
    assert r.status_code == 200
    task.refresh_from_db()
    assert task.status == ScheduledTask.STATUS_CANCELLED


def test_moving_consultation_moves_follow_up(api, consultation):
    r = api.patch(f'/api/consultations/{consultation.id}', {
        'follow_up_7d': True, 'date_time': '2024-05-02T14:30:00+02:00',
    }, format='json')
    assert r.status_code == 200
    task = ScheduledTask.objects.get(consultation=consultation)
    consultation.refresh_from_db()
    assert task.scheduled_for == consultation.date_time + datetime.timedelta(days=7)


def test_update_cannot_change_patient(api, consultation, make_patient):
    other = make_patient(first_name='Marc')
    api.patch(f'/api/consultations/{consultation.id}', {'patient_id': str(other.id), 'reason': 'Suivi'},
              format='json')
    consultation.refresh_from_db()
    assert consultation.patient_id != other.id
    assert consultation.reason == 'Suivi'


def test_archive_hides_from_default_list(api, consultation):
    api.post(f'/api/consultations/{consultation.id}/archive')
    assert api.get('/api/consultations').data['data'] == []
    assert len(api.get('/api/consultations', {'includeArchived': 'true'}).data['data']) == 1
    api.post(f'/api/consultations/{consultation.id}/unarchive')
    assert len(api.get('/api/consultations').data['data']) == 1


def test_delete_removes_invoice_and_payments(api, patient):
    created = api.post('/api/consultations', consultation_payload(patient, follow_up_7d=True), format='json')
    cid = created.data['data']['id']
    r = api.delete(f'/api/consultations/{cid}')
    assert r.status_code == 200
    assert not Invoice.objects.exists()
    assert not Payment.objects.exists()
    assert not ScheduledTask.objects.exists()


def test_other_practitioner_cannot_touch_consultation(other_api, consultation):
    assert other_api.get(f'/api/consultations/{consultation.id}').status_code == 403
    assert other_api.delete(f'/api/consultations/{consultation.id}').status_code == 403
    assert Consultation.objects.filter(id=consultation.id).exists()
