"""
Satisfaction surveys.

The patient-facing form is hosted by an external survey worker.  A
survey is registered there when the J+7 follow-up goes out; answers are
pulled back periodically by ``sync_surveys`` and then deleted from the
worker.
"""
import logging
import secrets
import string

import requests
from django.conf import settings
from django.db.models import Avg, Count, Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from practice.exceptions import SurveyWorkerError
from practice.models import Consultation, Practitioner, SurveyResponse
from practice.services.realtime import broadcast

logger = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_lowercase + string.digits
SYNC_BATCH = 50
LIST_LIMIT = 100


def generate_token() -> str:
    return ''.join(secrets.choice(TOKEN_ALPHABET) for _ in range(32))


def survey_url(token: str) -> str:
    return f"{settings.SURVEY_WORKER_URL}/survey/{token}"


def _post(path: str, payload: dict) -> requests.Response:
    resp = requests.post(f"{settings.SURVEY_WORKER_URL}{path}", json=payload, timeout=settings.SURVEY_TIMEOUT)
    resp.raise_for_status()
    return resp


def register_survey(consultation: Consultation) -> SurveyResponse:
    """Create the local survey row and announce it to the worker.

    Raises ``SurveyWorkerError`` when the worker refuses it, in which case
    the local row is removed again.
    """
    patient = consultation.patient
    practitioner = patient.practitioner
    survey = SurveyResponse.objects.create(
        practitioner=practitioner,
        patient=patient,
        consultation=consultation,
        token=generate_token(),
    )
    try:
        _post('/api/surveys', {
            'token': survey.token,
            'practitioner_name': practitioner.full_name,
            'practice_name': practitioner.practice_name,
            'patient_first_name': patient.first_name,
            'primary_color': practitioner.primary_color or '#2563eb',
            'specialty': practitioner.specialty,
            'consultation_id': str(consultation.id),
        })
    except requests.RequestException as e:
        logger.warning("Survey registration for consultation %s failed: %s", consultation.id, e)
        survey.delete()
        raise SurveyWorkerError(f"Erreur d'enregistrement du questionnaire: {e}")
    return survey


def serialize_survey(s: SurveyResponse) -> dict:
    return {
        'id': str(s.id),
        'consultation_id': str(s.consultation_id),
        'patient_id': str(s.patient_id),
        'token': s.token,
        'status': s.status,
        'overall_rating': s.overall_rating,
        'pain_evolution': s.pain_evolution or None,
        'comment': s.comment or None,
        'would_recommend': s.would_recommend,
        'responded_at': s.responded_at.isoformat() if s.responded_at else None,
        'synced_at': s.synced_at.isoformat() if s.synced_at else None,
        'created_at': s.created_at.isoformat(),
    }


def list_surveys(practitioner: Practitioner, *, consultation_id=None, patient_id=None) -> dict:
    qs = SurveyResponse.objects.filter(practitioner=practitioner)
    if consultation_id:
        qs = qs.filter(consultation_id=consultation_id)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    rows = list(qs.order_by('-created_at')[:LIST_LIMIT])
    return {'surveys': [serialize_survey(s) for s in rows], 'stats': survey_stats(rows)}


def survey_stats(rows) -> dict:
    completed = [s for s in rows if s.status == 'completed']
    ratings = [s.overall_rating or 0 for s in completed]
    return {
        'total': len(rows),
        'completed': len(completed),
        'pending': sum(1 for s in rows if s.status == 'pending'),
        'avg_rating': round(sum(ratings) / len(ratings), 1) if ratings else None,
        'pain_better': sum(1 for s in completed if s.pain_evolution == 'better'),
        'pain_same': sum(1 for s in completed if s.pain_evolution == 'same'),
        'pain_worse': sum(1 for s in completed if s.pain_evolution == 'worse'),
        'would_recommend': sum(1 for s in completed if s.would_recommend is True),
    }


def practitioner_survey_summary(practitioner: Practitioner) -> dict:
    """Aggregate counters used by the dashboard."""
    agg = SurveyResponse.objects.filter(practitioner=practitioner).aggregate(
        total=Count('id'),
        completed=Count('id', filter=Q(status='completed')),
        avg=Avg('overall_rating', filter=Q(status='completed')),
    )
    return {
        'total': agg['total'],
        'completed': agg['completed'],
        'avg_rating': round(agg['avg'], 1) if agg['avg'] is not None else None,
    }


def _apply_result(result: dict) -> bool:
    answer = result.get('response') or {}
    responded_at = parse_datetime(result.get('responded_at') or '') or timezone.now()
    pain = answer.get('pain_evolution')
    updated = SurveyResponse.objects.filter(token=result.get('token'), status='pending').update(
        status='completed',
        overall_rating=answer.get('overall_rating'),
        pain_evolution=pain if pain in ('better', 'same', 'worse') else '',
        comment=(answer.get('comment') or '')[:5000],
        would_recommend=answer.get('would_recommend'),
        responded_at=responded_at,
        synced_at=timezone.now(),
        updated_at=timezone.now(),
    )
    return bool(updated)


def sync_surveys(practitioner: Practitioner | None = None) -> dict:
    """Pull completed answers for up to ``SYNC_BATCH`` pending surveys.

    ``practitioner`` narrows the batch; the scheduler passes ``None`` to
    sync every local practitioner at once.
    """
    qs = SurveyResponse.objects.filter(status='pending')
    if practitioner is not None:
        qs = qs.filter(practitioner=practitioner)
    tokens = list(qs.order_by('created_at').values_list('token', flat=True)[:SYNC_BATCH])
    if not tokens:
        return {'message': 'Aucun questionnaire en attente', 'synced': 0}

    logger.info("Survey sync: checking %d pending survey(s)", len(tokens))
    try:
        results = _post('/api/surveys/sync', {'tokens': tokens}).json().get('results') or []
    except (requests.RequestException, ValueError) as e:
        logger.warning("Survey sync failed: %s", e)
        raise SurveyWorkerError(f"Erreur de synchronisation: {e}")

    synced_tokens = [r['token'] for r in results if r.get('token') in tokens and _apply_result(r)]
    if synced_tokens:
        try:
            _post('/api/surveys/delete', {'tokens': synced_tokens})
        except requests.RequestException as e:
            logger.warning("Survey cleanup on worker failed for %d token(s): %s", len(synced_tokens), e)
        broadcast('survey.synced', synced=len(synced_tokens))

    logger.info("Survey sync done: %d survey(s) synced", len(synced_tokens))
    return {'message': f"{len(synced_tokens)} questionnaire(s) synchronisé(s)", 'synced': len(synced_tokens)}
