"""
Dashboard and statistics endpoints.

Statistics are cached per practitioner and filter set for
``STATISTICS_CACHE_SECONDS``.
"""
from __future__ import annotations

from django.conf import settings
from django.core.cache import cache
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from practice.permissions import IsPractitioner
from practice.responses import ok
from practice.serializers.accounting import StatisticsQuerySerializer
from practice.services.dashboard import dashboard as dashboard_data
from practice.services.practitioners import get_practitioner
from practice.services.statistics import practice_statistics


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPractitioner])
def dashboard(request):
    return ok(dashboard_data(get_practitioner(request.user)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPractitioner])
def statistics(request):
    q = StatisticsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    practitioner = get_practitioner(request.user)

    ck = (f"stats:{practitioner.id}:{vd.get('startDate') or ''}:{vd.get('endDate') or ''}"
          f":{vd.get('gender') or ''}:{vd.get('ageGroup') or ''}")
    cached = cache.get(ck)
    if cached:
        return ok(cached)
    payload = practice_statistics(practitioner, start=vd.get('startDate'), end=vd.get('endDate'),
                                  gender=vd.get('gender'), group=vd.get('ageGroup'))
    cache.set(ck, payload, settings.STATISTICS_CACHE_SECONDS)
    return ok(payload)
