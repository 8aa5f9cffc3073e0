from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from practice.permissions import IsPractitioner
from practice.responses import error, ok
from practice.serializers.settings import ManualRevenueSerializer, ObjectivesSerializer
from practice.services import objectives as svc
from practice.services.practitioners import get_practitioner


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsPractitioner])
def objectives(request):
    practitioner = get_practitioner(request.user)
    if request.method == 'PUT':
        s = ObjectivesSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        svc.update_objectives(practitioner, s.validated_data)
        return ok({'success': True, 'settings': svc.objective_settings(practitioner)})
    return ok(svc.objectives_overview(practitioner))


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def manual_revenue(request):
    practitioner = get_practitioner(request.user)
    if request.method == 'POST':
        s = ManualRevenueSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        svc.set_manual_revenue(practitioner, **s.validated_data)
        return ok({'success': True})

    try:
        year = int(request.query_params.get('year') or 0)
        month = int(request.query_params.get('month') or 0)
    except ValueError:
        year = month = 0
    if not year or not month:
        return error('Paramètres invalides', status=400)
    svc.delete_manual_revenue(practitioner, year=year, month=month)
    return ok({'success': True})
