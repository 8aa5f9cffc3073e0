from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from practice.permissions import IsPractitioner
from practice.responses import ok
from practice.serializers.settings import PractitionerSettingsSerializer
from practice.services.practitioners import get_practitioner, serialize_practitioner, update_settings


@api_view(['GET', 'PATCH', 'PUT'])
@permission_classes([IsAuthenticated, IsPractitioner])
def practitioner_settings(request):
    practitioner = get_practitioner(request.user)
    if request.method != 'GET':
        s = PractitionerSettingsSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        update_settings(practitioner, s.validated_data)
    return ok(serialize_practitioner(practitioner))
