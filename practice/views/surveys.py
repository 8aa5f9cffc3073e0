from __future__ import annotations

from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import IsAuthenticated

from practice.permissions import IsCronOrPractitioner, IsPractitioner
from practice.responses import ok
from practice.services.practitioners import get_practitioner
from practice.services.surveys import list_surveys, sync_surveys
from practice.views.emails import CRON_OR_USER_AUTH


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPractitioner])
def surveys(request):
    params = request.query_params
    return ok(list_surveys(get_practitioner(request.user), consultation_id=params.get('consultation_id'),
                           patient_id=params.get('patient_id')))


@api_view(['POST'])
@authentication_classes(CRON_OR_USER_AUTH)
@permission_classes([IsCronOrPractitioner])
def sync(request):
    """The scheduler syncs every practitioner; a user only their own surveys."""
    practitioner = get_practitioner(request.user) if request.user is not None else None
    return ok(sync_surveys(practitioner))
