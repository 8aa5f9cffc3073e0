"""
Scheduled follow-up emails.

Lists the practitioner's scheduled tasks with the consultation and
patient they target, newest first, together with per-status counts
over all of the practitioner's tasks.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from practice.permissions import IsPractitioner
from practice.responses import ok
from practice.serializers.tasks import ScheduledTaskQuerySerializer
from practice.services import followups as svc
from practice.services.practitioners import get_practitioner


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPractitioner])
def scheduled_tasks(request):
    q = ScheduledTaskQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    practitioner = get_practitioner(request.user)
    tasks = svc.list_scheduled_tasks(practitioner, status=q.validated_data.get('status') or None,
                                     search=q.validated_data.get('search') or '')
    return ok({
        'tasks': [svc.serialize_task(t) for t in tasks],
        'counts': svc.task_counts(practitioner),
    })
