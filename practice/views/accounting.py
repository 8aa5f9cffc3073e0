"""
Accounting endpoints: recap over paid invoices, CSV export, PDF report
to the accountant and saved filter sets.
"""
from __future__ import annotations

from django.http import HttpResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from practice.models import SavedReport
from practice.permissions import IsPractitioner
from practice.responses import error, ok
from practice.serializers.accounting import AccountingFiltersSerializer, AccountingRangeSerializer, SavedReportSerializer
from practice.services import accounting as svc
from practice.services.practitioners import get_practitioner


def _filters(request):
    """Validated filters; dates default to the requested period (current month)."""
    s = AccountingFiltersSerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    start, end = vd.get('startDate'), vd.get('endDate')
    if not (start and end):
        default_start, default_end = svc.period_range(vd.get('period') or 'month') or svc.period_range('month')
        start, end = start or default_start, end or default_end
    return {'start': start, 'end': end, 'payment_method': vd.get('paymentMethod') or None,
            'patient_id': vd.get('patientId')}


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPractitioner])
def summary(request):
    filters = _filters(request)
    data = svc.accounting_summary(get_practitioner(request.user), **filters)
    data['startDate'] = filters['start'].isoformat()
    data['endDate'] = filters['end'].isoformat()
    return ok(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPractitioner])
def export(request):
    fmt = request.query_params.get('format') or 'csv'
    if fmt != 'csv':
        return error('Format non supporté', status=400)
    filters = _filters(request)
    data = svc.accounting_summary(get_practitioner(request.user), **filters)
    content = svc.recap_csv(data, filters['start'], filters['end'], filters['payment_method'])
    resp = HttpResponse(content.encode('utf-8'), content_type='text/csv; charset=utf-8')
    resp['Content-Disposition'] = (
        f'attachment; filename="recap_comptable_{filters["start"].isoformat()}_{filters["end"].isoformat()}.csv"'
    )
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def send_report(request):
    s = AccountingRangeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        result = svc.send_accounting_report(get_practitioner(request.user), start=s.validated_data['startDate'],
                                            end=s.validated_data['endDate'])
    except ValueError as e:
        return error(str(e), status=400)
    return ok(result)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPractitioner])
def reports(request):
    practitioner = get_practitioner(request.user)
    if request.method == 'GET':
        return ok([svc.serialize_report(r) for r in svc.list_reports(practitioner)])

    s = SavedReportSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    report = svc.create_report(practitioner, name=s.validated_data['name'],
                               filters=s.validated_data.get('filters') or {})
    return ok(svc.serialize_report(report), status=201)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsPractitioner])
def report_detail(request, report_id):
    deleted, _ = SavedReport.objects.filter(id=report_id, practitioner=get_practitioner(request.user)).delete()
    if not deleted:
        return error('Rapport non trouvé', status=404)
    return ok({'success': True})
