"""Envelope helpers for API payloads."""
from rest_framework.response import Response


def ok(data=None, *, status=200, pagination=None):
    payload = {'data': data, 'error': None}
    if pagination is not None:
        payload['pagination'] = pagination
    return Response(payload, status=status)


def error(message, *, status=400, **extra):
    return Response({'error': message, **extra}, status=status)


def paginate(qs, page, page_size):
    """Slice a queryset; returns (items, pagination dict)."""
    page = max(1, page or 1)
    page_size = min(100, max(1, page_size or 20))
    total = qs.count()
    start = (page - 1) * page_size
    return list(qs[start:start + page_size]), {'total': total, 'page': page, 'pageSize': page_size}
