"""
Authentication backends for the practice API.

``TokenAuthentication`` keeps a stable import path for the settings
module.  ``CronSecretAuthentication`` lets the in-process scheduler call
its own routes with the shared ``CRON_SECRET``, either as a bearer token
or a ``secret`` query parameter.
"""
from __future__ import annotations

import hmac

from django.conf import settings
from rest_framework import authentication

CRON_PRINCIPAL = 'cron'


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token authentication using the ``Token`` keyword."""

    keyword = 'Token'


def extract_cron_secret(request) -> str | None:
    header = request.META.get('HTTP_AUTHORIZATION', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip()
    return request.GET.get('secret')


def is_cron_secret(value: str | None) -> bool:
    expected = settings.CRON_SECRET
    return bool(value and expected and hmac.compare_digest(value, expected))


class CronSecretAuthentication(authentication.BaseAuthentication):
    """Authenticate loopback cron calls.

    Returns ``(None, 'cron')`` so that ``request.user`` stays anonymous
    and ``request.auth`` identifies the scheduler.  A bearer value that is
    not the cron secret is left to the JWT backend.
    """

    def authenticate(self, request):
        if is_cron_secret(extract_cron_secret(request)):
            return (None, CRON_PRINCIPAL)
        return None

    def authenticate_header(self, request):
        return 'Bearer'
