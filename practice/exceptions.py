"""
Error taxonomy and the DRF exception handler.

Every error leaves the API as ``{"error": "<message>"}`` with French
user-facing text; validation failures add ``details`` with the field
errors.  Anything DRF does not know about becomes a logged 500.
"""
import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class NotFound(exceptions.NotFound):
    default_detail = 'Ressource non trouvée'


class PractitionerNotFound(NotFound):
    default_detail = 'Praticien non trouvé'


class Unauthorized(exceptions.APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Non autorisé'
    default_code = 'unauthorized'


class Forbidden(exceptions.PermissionDenied):
    default_detail = 'Non autorisé'


class DownstreamServiceError(exceptions.APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Service externe indisponible'
    default_code = 'downstream_error'


class EmailDeliveryError(DownstreamServiceError):
    default_detail = "Erreur lors de l'envoi de l'email"


class EmailNotConfigured(DownstreamServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Aucun paramètre email configuré. Configurez vos emails dans les paramètres.'
    default_code = 'email_not_configured'


class MailboxError(DownstreamServiceError):
    default_detail = 'Erreur de connexion à la boîte de réception'


class SurveyWorkerError(DownstreamServiceError):
    default_detail = 'Erreur de synchronisation'


def first_message(data):
    if isinstance(data, list):
        return first_message(data[0]) if data else 'Données invalides'
    if isinstance(data, dict):
        if 'detail' in data:
            return str(data['detail'])
        for value in data.values():
            return first_message(value)
        return 'Données invalides'
    return str(data)


def api_exception_handler(exc, context):
    if isinstance(exc, Http404):
        exc = NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = Forbidden()
    elif isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        exc = Unauthorized()
    elif isinstance(exc, exceptions.PermissionDenied) and not isinstance(exc, Forbidden):
        exc = Forbidden()
    elif isinstance(exc, exceptions.Throttled):
        exc = exceptions.Throttled(wait=exc.wait, detail="Trop de tentatives, réessayez plus tard")

    resp = drf_exception_handler(exc, context)
    if resp is None:
        request = context.get("request")
        logger.error("Unhandled error on %s", getattr(request, "path", "?"), exc_info=exc)
        return Response({'error': 'Erreur serveur'}, status=500)

    if isinstance(exc, exceptions.ValidationError):
        return Response({'error': first_message(resp.data), 'details': resp.data}, status=resp.status_code)
    return Response({'error': first_message(resp.data)}, status=resp.status_code, headers=_auth_headers(resp))


def _auth_headers(resp):
    headers = {}
    for name in ('WWW-Authenticate', 'Retry-After'):
        if resp.has_header(name):
            headers[name] = resp[name]
    return headers
