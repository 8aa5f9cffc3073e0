"""
Authentication views.

Login is by email and password.  A successful login returns both the
DRF token (``Authorization: Token <key>``) and a simplejwt access/refresh
pair so that the desktop shell and scripts can use either scheme.
"""
from __future__ import annotations

from django.contrib.auth import authenticate
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from practice.exceptions import Unauthorized
from practice.responses import error, ok
from practice.serializers.auth import ChangePasswordSerializer, LoginSerializer, RegisterSerializer
from practice.services.audit import log_action
from practice.services.practitioners import (
    create_account,
    find_user_by_email,
    local_practitioners,
    serialize_practitioner,
)


def _user_payload(user) -> dict:
    practitioner = getattr(user, 'practitioner', None)
    return {
        'id': user.id,
        'email': user.email,
        'practitioner': serialize_practitioner(practitioner) if practitioner else None,
    }


def _session_payload(user) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'user': _user_payload(user),
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
    }


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    email = s.validated_data['email']
    password = s.validated_data['password']

    account = find_user_by_email(email)
    user = authenticate(request, username=account.username, password=password) if account else None
    if not user:
        log_action(practitioner=None, action='login', object_type='user',
                   detail={'result': 'fail', 'email': email, 'ip': request.META.get('REMOTE_ADDR')})
        return error('Identifiants incorrects', status=401)

    log_action(practitioner=getattr(user, 'practitioner', None), action='login', object_type='user',
               object_id=user.id, detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})
    return ok(_session_payload(user))

# ScopedRateThrottle reads throttle_scope from the wrapped APIView class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def register_view(request):
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        practitioner = create_account(
            email=vd['email'], password=vd['password'],
            first_name=vd['first_name'].strip(), last_name=vd['last_name'].strip(),
            practice_name=vd.get('practice_name', ''), specialty=vd.get('specialty', ''),
        )
    except ValueError as e:
        return error(str(e), status=400)
    log_action(practitioner=practitioner, action='register', object_type='practitioner', object_id=practitioner.id)
    return ok(_session_payload(practitioner.user), status=201)

register_view.cls.throttle_scope = 'login'


@api_view(['GET'])
@permission_classes([AllowAny])
def practitioners_view(request):
    """Local profiles, used by the desktop account picker."""
    return ok(local_practitioners())


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def user_view(request):
    if request.method == 'GET':
        return ok({'user': _user_payload(request.user)})

    s = ChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    if not request.user.check_password(s.validated_data['currentPassword']):
        return error('Mot de passe incorrect', status=400)
    request.user.set_password(s.validated_data['newPassword'])
    request.user.save(update_fields=['password'])
    log_action(practitioner=getattr(request.user, 'practitioner', None), action='password_change',
               object_type='user', object_id=request.user.id)
    return ok({'success': True})


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    view = TokenRefreshView.as_view()
    resp = view(request._request)
    if resp.status_code >= 400:
        raise Unauthorized()
    data = dict(resp.data)
    return ok({'jwt_access': data.get('access'), 'jwt_refresh': data.get('refresh')})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Drop the DRF token and blacklist the user's refresh tokens."""
    Token.objects.filter(user=request.user).delete()
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError:
            pass
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    return ok({'success': True, 'blacklisted': count})
