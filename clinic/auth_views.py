"""
Authentication views and helper functions.

This module defines the login and registration endpoints used by the
front-end.  Requests authenticate with either the DRF token
(``Authorization: Token <key>``) or the JWT access token
(``Authorization: Bearer <jwt>``) returned here.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from clinic.serializers.auth import LoginSerializer, RegisterSerializer
from clinic.services.accounts import register_user
from clinic.services.audit import log_action

from .models import User

logger = logging.getLogger(__name__)


def serialize_user(user: User) -> dict:
    data = {
        'id': user.id,
        'username': user.username,
        'name': user.display_name,
        'email': user.email,
        'phone': user.phone,
        'role': user.role,
        'status': user.status,
    }
    if user.is_doctor:
        data.update({
            'specialization': user.specialization,
            'experience': user.experience,
            'education': user.education,
            'licenseId': user.license_id,
        })
    return data


def _token_payload(user: User) -> dict:
    # DRF token for the API, JWT pair for clients that prefer it
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': serialize_user(user),
    }


# ---------------------------------------------------------------------
# Username/password login (no role bypass)
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """
    Login with username/password.  Any ``role`` field in the body is
    ignored; the role always comes from the account.
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']
    password = s.validated_data['password']

    user = authenticate(request, username=username, password=password)
    if not user:
        log_action(user=None, action='login', object_type='user', object_id=None,
                   detail={'result': 'fail', 'username': username, 'ip': request.META.get('REMOTE_ADDR')})
        return Response({'ok': False, 'detail': 'Invalid username or password'}, status=400)

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})
    return Response(_token_payload(user), status=200)

# ScopedRateThrottle reads throttle_scope from the wrapped APIView class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def register_view(request):
    """Register a patient or a doctor.  Doctor accounts wait for admin approval."""
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    try:
        user = register_user(
            username=v['username'], password=v['password'], name=v['name'], email=v['email'],
            phone=v.get('phone', ''), role=v['role'],
            specialization=v.get('specialization'), experience=v.get('experience'),
            education=v.get('education'), license_id=v.get('licenseId'),
        )
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)

    log_action(user=user, action='register', object_type='user', object_id=user.id, detail={'role': user.role})
    logger.info('registered %s account %s', user.role, user.username)
    payload = _token_payload(user)
    if user.is_doctor:
        payload['detail'] = 'Registration received. Your account is pending admin approval.'
    return Response(payload, status=201)

register_view.cls.throttle_scope = 'register'


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'ok': True, 'user': serialize_user(request.user)})


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from refresh token."""
    view = TokenRefreshView.as_view()
    resp = view(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data and 'jwt_access' not in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist current user's refresh tokens (all or a given one)."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            return Response({'ok': False, 'detail': str(e)}, status=400)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    return Response({'ok': True, 'blacklisted': count})
