"""
Authentication views and helper functions.

Defines signup, login (legacy token plus JWT pair) and JWT refresh /
logout, and the helper that renders the user→hospital binding.  Kept
apart from ``hospitals.authentication`` to avoid circular imports when
Django REST framework initialises authentication classes.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from django.utils import timezone
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from hospitals.serializers.auth import LoginSerializer, SignupSerializer
from hospitals.services.audit import log_action

from .models import User

logger = logging.getLogger(__name__)


def get_hospital_binding_for_user(user: User | None) -> dict | None:
    """Return the hospital binding dict or None."""
    if user and user.hospital_id:
        return {
            'hospitalId': user.hospital_id,
            'hospitalName': user.hospital.name,
            'bindTime': int((user.hospital_bind_time or timezone.now()).timestamp()),
        }
    return None


def _token_payload(user: User) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    payload: dict[str, object] = {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'user': {
            'id': user.id,
            'username': user.username,
            'email': user.email,
        },
        'hospitalBinding': get_hospital_binding_for_user(user),
    }
    return payload


# ---------------------------------------------------------------------
# Signup / login
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def signup_view(request):
    s = SignupSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    user = User.objects.create_user(username=vd['username'], email=vd.get('email') or '', password=vd['password'])
    log_action(user=user, action='signup', object_type='user', object_id=user.id)
    logger.info('user %s signed up', user.username)
    return Response(_token_payload(user), status=201)

signup_view.cls.throttle_scope = 'signup'


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def login_view(request):
    """Username/password login.

    Returns the legacy ``Token`` key, a JWT pair and the hospital binding;
    a null binding tells the client to send the user to registration.
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    user = authenticate(request, username=vd['username'], password=vd['password'])
    if not user:
        log_action(user=None, action='login', object_type='user', object_id=None,
                   detail={'result': 'fail', 'username': vd['username'], 'ip': request.META.get('REMOTE_ADDR')})
        return Response({'ok': False, 'detail': 'Invalid username or password'}, status=400)

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})
    return Response(_token_payload(user), status=200)

login_view.cls.throttle_scope = 'login'


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    s = TokenRefreshSerializer(data=request.data)
    try:
        s.is_valid(raise_exception=True)
    except TokenError as e:
        return Response({'ok': False, 'detail': str(e)}, status=401)
    data = dict(s.validated_data)
    data['jwt_access'] = data.pop('access')
    if 'refresh' in data:
        data['jwt_refresh'] = data.pop('refresh')
    data['ok'] = True
    return Response(data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or all of the user's refresh tokens."""
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
