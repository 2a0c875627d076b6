"""
Authentication views.

Login issues both a DRF token and a JWT pair, so clients may use either
``Authorization: Token <key>`` or ``Authorization: Bearer <jwt>``.  The
response also carries the caller's hospital or driver profile id, which
the dispatch endpoints resolve implicitly from the authenticated user.
Registration returns the same payload so a new account is signed in
straight away.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from .exceptions import ValidationError
from .models import User
from .serializers.auth import (
    DriverRegisterSerializer,
    HospitalRegisterSerializer,
    LoginSerializer,
    LogoutSerializer,
    UserRegisterSerializer,
)
from .services.accounts import register_driver, register_hospital, register_user
from .services.audit import log_action

logger = logging.getLogger(__name__)


class LoginRateThrottle(AnonRateThrottle):
    """Per-IP limit on login attempts (``login`` rate in settings)."""
    scope = 'login'


class RegisterRateThrottle(AnonRateThrottle):
    scope = 'register'


def _profile(user: User) -> dict:
    profile: dict[str, object] = {}
    hospital = getattr(user, 'hospital', None) if user.role == User.ROLE_HOSPITAL else None
    driver = getattr(user, 'driver', None) if user.role == User.ROLE_DRIVER else None
    if hospital is not None:
        profile['hospitalId'] = str(hospital.id)
    if driver is not None:
        profile['driverId'] = str(driver.id)
        profile['isApproved'] = driver.is_approved
    return profile


def _session(user: User) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': {
            'id': user.id,
            'username': user.username,
            'name': user.display_name(),
            'role': user.role,
            **_profile(user),
        },
    }


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    """
    Username/password login.
    Accepts fields:
      - username
      - password
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']
    ip = request.META.get('REMOTE_ADDR')

    user = authenticate(request, username=username, password=s.validated_data['password'])
    if not user:
        log_action(actor_id=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': username, 'ip': ip})
        logger.info('failed login for %s', username)
        raise ValidationError('invalid username or password')

    log_action(actor_id=user.id, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': ip})
    return Response({'ok': True, **_session(user)})


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    resp = TokenRefreshView.as_view()(request._request)
    if isinstance(resp, Response) and resp.status_code == 200:
        data = dict(resp.data)
        data['jwt_access'] = data.pop('access')
        if 'refresh' in data:
            data['jwt_refresh'] = data.pop('refresh')
        return Response({'ok': True, **data})
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist one refresh token, or every outstanding token of the caller."""
    s = LogoutSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    refresh = s.validated_data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
        except TokenError as exc:
            raise ValidationError(f'invalid refresh token: {exc}') from exc
        count = 1
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    log_action(actor_id=request.user.id, action='logout', object_type='user', object_id=request.user.id,
               detail={'blacklisted': count})
    return Response({'ok': True, 'blacklisted': count})


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([RegisterRateThrottle])
def register_user_view(request):
    s = UserRegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    user = register_user(
        username=vd['username'], password=vd['password'], email=vd['email'], phone=vd['phoneNumber'],
        first_name=vd['firstName'], last_name=vd['lastName'],
    )
    return Response({'ok': True, 'message': 'User registered successfully', **_session(user)},
                    status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([RegisterRateThrottle])
def register_hospital_view(request):
    """
    Register a hospital account.
    Accepts fields:
      - username, password, email, phoneNumber
      - name, address, maxCapacity
      - latitude, longitude (optional, together)
    """
    s = HospitalRegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    hospital = register_hospital(
        username=vd['username'], password=vd['password'], email=vd['email'], phone=vd['phoneNumber'],
        name=vd['name'], address=vd['address'], max_capacity=vd['maxCapacity'],
        latitude=vd['latitude'], longitude=vd['longitude'],
    )
    return Response({'ok': True, 'message': 'Hospital registered successfully', **_session(hospital.user)},
                    status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([RegisterRateThrottle])
def register_driver_view(request):
    """Register a driver; the account cannot be dispatched until a hospital approves it."""
    s = DriverRegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    driver = register_driver(
        username=vd['username'], password=vd['password'], email=vd['email'], phone=vd['phoneNumber'],
        first_name=vd['firstName'], last_name=vd['lastName'],
        license_number=vd['licenseNumber'], vehicle_registration=vd['vehicleRegistration'],
    )
    return Response({'ok': True, 'message': 'Driver registered successfully, awaiting approval',
                     **_session(driver.user)}, status=status.HTTP_201_CREATED)
