"""
Self-service account registration.

Each role gets its own entry point: requesters only need a user row,
hospitals and drivers also get their profile in the same transaction.
New drivers start unapproved and stay out of dispatch until a hospital
approves them.
"""
import logging
from typing import Optional

import bleach
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from dispatch.exceptions import Conflict, ValidationError, translate_storage_errors
from dispatch.models import Driver, Hospital
from dispatch.services.audit import log_action
from dispatch.services.geo import validate_coordinates

logger = logging.getLogger(__name__)

User = get_user_model()


def _clean(text: Optional[str]) -> str:
    return bleach.clean((text or '').strip(), strip=True)


def _create_user(role: str, *, username: str, password: str, email: str = '', phone: str = '',
                 first_name: str = '', last_name: str = ''):
    username = (username or '').strip()
    if not username:
        raise ValidationError('username is required')
    if User.objects.filter(username__iexact=username).exists():
        raise Conflict('username already registered')
    if email and User.objects.filter(email__iexact=email).exists():
        raise Conflict('email already registered')
    candidate = User(username=username, email=email, first_name=_clean(first_name), last_name=_clean(last_name))
    try:
        validate_password(password, user=candidate)
    except DjangoValidationError as e:
        raise ValidationError(' '.join(e.messages))
    try:
        with transaction.atomic():
            return User.objects.create_user(
                username=username, password=password, email=email, role=role, phone=_clean(phone),
                first_name=candidate.first_name, last_name=candidate.last_name,
            )
    except IntegrityError as exc:
        raise Conflict('username already registered') from exc


@translate_storage_errors('register user')
def register_user(*, username, password, email='', phone='', first_name='', last_name=''):
    with transaction.atomic():
        user = _create_user(User.ROLE_USER, username=username, password=password, email=email, phone=phone,
                            first_name=first_name, last_name=last_name)
        log_action(actor_id=user.id, action='register', object_type='user', object_id=user.id,
                   detail={'role': user.role})
    logger.info('user %s registered', user.username)
    return user


@translate_storage_errors('register hospital')
def register_hospital(*, username, password, name, address, max_capacity, email='', phone='',
                      latitude=None, longitude=None) -> Hospital:
    """Create a hospital account and its profile.

    Coordinates are optional but must come as a pair; a hospital without
    them is never offered by the matcher.
    """
    name = _clean(name)
    address = _clean(address)
    if not name:
        raise ValidationError('hospital name is required')
    if not address:
        raise ValidationError('hospital address is required')
    if (latitude is None) != (longitude is None):
        raise ValidationError('latitude and longitude must be given together')
    if latitude is not None:
        latitude, longitude = validate_coordinates(latitude, longitude)
    try:
        max_capacity = int(max_capacity)
    except (TypeError, ValueError):
        raise ValidationError('maxCapacity must be an integer')
    if max_capacity < 1:
        raise ValidationError('maxCapacity must be positive')

    with transaction.atomic():
        user = _create_user(User.ROLE_HOSPITAL, username=username, password=password, email=email, phone=phone)
        hospital = Hospital.objects.create(
            user=user, name=name, address=address, phone=user.phone,
            latitude=latitude, longitude=longitude, max_capacity=max_capacity,
        )
        log_action(actor_id=user.id, action='register', object_type='hospital', object_id=hospital.id,
                   detail={'role': user.role})
    logger.info('hospital %s registered as %s', hospital.id, user.username)
    return hospital


@translate_storage_errors('register driver')
def register_driver(*, username, password, license_number, vehicle_registration='', email='', phone='',
                    first_name='', last_name='') -> Driver:
    license_number = _clean(license_number).upper()
    if not license_number:
        raise ValidationError('license number is required')

    with transaction.atomic():
        if Driver.objects.filter(license_number__iexact=license_number).exists():
            raise Conflict('license number already registered')
        user = _create_user(User.ROLE_DRIVER, username=username, password=password, email=email, phone=phone,
                            first_name=first_name, last_name=last_name)
        try:
            with transaction.atomic():
                driver = Driver.objects.create(
                    user=user, license_number=license_number,
                    vehicle_registration=_clean(vehicle_registration), is_approved=False,
                )
        except IntegrityError as exc:
            raise Conflict('license number already registered') from exc
        log_action(actor_id=user.id, action='register', object_type='driver', object_id=driver.id,
                   detail={'role': user.role})
    logger.info('driver %s registered as %s, awaiting approval', driver.id, user.username)
    return driver
