"""
Emergency request lifecycle.

Owns creation, hospital acceptance, cancellation and the requester and
hospital read views.  Every transition locks the request row and then
applies a conditional update on the expected current status, so two
hospitals racing to accept the same request get one success and one
:class:`~dispatch.exceptions.Conflict`.
"""
import logging
from typing import Optional, Tuple, List

import bleach
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F, Max
from django.utils import timezone

from dispatch.exceptions import Conflict, NotFound, ValidationError, translate_storage_errors
from dispatch.models import Assignment, Driver, EmergencyRequest, Hospital
from dispatch.services import events
from dispatch.services.audit import log_action
from dispatch.services.broadcast import schedule_candidate_broadcast
from dispatch.services.geo import Coordinates, haversine_km, validate_coordinates
from dispatch.services.ids import as_user_id, as_uuid
from dispatch.services.pagination import page_bounds

logger = logging.getLogger(__name__)

User = get_user_model()


def _iso(value):
    return value.isoformat() if value else None


def _clean(text: Optional[str]) -> str:
    return bleach.clean((text or '').strip(), strip=True)


def _latest_assignment(er: EmergencyRequest) -> Optional[Assignment]:
    return (
        Assignment.objects.filter(request_id=er.id)
        .select_related('driver__user')
        .order_by('-assigned_at')
        .first()
    )


def _hospital_summary(hospital: Optional[Hospital]) -> Optional[dict]:
    if hospital is None:
        return None
    return {
        'id': str(hospital.id),
        'name': hospital.name,
        'address': hospital.address,
        'phoneNumber': hospital.phone,
    }


def _driver_summary(assignment: Optional[Assignment]) -> Optional[dict]:
    if assignment is None:
        return None
    driver = assignment.driver
    return {
        'id': str(driver.id),
        'name': driver.user.display_name(),
        'phoneNumber': driver.user.phone,
        'assignmentId': str(assignment.id),
        'status': assignment.status,
    }


@translate_storage_errors('create emergency request')
def create_request(requester_id, pickup: Coordinates, address: str, notes: Optional[str] = None,
                   *, emergency_type: Optional[str] = None) -> EmergencyRequest:
    lat, lon = validate_coordinates(*pickup)
    address = _clean(address)
    if not address:
        raise ValidationError('pickup address is required')
    requester_id = as_user_id(requester_id, 'requester')
    if not User.objects.filter(id=requester_id).exists():
        raise NotFound('requester not found')

    with transaction.atomic():
        er = EmergencyRequest.objects.create(
            requester_id=requester_id,
            pickup_latitude=lat,
            pickup_longitude=lon,
            pickup_address=address,
            notes=_clean(notes),
            emergency_type=_clean(emergency_type) or 'Medical Emergency',
        )
        log_action(actor_id=requester_id, action='request_create', object_type='emergency_request',
                   object_id=er.id, detail={'lat': lat, 'lon': lon})
        # runs after commit; its failure never reaches the caller
        schedule_candidate_broadcast(er.id)
    logger.info('emergency request %s created by user %s', er.id, requester_id)
    return er


@translate_storage_errors('list candidate drivers')
def candidate_drivers() -> List[dict]:
    """Approved, active drivers; available first, then least recently assigned."""
    qs = (
        Driver.objects.filter(is_approved=True, is_active=True)
        .select_related('user')
        .annotate(last_assignment=Max('assignments__assigned_at'))
        .order_by('-is_available', F('last_assignment').asc(nulls_first=True), 'id')
    )
    return [{
        'id': str(d.id),
        'name': d.user.display_name(),
        'isAvailable': d.is_available,
        'lastAssignment': _iso(d.last_assignment),
    } for d in qs]


@translate_storage_errors('accept emergency request')
def accept_request(request_id, hospital_id) -> EmergencyRequest:
    hospital_id = as_uuid(hospital_id, 'hospital')
    request_id = as_uuid(request_id, 'emergency request')
    with transaction.atomic():
        hospital = Hospital.objects.filter(id=hospital_id, is_active=True).first()
        if hospital is None:
            raise NotFound('hospital not found')
        er = EmergencyRequest.objects.select_for_update().filter(id=request_id).first()
        if er is None:
            raise NotFound('emergency request not found')
        if er.status != EmergencyRequest.STATUS_PENDING:
            raise Conflict('emergency request is no longer pending')
        now = timezone.now()
        updated = EmergencyRequest.objects.filter(id=er.id, status=EmergencyRequest.STATUS_PENDING).update(
            status=EmergencyRequest.STATUS_ACCEPTED, hospital=hospital, accepted_at=now, updated_at=now,
        )
        if updated != 1:
            raise Conflict('emergency request is no longer pending')
        er.refresh_from_db()
        log_action(actor_id=hospital.user_id, action='request_accept', object_type='emergency_request',
                   object_id=er.id, detail={'hospitalId': str(hospital.id)})
        events.publish_on_commit(
            [events.user_group(er.requester_id), events.hospital_group(hospital.id)],
            'request.accepted',
            {'requestId': str(er.id), 'status': er.status, 'hospital': _hospital_summary(hospital)},
        )
    logger.info('emergency request %s accepted by hospital %s', er.id, hospital.id)
    return er


@translate_storage_errors('cancel emergency request')
def cancel_request(request_id, requester_id) -> EmergencyRequest:
    request_id = as_uuid(request_id, 'emergency request')
    requester_id = as_user_id(requester_id, 'requester')
    with transaction.atomic():
        er = EmergencyRequest.objects.select_for_update().filter(id=request_id, requester_id=requester_id).first()
        if er is None:
            raise NotFound('emergency request not found')
        if er.status not in EmergencyRequest.CANCELLABLE_STATUSES:
            raise Conflict(f'cannot cancel a request in status {er.status}')
        now = timezone.now()
        updated = EmergencyRequest.objects.filter(
            id=er.id, status__in=EmergencyRequest.CANCELLABLE_STATUSES,
        ).update(status=EmergencyRequest.STATUS_CANCELLED, closed_at=now, updated_at=now)
        if updated != 1:
            raise Conflict('emergency request changed concurrently')
        previous = er.status
        er.refresh_from_db()
        log_action(actor_id=requester_id, action='request_cancel', object_type='emergency_request',
                   object_id=er.id, detail={'from': previous})
        groups = [events.user_group(er.requester_id)]
        if er.hospital_id:
            groups.append(events.hospital_group(er.hospital_id))
        events.publish_on_commit(groups, 'request.cancelled', {'requestId': str(er.id), 'status': er.status})
    logger.info('emergency request %s cancelled from %s', er.id, previous)
    return er


@translate_storage_errors('read emergency status')
def get_status(request_id, requester_id) -> dict:
    request_id = as_uuid(request_id, 'emergency request')
    requester_id = as_user_id(requester_id, 'requester')
    er = (
        EmergencyRequest.objects.select_related('hospital')
        .filter(id=request_id, requester_id=requester_id)
        .first()
    )
    if er is None:
        raise NotFound('emergency request not found')
    return {
        'requestId': str(er.id),
        'status': er.status,
        'pickup': {
            'latitude': er.pickup_latitude,
            'longitude': er.pickup_longitude,
            'address': er.pickup_address,
        },
        'hospital': _hospital_summary(er.hospital),
        'driver': _driver_summary(_latest_assignment(er)),
        'createdAt': _iso(er.created_at),
        'acceptedAt': _iso(er.accepted_at),
        'closedAt': _iso(er.closed_at),
    }


@translate_storage_errors('list emergency history')
def list_history(requester_id, page: int = 1, page_size: int = 20) -> Tuple[List[dict], int]:
    requester_id = as_user_id(requester_id, 'requester')
    page, page_size, start = page_bounds(page, page_size)
    qs = EmergencyRequest.objects.filter(requester_id=requester_id)
    total = qs.count()
    items = qs.select_related('hospital').order_by('-created_at', '-id')[start:start + page_size]
    data = [{
        'requestId': str(er.id),
        'status': er.status,
        'hospital': er.hospital.name if er.hospital else None,
        'pickupAddress': er.pickup_address,
        'createdAt': _iso(er.created_at),
        'closedAt': _iso(er.closed_at),
    } for er in items]
    return data, total


def _get_hospital(hospital_id) -> Hospital:
    hospital_id = as_uuid(hospital_id, 'hospital')
    hospital = Hospital.objects.filter(id=hospital_id).first()
    if hospital is None:
        raise NotFound('hospital not found')
    return hospital


@translate_storage_errors('list pending requests')
def list_pending_requests(hospital_id) -> List[dict]:
    """Pending requests, newest first, with their distance from the hospital."""
    hospital = _get_hospital(hospital_id)
    qs = (
        EmergencyRequest.objects.filter(status=EmergencyRequest.STATUS_PENDING)
        .select_related('requester')
        .order_by('-created_at')
    )
    data = []
    for er in qs:
        distance = None
        if hospital.has_location:
            distance = round(haversine_km((hospital.latitude, hospital.longitude),
                                          (er.pickup_latitude, er.pickup_longitude)), 1)
        data.append({
            'requestId': str(er.id),
            'user': {'name': er.requester.display_name(), 'phoneNumber': er.requester.phone},
            'pickupLocation': {
                'latitude': er.pickup_latitude,
                'longitude': er.pickup_longitude,
                'address': er.pickup_address,
            },
            'notes': er.notes,
            'distance': distance,
            'createdAt': _iso(er.created_at),
        })
    return data


@translate_storage_errors('list active requests')
def list_active_requests(hospital_id) -> List[dict]:
    hospital = _get_hospital(hospital_id)
    qs = (
        EmergencyRequest.objects.filter(hospital=hospital, status__in=EmergencyRequest.ACTIVE_STATUSES)
        .select_related('requester')
        .order_by('-created_at')
    )
    data = []
    for er in qs:
        data.append({
            'requestId': str(er.id),
            'user': {'name': er.requester.display_name(), 'phoneNumber': er.requester.phone},
            'status': er.status,
            'driver': _driver_summary(_latest_assignment(er)),
            'createdAt': _iso(er.created_at),
        })
    return data
