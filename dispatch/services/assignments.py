"""
Driver assignment state machine.

``assign_driver`` binds an available driver to an accepted request;
``advance_assignment`` moves the assignment one step along
assigned -> en_route -> arrived -> completed and cascades the request
and driver side effects.  Each call is a single transaction: the rows it
depends on are locked first and every write is conditional on the state
that was validated, so concurrent callers cannot both win.
"""
import logging
from typing import Optional, Tuple, List

from django.db import IntegrityError, transaction
from django.utils import timezone

from dispatch.exceptions import Conflict, NotFound, ValidationError, translate_storage_errors
from dispatch.models import Assignment, Driver, EmergencyRequest, Hospital
from dispatch.services import events
from dispatch.services.audit import log_action
from dispatch.services.availability import ensure_assignable
from dispatch.services.ids import as_uuid
from dispatch.services.pagination import page_bounds

logger = logging.getLogger(__name__)


def _iso(value):
    return value.isoformat() if value else None


def _status_payload(assignment: Assignment, request_status: str) -> dict:
    return {
        'assignmentId': str(assignment.id),
        'requestId': str(assignment.request_id),
        'driverId': str(assignment.driver_id),
        'status': assignment.status,
        'requestStatus': request_status,
    }


@translate_storage_errors('assign driver')
def assign_driver(request_id, hospital_id, driver_id) -> Assignment:
    request_id = as_uuid(request_id, 'emergency request')
    hospital_id = as_uuid(hospital_id, 'hospital')
    driver_id = as_uuid(driver_id, 'driver')
    with transaction.atomic():
        er = (
            EmergencyRequest.objects.select_for_update()
            .filter(id=request_id, hospital_id=hospital_id)
            .first()
        )
        if er is None:
            raise NotFound('emergency request not found or not accepted by this hospital')
        if er.status != EmergencyRequest.STATUS_ACCEPTED:
            raise Conflict('emergency request must be accepted to assign a driver')
        driver = Driver.objects.select_for_update().select_related('user').filter(id=driver_id).first()
        if driver is None:
            raise NotFound('driver not found')
        ensure_assignable(driver)

        now = timezone.now()
        updated = EmergencyRequest.objects.filter(id=er.id, status=EmergencyRequest.STATUS_ACCEPTED).update(
            status=EmergencyRequest.STATUS_ASSIGNED, updated_at=now,
        )
        if updated != 1:
            raise Conflict('emergency request was assigned concurrently')
        updated = Driver.objects.filter(
            id=driver.id, is_available=True, is_approved=True, is_active=True,
        ).update(is_available=False, updated_at=now)
        if updated != 1:
            raise Conflict('driver was assigned concurrently')
        try:
            with transaction.atomic():
                assignment = Assignment.objects.create(
                    request=er, driver=driver, status=Assignment.STATUS_ASSIGNED, assigned_at=now,
                )
        except IntegrityError as exc:
            # partial unique constraints: one active assignment per request and per driver
            raise Conflict('request or driver already has an active assignment') from exc

        hospital_user_id = Hospital.objects.filter(id=hospital_id).values_list('user_id', flat=True).first()
        log_action(actor_id=hospital_user_id, action='driver_assign', object_type='assignment',
                   object_id=assignment.id,
                   detail={'requestId': str(er.id), 'driverId': str(driver.id), 'hospitalId': str(hospital_id)})
        events.publish_on_commit(
            [events.user_group(er.requester_id), events.hospital_group(hospital_id),
             events.driver_group(driver.id)],
            'assignment.assigned',
            {**_status_payload(assignment, EmergencyRequest.STATUS_ASSIGNED),
             'driver': {'id': str(driver.id), 'name': driver.user.display_name(),
                        'phoneNumber': driver.user.phone}},
        )
    logger.info('driver %s assigned to emergency %s (assignment %s)', driver.id, er.id, assignment.id)
    return assignment


@translate_storage_errors('update assignment status')
def advance_assignment(assignment_id, driver_id, target_status: str) -> Assignment:
    if target_status not in dict(Assignment.STATUS_CHOICES):
        raise ValidationError(f'invalid assignment status: {target_status}')
    assignment_id = as_uuid(assignment_id, 'assignment')
    driver_id = as_uuid(driver_id, 'driver')

    with transaction.atomic():
        assignment = (
            Assignment.objects.select_for_update()
            .select_related('request')
            .filter(id=assignment_id, driver_id=driver_id)
            .first()
        )
        if assignment is None:
            raise NotFound('assignment not found or not assigned to this driver')
        current = assignment.status
        if Assignment.NEXT_STATUS.get(current) != target_status:
            raise Conflict(f'cannot transition from {current} to {target_status}')

        now = timezone.now()
        stamp = Assignment.TIMESTAMP_FIELDS[target_status]
        updated = Assignment.objects.filter(id=assignment.id, status=current, **{f'{stamp}__isnull': True}).update(
            status=target_status, **{stamp: now},
        )
        if updated != 1:
            raise Conflict('assignment changed concurrently')

        er = assignment.request
        request_status = er.status
        if target_status == Assignment.STATUS_EN_ROUTE:
            if EmergencyRequest.objects.filter(id=er.id, status=EmergencyRequest.STATUS_ASSIGNED).update(
                    status=EmergencyRequest.STATUS_IN_PROGRESS, updated_at=now):
                request_status = EmergencyRequest.STATUS_IN_PROGRESS
        elif target_status == Assignment.STATUS_COMPLETED:
            EmergencyRequest.objects.filter(
                id=er.id, status__in=(EmergencyRequest.STATUS_ASSIGNED, EmergencyRequest.STATUS_IN_PROGRESS),
            ).update(status=EmergencyRequest.STATUS_COMPLETED, closed_at=now, updated_at=now)
            request_status = EmergencyRequest.STATUS_COMPLETED
            Driver.objects.filter(id=assignment.driver_id).update(is_available=True, updated_at=now)

        assignment.refresh_from_db()
        driver_user_id = Driver.objects.filter(id=driver_id).values_list('user_id', flat=True).first()
        log_action(actor_id=driver_user_id, action='assignment_advance', object_type='assignment',
                   object_id=assignment.id, detail={'from': current, 'to': target_status})
        groups = [events.user_group(er.requester_id), events.driver_group(assignment.driver_id)]
        if er.hospital_id:
            groups.append(events.hospital_group(er.hospital_id))
        events.publish_on_commit(groups, 'assignment.status', _status_payload(assignment, request_status))
    logger.info('assignment %s moved %s -> %s', assignment.id, current, target_status)
    return assignment


def _get_driver(driver_id) -> Driver:
    driver_id = as_uuid(driver_id, 'driver')
    driver = Driver.objects.filter(id=driver_id).first()
    if driver is None:
        raise NotFound('driver not found')
    return driver


@translate_storage_errors('read current assignment')
def get_current_assignment(driver_id) -> Optional[dict]:
    driver = _get_driver(driver_id)
    assignment = (
        Assignment.objects.filter(driver=driver, status__in=Assignment.ACTIVE_STATUSES)
        .select_related('request__requester', 'request__hospital')
        .order_by('-assigned_at')
        .first()
    )
    if assignment is None:
        return None
    er = assignment.request
    hospital = er.hospital
    return {
        'assignmentId': str(assignment.id),
        'requestId': str(er.id),
        'status': assignment.status,
        'user': {'name': er.requester.display_name(), 'phoneNumber': er.requester.phone},
        'pickup': {
            'latitude': er.pickup_latitude,
            'longitude': er.pickup_longitude,
            'address': er.pickup_address,
        },
        'hospital': {'name': hospital.name, 'address': hospital.address} if hospital else None,
        'notes': er.notes,
        'assignedAt': _iso(assignment.assigned_at),
        'enRouteAt': _iso(assignment.en_route_at),
        'arrivedAt': _iso(assignment.arrived_at),
    }


@translate_storage_errors('list assignment history')
def list_assignment_history(driver_id, page: int = 1, page_size: int = 20) -> Tuple[List[dict], int]:
    driver = _get_driver(driver_id)
    page, page_size, start = page_bounds(page, page_size)
    qs = Assignment.objects.filter(driver=driver)
    total = qs.count()
    items = qs.select_related('request__requester').order_by('-assigned_at', '-id')[start:start + page_size]
    data = [{
        'assignmentId': str(a.id),
        'requestId': str(a.request_id),
        'user': a.request.requester.display_name(),
        'pickup': a.request.pickup_address,
        'status': a.status,
        'assignedAt': _iso(a.assigned_at),
        'completedAt': _iso(a.completed_at),
    } for a in items]
    return data, total
