"""
Driver availability guard.

A driver cannot go off duty while holding a non-terminal assignment, and
cannot be handed a second one.  The check always runs while the driver
row is locked inside the caller's transaction, so the guard and the
mutation it protects are one atomic unit.
"""
import logging

from django.db import transaction
from django.utils import timezone

from dispatch.exceptions import Conflict, NotFound, translate_storage_errors
from dispatch.models import Assignment, Driver
from dispatch.services import events
from dispatch.services.audit import log_action
from dispatch.services.ids import as_uuid

logger = logging.getLogger(__name__)


def has_active_assignment(driver_id) -> bool:
    return Assignment.objects.filter(driver_id=driver_id, status__in=Assignment.ACTIVE_STATUSES).exists()


def ensure_assignable(driver: Driver) -> None:
    """Raise :class:`Conflict` unless ``driver`` may take a new assignment.

    Expects ``driver`` to have been read with ``select_for_update``.
    """
    if not driver.is_approved:
        raise Conflict('driver is not approved')
    if not driver.is_active:
        raise Conflict('driver is not active')
    if not driver.is_available:
        raise Conflict('driver is currently unavailable')
    if has_active_assignment(driver.id):
        raise Conflict('driver already has an active assignment')


@translate_storage_errors('update driver availability')
def set_availability(driver_id, available: bool) -> Driver:
    driver_id = as_uuid(driver_id, 'driver')
    with transaction.atomic():
        driver = Driver.objects.select_for_update().filter(id=driver_id).first()
        if driver is None:
            raise NotFound('driver not found')
        if not available and has_active_assignment(driver.id):
            raise Conflict('cannot change status to unavailable with active assignments')
        changed = driver.is_available != available
        Driver.objects.filter(id=driver.id).update(is_available=available, updated_at=timezone.now())
        driver.refresh_from_db()
        if changed:
            log_action(actor_id=driver.user_id, action='driver_availability', object_type='driver',
                       object_id=driver.id, detail={'isAvailable': available})
            events.publish_on_commit([events.driver_group(driver.id)], 'driver.availability',
                                     {'driverId': str(driver.id), 'isAvailable': available})
    if changed:
        logger.info('driver %s availability set to %s', driver.id, available)
    return driver
