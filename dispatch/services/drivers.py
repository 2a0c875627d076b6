import logging
from typing import Optional, List

from django.db import transaction
from django.utils import timezone

from dispatch.exceptions import Conflict, NotFound, ValidationError, translate_storage_errors
from dispatch.models import Driver, Hospital
from dispatch.services.audit import log_action
from dispatch.services.ids import as_uuid

logger = logging.getLogger(__name__)

STATUS_FILTERS = {
    'all': {},
    'available': {'is_available': True},
    'unavailable': {'is_available': False},
    'pending': {'is_approved': False},
}


@translate_storage_errors('list drivers')
def list_drivers(status: Optional[str] = None) -> List[dict]:
    filters = STATUS_FILTERS.get(status or 'all')
    if filters is None:
        raise ValidationError(f'unknown driver status filter: {status}')
    qs = Driver.objects.filter(is_active=True, **filters).select_related('user').order_by('-created_at')
    return [{
        'id': str(d.id),
        'name': d.user.display_name(),
        'email': d.user.email,
        'phoneNumber': d.user.phone,
        'licenseNumber': d.license_number,
        'vehicleRegistration': d.vehicle_registration,
        'isAvailable': d.is_available,
        'isApproved': d.is_approved,
        'createdAt': d.created_at.isoformat(),
    } for d in qs]


@translate_storage_errors('approve driver')
def approve_driver(driver_id, hospital_id) -> Driver:
    driver_id = as_uuid(driver_id, 'driver')
    hospital_id = as_uuid(hospital_id, 'hospital')
    with transaction.atomic():
        hospital = Hospital.objects.filter(id=hospital_id, is_active=True).first()
        if hospital is None:
            raise NotFound('hospital not found')
        driver = Driver.objects.select_for_update().filter(id=driver_id).first()
        if driver is None:
            raise NotFound('driver not found')
        if driver.is_approved:
            raise Conflict('driver is already approved')
        Driver.objects.filter(id=driver.id).update(is_approved=True, approved_by=hospital, updated_at=timezone.now())
        driver.refresh_from_db()
        log_action(actor_id=hospital.user_id, action='driver_approve', object_type='driver',
                   object_id=driver.id, detail={'hospitalId': str(hospital.id)})
    logger.info('driver %s approved by hospital %s', driver.id, hospital.id)
    return driver
