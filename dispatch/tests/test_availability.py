import uuid

import pytest

from dispatch.exceptions import Conflict, NotFound
from dispatch.models import AuditEvent
from dispatch.services.assignments import advance_assignment, assign_driver
from dispatch.services.availability import ensure_assignable, set_availability
from dispatch.services.emergency import accept_request

pytestmark = pytest.mark.django_db


def test_idle_driver_can_go_off_duty_and_back(driver):
    assert set_availability(driver.id, False).is_available is False
    assert set_availability(driver.id, True).is_available is True
    assert AuditEvent.objects.filter(action='driver_availability').count() == 2


def test_enabling_is_idempotent(driver):
    set_availability(driver.id, True)
    set_availability(driver.id, True)
    assert not AuditEvent.objects.filter(action='driver_availability').exists()


def test_cannot_go_off_duty_mid_job(pending_request, hospital, driver):
    accept_request(pending_request.id, hospital.id)
    a = assign_driver(pending_request.id, hospital.id, driver.id)
    advance_assignment(a.id, driver.id, 'en_route')
    with pytest.raises(Conflict):
        set_availability(driver.id, False)


def test_unknown_driver():
    with pytest.raises(NotFound):
        set_availability(uuid.uuid4(), True)


def test_marked_available_with_active_job_still_not_assignable(pending_request, hospital, driver):
    accept_request(pending_request.id, hospital.id)
    assign_driver(pending_request.id, hospital.id, driver.id)
    driver = set_availability(driver.id, True)
    assert driver.is_available
    with pytest.raises(Conflict):
        ensure_assignable(driver)
