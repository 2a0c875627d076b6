"""
Transitions must not trust the row they locked.

Each test lets a competing writer change the row immediately after the
locked read returns it, which is what a lost race looks like when the
database does not take row locks.  The conditional update must then
touch no rows and the transition must fail with Conflict, leaving
nothing half-written.  Runs on any backend.
"""
import pytest
from django.db.models.query import QuerySet
from django.utils import timezone

from dispatch.exceptions import Conflict
from dispatch.models import Assignment, AuditEvent, Driver, EmergencyRequest
from dispatch.services.assignments import advance_assignment, assign_driver
from dispatch.services.emergency import accept_request, cancel_request

pytestmark = pytest.mark.django_db


@pytest.fixture
def overtaken(monkeypatch):
    """Apply ``changes`` to a ``model`` row right after it is read for update."""
    def install(model, **changes):
        real_first = QuerySet.first

        def first(qs):
            obj = real_first(qs)
            if obj is not None and qs.model is model and qs.query.select_for_update:
                model.objects.filter(pk=obj.pk).update(**changes)
            return obj
        monkeypatch.setattr(QuerySet, 'first', first)
    return install


@pytest.fixture
def accepted_request(pending_request, hospital):
    return accept_request(pending_request.id, hospital.id)


def test_accept_after_another_hospital_won(pending_request, hospital, make_hospital, overtaken):
    rival = make_hospital('rival')
    overtaken(EmergencyRequest, status=EmergencyRequest.STATUS_ACCEPTED, hospital=rival)
    with pytest.raises(Conflict):
        accept_request(pending_request.id, hospital.id)
    pending_request.refresh_from_db()
    assert pending_request.status == EmergencyRequest.STATUS_PENDING
    assert pending_request.hospital_id is None
    assert not AuditEvent.objects.filter(action='request_accept').exists()


def test_cancel_after_driver_was_assigned(pending_request, requester, overtaken):
    overtaken(EmergencyRequest, status=EmergencyRequest.STATUS_ASSIGNED)
    with pytest.raises(Conflict):
        cancel_request(pending_request.id, requester.id)
    pending_request.refresh_from_db()
    assert pending_request.status == EmergencyRequest.STATUS_PENDING
    assert pending_request.closed_at is None


def test_assign_after_request_was_taken(accepted_request, hospital, driver, overtaken):
    overtaken(EmergencyRequest, status=EmergencyRequest.STATUS_ASSIGNED)
    with pytest.raises(Conflict):
        assign_driver(accepted_request.id, hospital.id, driver.id)
    assert not Assignment.objects.exists()
    driver.refresh_from_db()
    assert driver.is_available is True


def test_assign_after_driver_was_taken(accepted_request, hospital, driver, overtaken):
    overtaken(Driver, is_available=False)
    with pytest.raises(Conflict):
        assign_driver(accepted_request.id, hospital.id, driver.id)
    assert not Assignment.objects.exists()
    accepted_request.refresh_from_db()
    assert accepted_request.status == EmergencyRequest.STATUS_ACCEPTED


def test_advance_after_step_was_already_taken(accepted_request, hospital, driver, overtaken):
    assignment = assign_driver(accepted_request.id, hospital.id, driver.id)
    overtaken(Assignment, status=Assignment.STATUS_EN_ROUTE, en_route_at=timezone.now())
    with pytest.raises(Conflict):
        advance_assignment(assignment.id, driver.id, Assignment.STATUS_EN_ROUTE)
    assignment.refresh_from_db()
    assert assignment.status == Assignment.STATUS_ASSIGNED
    assert assignment.en_route_at is None
