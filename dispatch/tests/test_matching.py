import pytest

from dispatch.exceptions import NotFound, ValidationError
from dispatch.models import EmergencyRequest
from dispatch.services.matching import find_nearby_hospitals, nearby_hospitals_for_request

from conftest import SF_PICKUP

pytestmark = pytest.mark.django_db


def test_single_hospital_within_range(hospital):
    result = find_nearby_hospitals(SF_PICKUP, max_distance_km=50, limit=10)
    assert len(result) == 1
    c = result[0]
    assert c.id == str(hospital.id)
    assert 1.40 <= c.distance <= 1.46
    assert c.current_load == 0
    assert c.availability == 'Available'


def test_sorted_by_distance_and_truncated(make_hospital):
    make_hospital('far', (37.8049, -122.4494))
    make_hospital('near', (37.7759, -122.4204))
    make_hospital('mid', (37.7849, -122.4294))
    result = find_nearby_hospitals(SF_PICKUP, max_distance_km=50, limit=2)
    assert [c.name for c in result] == ['near hospital', 'mid hospital']
    assert result[0].distance <= result[1].distance


def test_filters_by_max_distance(make_hospital):
    make_hospital('local', (37.7849, -122.4294))
    make_hospital('oakland', (37.8044, -122.2712))   # ~13 km
    make_hospital('la', (34.0522, -118.2437))        # ~560 km
    names = [c.name for c in find_nearby_hospitals(SF_PICKUP, max_distance_km=5)]
    assert names == ['local hospital']
    names = [c.name for c in find_nearby_hospitals(SF_PICKUP)]
    assert names == ['local hospital', 'oakland hospital']


def test_skips_inactive_and_unlocated(make_hospital):
    make_hospital('closed', is_active=False)
    make_hospital('nowhere', location=None)
    assert find_nearby_hospitals(SF_PICKUP) == []


def test_ties_ordered_by_id(make_hospital):
    a = make_hospital('twin_a')
    b = make_hospital('twin_b')
    ids = [c.id for c in find_nearby_hospitals(SF_PICKUP)]
    assert ids == sorted([str(a.id), str(b.id)])


def test_load_counts_active_requests_only(make_hospital, requester):
    h = make_hospital('small', capacity=2)
    for status in (EmergencyRequest.STATUS_ACCEPTED, EmergencyRequest.STATUS_IN_PROGRESS,
                   EmergencyRequest.STATUS_COMPLETED, EmergencyRequest.STATUS_CANCELLED):
        EmergencyRequest.objects.create(
            requester=requester, pickup_latitude=SF_PICKUP[0], pickup_longitude=SF_PICKUP[1],
            pickup_address='x', status=status, hospital=h,
        )
    (c,) = find_nearby_hospitals(SF_PICKUP)
    assert c.current_load == 2
    assert c.max_capacity == 2
    # full hospitals are still offered, just labelled
    assert c.availability == 'Busy'
    assert c.as_dict()['currentLoad'] == 2


@pytest.mark.parametrize('kwargs', [{'max_distance_km': -1}, {'limit': 0}])
def test_rejects_bad_parameters(hospital, kwargs):
    with pytest.raises(ValidationError):
        find_nearby_hospitals(SF_PICKUP, **kwargs)


def test_rejects_bad_pickup(hospital):
    with pytest.raises(ValidationError):
        find_nearby_hospitals((95.0, 0.0))


def test_for_request_uses_pickup_point(hospital, pending_request, requester):
    result = nearby_hospitals_for_request(pending_request.id, requester.id)
    assert [c.id for c in result] == [str(hospital.id)]


def test_for_request_hides_other_users_requests(hospital, pending_request, make_user):
    stranger = make_user('stranger')
    with pytest.raises(NotFound):
        nearby_hospitals_for_request(pending_request.id, stranger.id)
