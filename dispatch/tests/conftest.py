import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from dispatch.models import Driver, EmergencyRequest, Hospital, User

SF_PICKUP = (37.7749, -122.4194)
SF_HOSPITAL = (37.7849, -122.4294)


@pytest.fixture(autouse=True)
def _isolated_settings(settings):
    # throttle counters live in the cache and user ids are reused between tests
    cache.clear()
    settings.DISPATCH_BROADCAST_INLINE = True
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    def make(username, role=User.ROLE_USER, password='P@ssw0rd1', **extra):
        return User.objects.create_user(username=username, password=password, role=role, **extra)
    return make


@pytest.fixture
def make_hospital(make_user):
    def make(username, location=SF_HOSPITAL, *, capacity=10, name=None, is_active=True):
        user = make_user(username, role=User.ROLE_HOSPITAL)
        lat, lon = location if location else (None, None)
        return Hospital.objects.create(
            user=user, name=name or f'{username} hospital', address=f'{username} street',
            latitude=lat, longitude=lon, max_capacity=capacity, is_active=is_active,
        )
    return make


@pytest.fixture
def make_driver(make_user):
    def make(username, *, approved=True, available=True, is_active=True):
        user = make_user(username, role=User.ROLE_DRIVER, phone='555-0100')
        return Driver.objects.create(
            user=user, license_number=f'LIC-{username}', vehicle_registration=f'AMB-{username}',
            is_approved=approved, is_available=available, is_active=is_active,
        )
    return make


@pytest.fixture
def requester(make_user):
    return make_user('requester1', phone='555-0001')


@pytest.fixture
def hospital(make_hospital):
    return make_hospital('hospital1', name='SF General')


@pytest.fixture
def driver(make_driver):
    return make_driver('driver1')


@pytest.fixture
def pending_request(requester):
    return EmergencyRequest.objects.create(
        requester=requester, pickup_latitude=SF_PICKUP[0], pickup_longitude=SF_PICKUP[1],
        pickup_address='Market St', notes='chest pain',
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for():
    def make(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return make
