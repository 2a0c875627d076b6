import math

import pytest

from dispatch.exceptions import ValidationError
from dispatch.services.geo import haversine_km, validate_coordinates

from conftest import SF_HOSPITAL, SF_PICKUP


def test_distance_is_symmetric():
    a, b = (51.5074, -0.1278), (48.8566, 2.3522)
    assert haversine_km(a, b) == pytest.approx(haversine_km(b, a))


def test_distance_to_self_is_zero():
    assert haversine_km(SF_PICKUP, SF_PICKUP) == 0


def test_short_city_distance():
    assert 1.40 <= haversine_km(SF_PICKUP, SF_HOSPITAL) <= 1.46


def test_long_distance_london_paris():
    assert haversine_km((51.5074, -0.1278), (48.8566, 2.3522)) == pytest.approx(343.5, abs=1.0)


def test_antipodes_is_half_circumference():
    assert haversine_km((0, 0), (0, 180)) == pytest.approx(math.pi * 6371.0)


@pytest.mark.parametrize('lat,lon', [(90, 180), (-90, -180), (0, 0), ('12.5', '-3')])
def test_validate_accepts_in_range(lat, lon):
    assert validate_coordinates(lat, lon) == (float(lat), float(lon))


@pytest.mark.parametrize('lat,lon', [(90.01, 0), (-91, 0), (0, 180.5), (0, -181), (float('nan'), 0), ('x', 0), (None, 0)])
def test_validate_rejects_bad_input(lat, lon):
    with pytest.raises(ValidationError):
        validate_coordinates(lat, lon)
