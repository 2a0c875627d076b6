import math
from typing import Tuple

from dispatch.exceptions import ValidationError

EARTH_RADIUS_KM = 6371.0

Coordinates = Tuple[float, float]


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in kilometres between two (lat, lon) pairs in degrees."""
    lat1, lon1 = math.radians(a[0]), math.radians(a[1])
    lat2, lon2 = math.radians(b[0]), math.radians(b[1])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def validate_coordinates(latitude, longitude) -> Coordinates:
    try:
        lat, lon = float(latitude), float(longitude)
    except (TypeError, ValueError):
        raise ValidationError('coordinates must be numbers')
    if math.isnan(lat) or math.isnan(lon):
        raise ValidationError('coordinates must be numbers')
    if not -90.0 <= lat <= 90.0:
        raise ValidationError(f'latitude out of range: {lat}')
    if not -180.0 <= lon <= 180.0:
        raise ValidationError(f'longitude out of range: {lon}')
    return lat, lon
