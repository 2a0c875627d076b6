"""
Hospital matching for a pickup point.

Candidates are active hospitals with coordinates, ranked by haversine
distance from the pickup and annotated with their current load.  Load is
reported for display only; a hospital at capacity is labelled ``Busy``
but still offered.
"""
from dataclasses import dataclass, asdict
from typing import Optional, List

from django.conf import settings
from django.db.models import Count, Q

from dispatch.exceptions import NotFound, ValidationError, translate_storage_errors
from dispatch.models import EmergencyRequest, Hospital
from dispatch.services.geo import Coordinates, haversine_km, validate_coordinates
from dispatch.services.ids import as_user_id, as_uuid

AVAILABLE = 'Available'
BUSY = 'Busy'


@dataclass
class HospitalCandidate:
    id: str
    name: str
    address: str
    distance: float
    current_load: int
    max_capacity: int
    availability: str

    def as_dict(self) -> dict:
        data = asdict(self)
        return {
            'id': data['id'],
            'name': data['name'],
            'address': data['address'],
            'distance': data['distance'],
            'currentLoad': data['current_load'],
            'maxCapacity': data['max_capacity'],
            'availability': data['availability'],
        }


def with_current_load(qs):
    """Annotate a Hospital queryset with ``current_load``."""
    return qs.annotate(
        current_load=Count('requests', filter=Q(requests__status__in=EmergencyRequest.ACTIVE_STATUSES))
    )


@translate_storage_errors('find nearby hospitals')
def find_nearby_hospitals(pickup: Coordinates, max_distance_km: Optional[float] = None,
                          limit: Optional[int] = None) -> List[HospitalCandidate]:
    if max_distance_km is None:
        max_distance_km = settings.DISPATCH_MAX_DISTANCE_KM
    if limit is None:
        limit = settings.DISPATCH_CANDIDATE_LIMIT
    pickup = validate_coordinates(*pickup)
    if max_distance_km < 0:
        raise ValidationError('maxDistance must not be negative')
    if limit < 1:
        raise ValidationError('limit must be positive')

    qs = with_current_load(
        Hospital.objects.filter(is_active=True, latitude__isnull=False, longitude__isnull=False)
    ).only('id', 'name', 'address', 'latitude', 'longitude', 'max_capacity')

    ranked = []
    for h in qs:
        distance = haversine_km(pickup, (h.latitude, h.longitude))
        if distance > max_distance_km:
            continue
        ranked.append((distance, str(h.id), h))
    # id breaks ties so equal distances come back in a stable order
    ranked.sort(key=lambda row: (row[0], row[1]))

    return [
        HospitalCandidate(
            id=hid,
            name=h.name,
            address=h.address,
            distance=round(distance, 2),
            current_load=h.current_load,
            max_capacity=h.max_capacity,
            availability=AVAILABLE if h.current_load < h.max_capacity else BUSY,
        )
        for distance, hid, h in ranked[:limit]
    ]


@translate_storage_errors('find hospitals for emergency request')
def nearby_hospitals_for_request(request_id, requester_id, *, max_distance_km: Optional[float] = None,
                                 limit: Optional[int] = None) -> List[HospitalCandidate]:
    """Run the matcher for the pickup point of a requester's own request."""
    request_id = as_uuid(request_id, 'emergency request')
    requester_id = as_user_id(requester_id, 'requester')
    er = (
        EmergencyRequest.objects.filter(id=request_id, requester_id=requester_id)
        .only('pickup_latitude', 'pickup_longitude')
        .first()
    )
    if er is None:
        raise NotFound('emergency request not found')
    return find_nearby_hospitals(
        (er.pickup_latitude, er.pickup_longitude), max_distance_km=max_distance_km, limit=limit
    )
