"""
Requester-facing emergency endpoints.

A user raises an emergency request, follows its status, cancels it while
no driver is bound, and browses their history.  Nearby hospitals can be
looked up either for an arbitrary point or for one of the user's own
requests.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import IsRequesterRole
from ..serializers.emergency import (
    EmergencyCreateSerializer,
    HistoryQuerySerializer,
    NearbyForRequestQuerySerializer,
    NearbyQuerySerializer,
)
from ..services.emergency import cancel_request, create_request, get_status, list_history
from ..services.matching import find_nearby_hospitals, nearby_hospitals_for_request
from ..services.pagination import page_bounds


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsRequesterRole])
def emergency_create(request):
    s = EmergencyCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    er = create_request(
        request.user.id,
        (vd['pickupLatitude'], vd['pickupLongitude']),
        vd['pickupAddress'],
        vd.get('medicalNotes'),
        emergency_type=vd.get('emergencyType'),
    )
    return Response({
        'ok': True,
        'message': 'Emergency request created successfully',
        'data': {'requestId': str(er.id), 'status': er.status, 'createdAt': er.created_at.isoformat()},
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRequesterRole])
def emergency_history(request):
    q = HistoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page, page_size, _ = page_bounds(q.validated_data.get('page', 1), q.validated_data.get('pageSize', 20))
    data, total = list_history(request.user.id, page, page_size)
    return Response({'ok': True, 'data': data,
                     'pagination': {'total': total, 'page': page, 'pageSize': page_size}})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRequesterRole])
def emergency_status(request, request_id):
    return Response({'ok': True, 'data': get_status(request_id, request.user.id)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsRequesterRole])
def emergency_cancel(request, request_id):
    er = cancel_request(request_id, request.user.id)
    return Response({'ok': True, 'data': {'requestId': str(er.id), 'status': er.status}})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRequesterRole])
def emergency_nearby_hospitals(request, request_id):
    q = NearbyForRequestQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    candidates = nearby_hospitals_for_request(
        request_id, request.user.id,
        max_distance_km=q.validated_data.get('maxDistance'),
        limit=q.validated_data.get('limit'),
    )
    return Response({'ok': True, 'data': [c.as_dict() for c in candidates]})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def nearby_hospitals(request):
    """Rank hospitals around ``latitude``/``longitude``.

    Query params:
      - latitude, longitude: pickup point in degrees
      - maxDistance: km, default 50
      - limit: default 10
    """
    q = NearbyQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    candidates = find_nearby_hospitals(
        (vd['latitude'], vd['longitude']),
        max_distance_km=vd.get('maxDistance'),
        limit=vd.get('limit'),
    )
    return Response({'ok': True, 'data': [c.as_dict() for c in candidates]})
