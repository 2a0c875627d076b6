"""
Driver-facing endpoints: availability, the current job and its progress.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import IsDriverRole
from ..serializers.dispatch import AssignmentStatusSerializer, AvailabilitySerializer
from ..serializers.emergency import HistoryQuerySerializer
from ..services.assignments import advance_assignment, get_current_assignment, list_assignment_history
from ..services.availability import set_availability
from ..services.pagination import page_bounds


def _driver_id(request):
    return request.user.driver.id


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsDriverRole])
def availability(request):
    s = AvailabilitySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    driver = set_availability(_driver_id(request), s.validated_data['isAvailable'])
    return Response({'ok': True, 'data': {'driverId': str(driver.id), 'isAvailable': driver.is_available}})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDriverRole])
def current_assignment(request):
    # data is null when the driver has nothing in flight
    return Response({'ok': True, 'data': get_current_assignment(_driver_id(request))})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsDriverRole])
def assignment_status(request, assignment_id):
    """Move an assignment one step forward: en_route, arrived, completed."""
    s = AssignmentStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    assignment = advance_assignment(assignment_id, _driver_id(request), s.validated_data['status'])
    return Response({
        'ok': True,
        'data': {
            'assignmentId': str(assignment.id),
            'status': assignment.status,
            'enRouteAt': assignment.en_route_at.isoformat() if assignment.en_route_at else None,
            'arrivedAt': assignment.arrived_at.isoformat() if assignment.arrived_at else None,
            'completedAt': assignment.completed_at.isoformat() if assignment.completed_at else None,
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDriverRole])
def assignment_history(request):
    q = HistoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page, page_size, _ = page_bounds(q.validated_data.get('page', 1), q.validated_data.get('pageSize', 20))
    data, total = list_assignment_history(_driver_id(request), page, page_size)
    return Response({'ok': True, 'data': data,
                     'pagination': {'total': total, 'page': page, 'pageSize': page_size}})
