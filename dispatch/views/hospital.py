"""
Hospital-facing dispatch endpoints.

A hospital account sees pending requests with their distance, accepts
one (receiving the ranked driver candidates in the same response),
binds a driver to it and follows its active requests.  Hospitals also
review and approve driver registrations.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import IsHospitalRole
from ..serializers.dispatch import AssignDriverSerializer, DriverListQuerySerializer
from ..services.assignments import assign_driver
from ..services.drivers import approve_driver, list_drivers
from ..services.emergency import accept_request, candidate_drivers, list_active_requests, list_pending_requests


def _hospital_id(request):
    return request.user.hospital.id


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def pending_requests(request):
    return Response({'ok': True, 'data': list_pending_requests(_hospital_id(request))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def accept(request, request_id):
    """Accept a pending request for the caller's hospital.

    Losing a race against another hospital yields 409.  The response
    carries the driver candidates so the dispatcher can assign at once.
    """
    er = accept_request(request_id, _hospital_id(request))
    return Response({
        'ok': True,
        'message': 'Emergency request accepted',
        'data': {
            'requestId': str(er.id),
            'status': er.status,
            'acceptedAt': er.accepted_at.isoformat() if er.accepted_at else None,
            'availableDrivers': candidate_drivers(),
        },
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def assign(request, request_id):
    s = AssignDriverSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    assignment = assign_driver(request_id, _hospital_id(request), s.validated_data['driverId'])
    return Response({
        'ok': True,
        'message': 'Driver assigned successfully',
        'data': {
            'assignmentId': str(assignment.id),
            'requestId': str(assignment.request_id),
            'driverId': str(assignment.driver_id),
            'status': assignment.status,
            'assignedAt': assignment.assigned_at.isoformat(),
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def active_requests(request):
    return Response({'ok': True, 'data': list_active_requests(_hospital_id(request))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def drivers(request):
    q = DriverListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response({'ok': True, 'data': list_drivers(q.validated_data.get('status'))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def approve(request, driver_id):
    driver = approve_driver(driver_id, _hospital_id(request))
    return Response({'ok': True, 'message': 'Driver approved successfully',
                     'data': {'driverId': str(driver.id), 'isApproved': driver.is_approved}})
