"""
URL mappings for the dispatch API.

Trailing slashes are deliberately omitted; ``APPEND_SLASH`` is off in
settings.  Identifiers in paths are UUIDs, so malformed ids 404 at the
resolver instead of reaching the views.
"""
from django.urls import path, include

from .auth_views import (
    jwt_logout_view,
    jwt_refresh_view,
    login_view,
    register_driver_view,
    register_hospital_view,
    register_user_view,
)
from .views import driver, emergency, health, hospital


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/login', login_view),
    path('api/auth/refresh', jwt_refresh_view),
    path('api/auth/logout', jwt_logout_view),
    path('api/auth/register/user', register_user_view),
    path('api/auth/register/hospital', register_hospital_view),
    path('api/auth/register/driver', register_driver_view),
    # Requester
    path('api/user/emergency', emergency.emergency_create),
    path('api/user/emergency/history', emergency.emergency_history),
    path('api/user/emergency/<uuid:request_id>', emergency.emergency_status),
    path('api/user/emergency/<uuid:request_id>/cancel', emergency.emergency_cancel),
    path('api/user/emergency/<uuid:request_id>/nearby-hospitals', emergency.emergency_nearby_hospitals),
    path('api/hospitals/nearby', emergency.nearby_hospitals),
    # Hospital
    path('api/hospital/emergency/pending', hospital.pending_requests),
    path('api/hospital/emergency/active', hospital.active_requests),
    path('api/hospital/emergency/<uuid:request_id>/accept', hospital.accept),
    path('api/hospital/emergency/<uuid:request_id>/assign', hospital.assign),
    path('api/hospital/drivers', hospital.drivers),
    path('api/hospital/drivers/<uuid:driver_id>/approve', hospital.approve),
    # Driver
    path('api/driver/status', driver.availability),
    path('api/driver/assignment/current', driver.current_assignment),
    path('api/driver/assignment/history', driver.assignment_history),
    path('api/driver/assignment/<uuid:assignment_id>/status', driver.assignment_status),
]
