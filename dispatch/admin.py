"""
Django admin registrations for the dispatch models.

Status fields are read-only here: transitions must go through the
service layer so locking, audit rows and events stay consistent.
"""

from django.contrib import admin

from .models import Assignment, AuditEvent, Driver, EmergencyRequest, Hospital, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'phone', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name', 'phone')


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ('name', 'address', 'latitude', 'longitude', 'max_capacity', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name', 'address')


@admin.register(Driver)
class DriverAdmin(admin.ModelAdmin):
    list_display = ('user', 'license_number', 'vehicle_registration', 'is_approved', 'is_available', 'is_active')
    list_filter = ('is_approved', 'is_available', 'is_active')
    search_fields = ('user__username', 'license_number', 'vehicle_registration')


class AssignmentInline(admin.TabularInline):
    model = Assignment
    extra = 0
    readonly_fields = ('driver', 'status', 'assigned_at', 'en_route_at', 'arrived_at', 'completed_at')
    can_delete = False


@admin.register(EmergencyRequest)
class EmergencyRequestAdmin(admin.ModelAdmin):
    list_display = ('id', 'requester', 'status', 'hospital', 'created_at')
    list_filter = ('status', 'hospital')
    search_fields = ('id', 'requester__username', 'pickup_address')
    readonly_fields = ('status', 'accepted_at', 'closed_at', 'created_at', 'updated_at')
    inlines = [AssignmentInline]


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'request', 'driver', 'status', 'assigned_at', 'completed_at')
    list_filter = ('status',)
    readonly_fields = ('status', 'assigned_at', 'en_route_at', 'arrived_at', 'completed_at')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'actor', 'action', 'object_type', 'object_id')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id', 'actor__username')
