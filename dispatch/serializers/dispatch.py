from rest_framework import serializers


class AssignDriverSerializer(serializers.Serializer):
    driverId = serializers.UUIDField()


class DriverListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['all', 'available', 'unavailable', 'pending'], required=False)


class AvailabilitySerializer(serializers.Serializer):
    isAvailable = serializers.BooleanField()


class AssignmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['en_route', 'arrived', 'completed'])
