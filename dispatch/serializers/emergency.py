from rest_framework import serializers


class EmergencyCreateSerializer(serializers.Serializer):
    pickupLatitude = serializers.FloatField(min_value=-90, max_value=90)
    pickupLongitude = serializers.FloatField(min_value=-180, max_value=180)
    pickupAddress = serializers.CharField(max_length=500)
    medicalNotes = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    emergencyType = serializers.CharField(max_length=100, required=False, allow_blank=True)


class HistoryQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, required=False)


class NearbyQuerySerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    maxDistance = serializers.FloatField(min_value=0, required=False)
    limit = serializers.IntegerField(min_value=1, max_value=100, required=False)


class NearbyForRequestQuerySerializer(serializers.Serializer):
    maxDistance = serializers.FloatField(min_value=0, required=False)
    limit = serializers.IntegerField(min_value=1, max_value=100, required=False)
