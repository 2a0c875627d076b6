from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(trim_whitespace=False)

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('username must not be blank')
        return v


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=False)


PHONE_RE = r'^\+?[0-9]{10,15}$'


class _AccountSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(trim_whitespace=False, write_only=True)
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    phoneNumber = serializers.RegexField(PHONE_RE, required=False, allow_blank=True, default='')

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('username must not be blank')
        return v


class UserRegisterSerializer(_AccountSerializer):
    firstName = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    lastName = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')


class HospitalRegisterSerializer(_AccountSerializer):
    name = serializers.CharField(min_length=2, max_length=255)
    address = serializers.CharField()
    latitude = serializers.FloatField(required=False, allow_null=True, default=None)
    longitude = serializers.FloatField(required=False, allow_null=True, default=None)
    maxCapacity = serializers.IntegerField(min_value=1)


class DriverRegisterSerializer(UserRegisterSerializer):
    licenseNumber = serializers.CharField(min_length=5, max_length=20)
    vehicleRegistration = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
