from rest_framework import serializers

from accounts.serializers import UserSerializer
from caregivers.models import CaregiverProfile
from care_services.models import ServiceType


class CaregiverProfileSerializer(serializers.ModelSerializer):
    """
    Full caregiver profile serializer
    """
    user = UserSerializer(read_only=True)
    specialties = serializers.ListField(
        child=serializers.ChoiceField(choices=ServiceType.choices),
        required=False,
    )

    class Meta:
        model = CaregiverProfile
        fields = [
            "id",
            "user",
            "bio",
            "specialties",
            "hourly_rate",
            "service_radius",
            "current_latitude",
            "current_longitude",
            "last_location_update",
            "is_available",
            "verification_status",
            "rating",
            "total_reviews",
            "total_services",
        ]
        read_only_fields = [
            "id",
            "current_latitude",
            "current_longitude",
            "last_location_update",
            "is_available",
            "verification_status",
            "rating",
            "total_reviews",
            "total_services",
        ]

    def to_representation(self, instance):
        """Ensure user serializer gets request context for URL generation"""
        representation = super().to_representation(instance)
        if 'user' in representation and instance.user:
            request = self.context.get('request')
            representation['user'] = UserSerializer(instance.user, context={'request': request}).data
        return representation

    def validate_hourly_rate(self, value):
        if value < 0:
            raise serializers.ValidationError("Hourly rate cannot be negative")
        return value


class CaregiverBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of caregiver info shown to families (candidates, assigned caregiver).
    """
    name = serializers.CharField(source="user.display_name", read_only=True)
    phone_number = serializers.CharField(source="user.phone_number", read_only=True)

    class Meta:
        model = CaregiverProfile
        fields = [
            "id",
            "name",
            "phone_number",
            "bio",
            "specialties",
            "hourly_rate",
            "rating",
            "total_reviews",
        ]


class AvailabilitySerializer(serializers.Serializer):
    is_available = serializers.BooleanField()


class LocationUpdateSerializer(serializers.Serializer):
    """
    Serializer for updating caregiver location and reach (meters).
    """
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180)
    service_radius = serializers.IntegerField(required=False, min_value=1)


class NearbyQuerySerializer(serializers.Serializer):
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180)
    service_type = serializers.ChoiceField(choices=ServiceType.choices, required=False)


class NearbyCaregiverSerializer(serializers.Serializer):
    """Read-only view of services.matching.NearbyCaregiver (no contact details)."""
    caregiver_id = serializers.IntegerField()
    name = serializers.CharField()
    distance = serializers.FloatField()
    specialties = serializers.ListField(child=serializers.CharField())
    rating = serializers.FloatField()


class VerificationSerializer(serializers.Serializer):
    approved = serializers.BooleanField()
