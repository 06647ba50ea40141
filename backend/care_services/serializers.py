from rest_framework import serializers

from accounts.serializers import UserBasicSerializer
from caregivers.serializers import CaregiverBasicSerializer
from .models import CareService, ChatMessage, Review, ServiceNotification, ServiceType


class CareServiceSerializer(serializers.ModelSerializer):
    """Serializer for care services"""
    family = UserBasicSerializer(read_only=True)
    caregiver = CaregiverBasicSerializer(read_only=True, source='caregiver.caregiver_profile')
    service_type_display = serializers.CharField(source='get_service_type_display', read_only=True)

    class Meta:
        model = CareService
        fields = [
            'id', 'family', 'caregiver', 'service_type', 'service_type_display',
            'patient_name', 'patient_age', 'patient_condition', 'special_needs', 'notes',
            'address', 'location_latitude', 'location_longitude',
            'scheduled_date', 'duration_hours', 'status',
            'amount', 'commission_family', 'net_amount', 'payment_status',
            'actual_start', 'actual_end', 'cancelled_at', 'cancellation_reason',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class CareServiceCreateSerializer(serializers.Serializer):
    """Input for creating care requests"""
    service_type = serializers.ChoiceField(choices=ServiceType.choices)
    scheduled_date = serializers.DateTimeField()
    duration_hours = serializers.IntegerField(min_value=1, default=1)
    patient_name = serializers.CharField(required=False, allow_blank=True, max_length=120)
    patient_age = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    patient_condition = serializers.CharField(required=False, allow_blank=True)
    special_needs = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)
    location_latitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, required=False, allow_null=True, min_value=-90, max_value=90
    )
    location_longitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, required=False, allow_null=True, min_value=-180, max_value=180
    )


class CareServiceUpdateSerializer(serializers.Serializer):
    """Fields a family may edit while the service is pending"""
    scheduled_date = serializers.DateTimeField(required=False)
    duration_hours = serializers.IntegerField(min_value=1, required=False)
    patient_name = serializers.CharField(required=False, allow_blank=True, max_length=120)
    patient_age = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    patient_condition = serializers.CharField(required=False, allow_blank=True)
    special_needs = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)


class RespondSerializer(serializers.Serializer):
    interested = serializers.BooleanField()


class SelectCaregiverSerializer(serializers.Serializer):
    caregiver_id = serializers.IntegerField()


class CancelSerializer(serializers.Serializer):
    """Serializer for service cancellation"""
    reason = serializers.CharField(required=False, allow_blank=True)


class CandidateSerializer(serializers.ModelSerializer):
    """An offer as the family sees it: who, how far, what they answered"""
    caregiver = CaregiverBasicSerializer(read_only=True)

    class Meta:
        model = ServiceNotification
        fields = ['id', 'caregiver', 'distance_km', 'status', 'matching_round', 'responded_at']
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True)
    is_public = serializers.BooleanField(required=False, default=True)


class ReviewSerializer(serializers.ModelSerializer):
    family_name = serializers.CharField(source='family.display_name', read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'service', 'caregiver', 'family_name', 'rating', 'comment', 'is_public', 'created_at']
        read_only_fields = fields


class ChatMessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.CharField(source='sender.display_name', read_only=True)

    class Meta:
        model = ChatMessage
        fields = ['id', 'service', 'sender', 'sender_name', 'content', 'is_read', 'created_at']
        read_only_fields = fields


class ChatMessageCreateSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=2000)
