from rest_framework import serializers
from django.contrib.auth import authenticate
from django.db import transaction

from .models import User
from caregivers.models import CaregiverProfile
from families.models import FamilyProfile


class UserSerializer(serializers.ModelSerializer):
    profile_picture_url = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "role",
            "phone_number",
            "completed_services",
            "profile_picture",
            "profile_picture_url",
        ]
        read_only_fields = ["id", "role", "completed_services", "profile_picture_url"]
        extra_kwargs = {
            "profile_picture": {"write_only": True, "required": False}
        }

    def get_profile_picture_url(self, obj):
        if obj.profile_picture:
            request = self.context.get("request")
            if request:
                return request.build_absolute_uri(obj.profile_picture.url)
            return obj.profile_picture.url
        return None


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data["username"], password=data["password"])
        if not user:
            raise serializers.ValidationError("Invalid username or password")
        return user


class RegisterSerializer(serializers.ModelSerializer):
    """Sign-up for families and caregivers; the matching profile is created too."""
    password = serializers.CharField(write_only=True, min_length=8)
    role = serializers.ChoiceField(choices=[User.ROLE_FAMILY, User.ROLE_CAREGIVER])
    phone_number = serializers.CharField(required=False, allow_blank=True)

    class Meta:
        model = User
        fields = ['username', 'password', 'email', 'first_name', 'last_name', 'role', 'phone_number']

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email already exists")
        return value

    @transaction.atomic
    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data['username'],
            email=validated_data.get('email', ''),
            password=validated_data['password'],
            role=validated_data['role'],
            first_name=validated_data.get('first_name', ''),
            last_name=validated_data.get('last_name', ''),
            phone_number=validated_data.get('phone_number', ''),
        )

        if user.role == User.ROLE_FAMILY:
            FamilyProfile.objects.create(user=user)
        elif user.role == User.ROLE_CAREGIVER:
            # New caregivers wait for admin verification before receiving offers
            CaregiverProfile.objects.create(user=user)

        return user


class UserBasicSerializer(serializers.ModelSerializer):
    """
    Lite user info shown to the other party of a service.
    """
    name = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "name", "email", "phone_number"]
