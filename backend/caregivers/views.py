from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated

from accounts.permissions import IsCaregiver, IsPlatformAdmin
from caregivers.models import CaregiverProfile
from caregivers.serializers import (
    AvailabilitySerializer,
    CaregiverProfileSerializer,
    LocationUpdateSerializer,
    NearbyCaregiverSerializer,
    NearbyQuerySerializer,
    VerificationSerializer,
)
from care_services.serializers import CareServiceSerializer, ReviewSerializer
from caregivers import services
from services.matching import find_nearby_caregivers
from services.reviews import list_caregiver_reviews
from services.service_management import (
    CaregiverNotFoundError,
    ServiceValidationError,
    list_caregiver_jobs,
)


# Utility: caregiver profile of the caller (role already checked by IsCaregiver)
def require_caregiver_profile(user):
    try:
        return True, user.caregiver_profile
    except CaregiverProfile.DoesNotExist:
        return False, Response({"error": "Caregiver profile not found"}, status=404)


class CaregiverProfileView(APIView):
    permission_classes = [IsCaregiver]

    def get(self, request):
        ok, profile = require_caregiver_profile(request.user)
        if ok is False:
            return profile

        serializer = CaregiverProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)

    def patch(self, request):
        ok, profile = require_caregiver_profile(request.user)
        if ok is False:
            return profile

        serializer = CaregiverProfileSerializer(
            profile, data=request.data, partial=True, context={"request": request}
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class CaregiverAvailabilityView(APIView):
    permission_classes = [IsCaregiver]

    def get(self, request):
        ok, profile = require_caregiver_profile(request.user)
        if ok is False:
            return profile

        return Response({"is_available": profile.is_available})

    def put(self, request):
        ok, profile = require_caregiver_profile(request.user)
        if ok is False:
            return profile

        serializer = AvailabilitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.update_caregiver_availability(profile, serializer.validated_data["is_available"])

        return Response({"is_available": profile.is_available})


class CaregiverLocationView(APIView):
    permission_classes = [IsCaregiver]

    def get(self, request):
        ok, profile = require_caregiver_profile(request.user)
        if ok is False:
            return profile

        return Response({
            "latitude": float(profile.current_latitude) if profile.has_location else None,
            "longitude": float(profile.current_longitude) if profile.has_location else None,
            "service_radius": profile.service_radius,
            "last_updated": profile.last_location_update,
        })

    def post(self, request):
        ok, profile = require_caregiver_profile(request.user)
        if ok is False:
            return profile

        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            services.update_caregiver_location(
                profile, data["latitude"], data["longitude"], data.get("service_radius")
            )
        except ServiceValidationError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            "message": "Location updated",
            "latitude": float(profile.current_latitude),
            "longitude": float(profile.current_longitude),
            "service_radius": profile.service_radius,
        })


class CaregiverJobsView(APIView):
    """Open offers plus services assigned to the caregiver."""
    permission_classes = [IsCaregiver]

    def get(self, request):
        try:
            jobs = list_caregiver_jobs(request.user)
        except CaregiverNotFoundError as e:
            return Response({"error": str(e)}, status=status.HTTP_404_NOT_FOUND)

        return Response({
            "available": CareServiceSerializer(jobs["available"], many=True, context={"request": request}).data,
            "mine": CareServiceSerializer(jobs["mine"], many=True, context={"request": request}).data,
        })


class NearbyCaregiversView(APIView):
    """
    Preview of caregivers that would be offered a service at a location.

    GET ?latitude=..&longitude=..&service_type=..
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        serializer = NearbyQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        candidates = find_nearby_caregivers(data["latitude"], data["longitude"], data.get("service_type"))
        return Response({
            "count": len(candidates),
            "caregivers": NearbyCaregiverSerializer(candidates, many=True).data,
        })


class CaregiverReviewsView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, caregiver_id):
        reviews = list_caregiver_reviews(caregiver_id)
        return Response(ReviewSerializer(reviews, many=True).data)


# ==================== Admin verification ====================

class PendingCaregiversView(APIView):
    permission_classes = [IsPlatformAdmin]

    def get(self, request):
        profiles = services.list_pending_caregivers()
        return Response(CaregiverProfileSerializer(profiles, many=True, context={"request": request}).data)


class VerifyCaregiverView(APIView):
    permission_classes = [IsPlatformAdmin]

    def post(self, request, caregiver_id):
        serializer = VerificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            profile = services.verify_caregiver(caregiver_id, serializer.validated_data["approved"])
        except CaregiverNotFoundError as e:
            return Response({"error": str(e)}, status=status.HTTP_404_NOT_FOUND)

        return Response({
            "id": profile.id,
            "verification_status": profile.verification_status,
        })
