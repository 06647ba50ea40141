from rest_framework.views import APIView
from rest_framework.response import Response

from accounts.permissions import IsFamily
from families.models import FamilyProfile
from families.serializers import FamilyProfileSerializer


class FamilyProfileView(APIView):
    permission_classes = [IsFamily]

    def get(self, request):
        profile, _ = FamilyProfile.objects.get_or_create(user=request.user)
        serializer = FamilyProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)

    def patch(self, request):
        profile, _ = FamilyProfile.objects.get_or_create(user=request.user)
        serializer = FamilyProfileSerializer(
            profile, data=request.data, partial=True, context={"request": request}
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)
