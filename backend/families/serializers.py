from rest_framework import serializers

from accounts.serializers import UserSerializer
from common.utils import is_valid_coordinate
from families.models import FamilyProfile


class FamilyProfileSerializer(serializers.ModelSerializer):
    """
    Family profile with its saved care address
    """
    user = UserSerializer(read_only=True)

    class Meta:
        model = FamilyProfile
        fields = [
            "id",
            "user",
            "address",
            "location_latitude",
            "location_longitude",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def validate(self, data):
        lat = data.get("location_latitude", getattr(self.instance, "location_latitude", None))
        lon = data.get("location_longitude", getattr(self.instance, "location_longitude", None))
        if (lat is None) != (lon is None) or (lat is not None and not is_valid_coordinate(lat, lon)):
            raise serializers.ValidationError("Provide a valid latitude/longitude pair")
        return data

