from django.db import models
from django.conf import settings

User = settings.AUTH_USER_MODEL


class FamilyProfile(models.Model):
    """Family account details: where care is usually needed"""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='family_profile')

    address = models.CharField(max_length=255, blank=True)
    location_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    location_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'family_profiles'

    def __str__(self):
        return f"Family of {self.user.username}"
