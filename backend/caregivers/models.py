from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class CaregiverProfile(models.Model):
    """Caregiver-specific details, verification and availability"""

    VERIFICATION_PENDING = 'pending'
    VERIFICATION_VERIFIED = 'verified'
    VERIFICATION_REJECTED = 'rejected'

    VERIFICATION_CHOICES = [
        (VERIFICATION_PENDING, 'Pending review'),
        (VERIFICATION_VERIFIED, 'Verified'),
        (VERIFICATION_REJECTED, 'Rejected'),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='caregiver_profile')

    bio = models.TextField(blank=True)
    specialties = models.JSONField(default=list, blank=True)  # list of service type codes
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    # Location & reach
    current_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    current_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    service_radius = models.PositiveIntegerField(default=30000)  # meters
    last_location_update = models.DateTimeField(default=timezone.now)

    is_available = models.BooleanField(default=True)
    verification_status = models.CharField(
        max_length=20, choices=VERIFICATION_CHOICES, default=VERIFICATION_PENDING
    )

    # Aggregates
    rating = models.DecimalField(max_digits=2, decimal_places=1, default=0)
    total_reviews = models.PositiveIntegerField(default=0)
    total_services = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'caregiver_profiles'

    def __str__(self):
        return f"{self.user.username} ({self.verification_status})"

    @property
    def has_location(self) -> bool:
        return self.current_latitude is not None and self.current_longitude is not None
