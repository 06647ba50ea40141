from django.contrib import admin
from caregivers.models import CaregiverProfile


@admin.register(CaregiverProfile)
class CaregiverProfileAdmin(admin.ModelAdmin):
    """Admin panel for reviewing and verifying caregivers"""

    list_display = [
        "user",
        "verification_status",
        "is_available",
        "hourly_rate",
        "service_radius",
        "rating",
        "total_services",
    ]

    list_filter = [
        "verification_status",
        "is_available",
    ]

    search_fields = [
        "user__username",
        "user__email",
    ]

    readonly_fields = [
        "last_location_update",
        "rating",
        "total_reviews",
        "total_services",
    ]

    actions = ["mark_verified", "mark_rejected"]

    @admin.action(description="Verify selected caregivers")
    def mark_verified(self, request, queryset):
        queryset.update(verification_status=CaregiverProfile.VERIFICATION_VERIFIED)

    @admin.action(description="Reject selected caregivers")
    def mark_rejected(self, request, queryset):
        queryset.update(verification_status=CaregiverProfile.VERIFICATION_REJECTED)
