from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User
from caregivers.models import CaregiverProfile
from families.models import FamilyProfile


class FamilyProfileInline(admin.StackedInline):
    model = FamilyProfile
    can_delete = False
    extra = 0


class CaregiverProfileInline(admin.StackedInline):
    model = CaregiverProfile
    can_delete = False
    extra = 0
    readonly_fields = ("rating", "total_reviews", "total_services")


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Users of the marketplace; the role decides which profile is shown inline"""

    list_display = ["username", "email", "role", "completed_services", "is_active"]
    list_filter = ["role", "is_active", "is_staff"]
    search_fields = ["username", "email", "first_name", "last_name", "phone_number"]
    ordering = ("-date_joined",)

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Marketplace", {"fields": ("role", "phone_number", "profile_picture", "completed_services")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Marketplace", {"fields": ("role", "phone_number")}),
    )

    def get_inlines(self, request, obj):
        if obj is None:
            return []
        if obj.role == User.ROLE_FAMILY:
            return [FamilyProfileInline]
        if obj.role == User.ROLE_CAREGIVER:
            return [CaregiverProfileInline]
        return []
