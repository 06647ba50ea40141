from django.contrib import admin
from families.models import FamilyProfile


@admin.register(FamilyProfile)
class FamilyProfileAdmin(admin.ModelAdmin):
    list_display = ["user", "address", "location_latitude", "location_longitude", "created_at"]
    search_fields = ["user__username", "user__email", "address"]
    ordering = ("-created_at",)
