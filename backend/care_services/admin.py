"""Tells what to show in the Django admin interface for care services"""

from django.contrib import admin
from .models import CareService, ChatMessage, ServiceNotification, Review


class ServiceNotificationInline(admin.TabularInline):
    model = ServiceNotification
    extra = 0
    readonly_fields = ('caregiver', 'distance_km', 'notified_via', 'status', 'matching_round', 'created_at', 'responded_at')
    can_delete = False


@admin.register(CareService)
class CareServiceAdmin(admin.ModelAdmin):
    """Care service admin"""
    list_display = ['id', 'family', 'caregiver', 'service_type', 'status', 'payment_status', 'scheduled_date', 'created_at']
    list_filter = ['status', 'payment_status', 'service_type']
    search_fields = ['family__username', 'caregiver__username', 'patient_name', 'address']
    readonly_fields = ['created_at', 'updated_at', 'actual_start', 'actual_end', 'cancelled_at',
                       'released_at', 'matching_rounds', 'version']
    date_hierarchy = 'created_at'
    inlines = [ServiceNotificationInline]


@admin.register(ServiceNotification)
class ServiceNotificationAdmin(admin.ModelAdmin):
    list_display = ("service", "caregiver", "distance_km", "notified_via", "status", "matching_round", "created_at")
    list_filter = ("status", "notified_via")
    search_fields = ("service__id", "caregiver__user__username")


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("service", "caregiver", "family", "rating", "is_public", "created_at")
    list_filter = ("rating", "is_public")


@admin.register(ChatMessage)
class ChatMessageAdmin(admin.ModelAdmin):
    list_display = ("service", "sender", "is_read", "created_at")
    list_filter = ("is_read",)
    search_fields = ("service__id", "sender__username", "content")
