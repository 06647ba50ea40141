from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check),  # Health check endpoint

    # Authentication endpoints (register, login, refresh, me)
    path('api/auth/', include('accounts.urls')),

    # Profiles
    path('api/family/', include('families.urls')),
    path('api/caregivers/', include('caregivers.urls')),

    # Care services lifecycle (create, respond, select, start, finish, cancel)
    path('api/services/', include('care_services.urls')),

    # Payments (checkout, webhook, confirm) and admin tools
    path('api/payments/', include('care_services.payment_urls')),
    path('api/admin/', include('care_services.admin_urls')),

    # Family <-> caregiver chat per service
    path('api/chat/', include('care_services.chat_urls')),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
