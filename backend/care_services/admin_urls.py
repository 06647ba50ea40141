from django.urls import path

from caregivers.views import PendingCaregiversView, VerifyCaregiverView
from . import views

urlpatterns = [
    path('stats/', views.admin_stats, name='admin-stats'),
    path('services/active/', views.admin_active_services, name='admin-active-services'),
    path('caregivers/pending/', PendingCaregiversView.as_view(), name='admin-pending-caregivers'),
    path('caregivers/<int:caregiver_id>/verify/', VerifyCaregiverView.as_view(), name='admin-verify-caregiver'),
    path('payments/<int:service_id>/release/', views.release, name='admin-release-payment'),
]
