from django.urls import path
from .views import (
    CaregiverProfileView,
    CaregiverAvailabilityView,
    CaregiverLocationView,
    CaregiverJobsView,
    NearbyCaregiversView,
    CaregiverReviewsView,
)

urlpatterns = [
    path("profile/", CaregiverProfileView.as_view(), name="caregiver-profile"),
    path("availability/", CaregiverAvailabilityView.as_view(), name="caregiver-availability"),
    path("location/", CaregiverLocationView.as_view(), name="caregiver-location"),
    path("jobs/", CaregiverJobsView.as_view(), name="caregiver-jobs"),
    path("nearby/", NearbyCaregiversView.as_view(), name="caregivers-nearby"),
    path("<int:caregiver_id>/reviews/", CaregiverReviewsView.as_view(), name="caregiver-reviews"),
]
