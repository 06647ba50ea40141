from django.urls import path
from . import views

app_name = 'care_services'

urlpatterns = [
    # Family APIs
    path('', views.service_list_create, name='service-list'),
    path('<int:service_id>/', views.service_detail, name='service-detail'),
    path('<int:service_id>/candidates/', views.service_candidates, name='service-candidates'),
    path('<int:service_id>/select/', views.select_service_caregiver, name='service-select'),
    path('<int:service_id>/cancel/', views.cancel_care_service, name='service-cancel'),
    path('<int:service_id>/review/', views.review_service, name='service-review'),

    # Caregiver APIs
    path('<int:service_id>/respond/', views.respond, name='service-respond'),
    path('<int:service_id>/start/', views.start, name='service-start'),
    path('<int:service_id>/finish/', views.finish, name='service-finish'),
]
