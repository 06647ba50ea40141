from django.urls import path
from . import views

urlpatterns = [
    path('checkout/<int:service_id>/', views.checkout, name='payment-checkout'),
    path('webhook/', views.payment_webhook, name='payment-webhook'),
    path('history/', views.payment_history, name='payment-history'),
    path('<int:service_id>/confirm/', views.confirm, name='payment-confirm'),
    path('<int:service_id>/status/', views.payment_status, name='payment-status'),
]
