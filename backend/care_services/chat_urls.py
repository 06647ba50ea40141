from django.urls import path
from . import views

urlpatterns = [
    path('<int:service_id>/messages/', views.chat_messages, name='chat-messages'),
    path('<int:service_id>/read/', views.chat_mark_read, name='chat-read'),
]
