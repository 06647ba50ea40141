"""Care services app configuration."""

from django.apps import AppConfig


class CareServicesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'care_services'
