"""Settings used by the test suite: no Redis, no SMTP, eager Celery."""

from .base import *

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

PRESENCE_REGISTRY_CLASS = "realtime.presence.InMemoryPresenceRegistry"
PAYMENT_GATEWAY_CLASS = "services.payments.gateway.MercadoPagoGateway"
MP_ACCESS_TOKEN = "TEST-token"
