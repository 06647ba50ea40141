"""WebSocket authentication middleware for JWT and Cookie-based auth."""

import logging
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

User = get_user_model()
logger = logging.getLogger(__name__)


@database_sync_to_async
def get_user_for_token(raw_token: str):
    """Active user the access token belongs to, or AnonymousUser."""
    try:
        access = AccessToken(raw_token)
    except TokenError as e:
        logger.debug("JWT auth failed: %s", e)
        return AnonymousUser()

    user = User.objects.filter(id=access.get("user_id"), is_active=True).first()
    return user or AnonymousUser()


class JWTOrCookieAuthMiddleware(BaseMiddleware):
    """
    Authenticate WebSocket connections using either:
    1. JWT in querystring (?token=...) - mobile and SPA clients
    2. Session cookies - the browsable admin / same-origin pages

    Must run inside AuthMiddlewareStack, which puts the session and the
    session user in the scope.
    """

    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get("query_string", b"").decode())

        token_list = params.get("token")
        if token_list:
            scope["user"] = await get_user_for_token(token_list[0])
        elif "session" not in scope:
            scope["user"] = AnonymousUser()
        else:
            scope["user"] = scope.get("user", AnonymousUser())

        return await super().__call__(scope, receive, send)


def JWTAuthMiddlewareStack(inner):
    """Session/cookie auth from Channels, then the JWT override."""
    return AuthMiddlewareStack(JWTOrCookieAuthMiddleware(inner))
