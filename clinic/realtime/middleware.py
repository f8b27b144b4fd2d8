"""
JWT authentication for WebSocket connections.

Browsers cannot set an ``Authorization`` header on a WebSocket handshake,
so the access token is read from the ``token`` query parameter or from
the same cookie the HTTP API accepts.  Without a token the user resolved
by Channels' session middleware is left in place.
"""
from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.exceptions import InvalidToken

from clinic.authentication import JWTAuthentication
from clinic.services.accounts import attach_role_ids

logger = logging.getLogger(__name__)


def _raw_token(scope) -> str | None:
    query = parse_qs(scope.get("query_string", b"").decode())
    if query.get("token"):
        return query["token"][0]
    return (scope.get("cookies") or {}).get(getattr(settings, "JWT_AUTH_COOKIE", "token"))


@database_sync_to_async
def _user_for_token(raw: str):
    auth = JWTAuthentication()
    try:
        user = auth.get_user(auth.get_validated_token(raw.encode()))
    except (InvalidToken, AuthenticationFailed) as exc:
        logger.info("websocket token rejected: %s", exc)
        return AnonymousUser()
    attach_role_ids(user)
    return user


class JWTAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        raw = _raw_token(scope)
        if raw:
            scope["user"] = await _user_for_token(raw)
        return await super().__call__(scope, receive, send)


def JWTAuthMiddlewareStack(inner):
    # cookies and the session user are populated before the token is read
    return AuthMiddlewareStack(JWTAuthMiddleware(inner))
