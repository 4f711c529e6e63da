"""Starlette AuthenticationBackend that trusts an identity header from the auth proxy."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog
from starlette.authentication import AuthCredentials, AuthenticationBackend

from misfortune.auth.models import AuthenticatedPlayer

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection

logger = structlog.get_logger()

USER_ID_MAX_LENGTH = 100
USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.@:-]+$")


class TrustedHeaderBackend(AuthenticationBackend):
    """Authenticate requests from the user id the fronting auth layer puts in a header.

    Session transport and password checks happen in front of this service; the
    header is the only identity signal. A missing header means a guest. A
    malformed value is ignored (treated as a guest) and logged.
    """

    def __init__(self, header_name: str) -> None:
        self._header_name = header_name.lower()

    async def authenticate(
        self,
        conn: HTTPConnection,
    ) -> tuple[AuthCredentials, AuthenticatedPlayer] | None:
        user_id = conn.headers.get(self._header_name, "").strip()
        if not user_id:
            return None
        if len(user_id) > USER_ID_MAX_LENGTH or not USER_ID_PATTERN.match(user_id):
            logger.warning("ignoring malformed identity header", header=self._header_name)
            return None
        return AuthCredentials(["authenticated"]), AuthenticatedPlayer(user_id=user_id)


def requester_id(conn: HTTPConnection) -> str | None:
    """Return the authenticated user id for a request, or None for guests."""
    user = conn.user
    if user.is_authenticated:
        return user.user_id
    return None
