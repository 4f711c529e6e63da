"""Route auth policy helpers for fail-closed authorization.

Each helper wraps a route endpoint and sets the ``AUTH_POLICY_ATTR`` marker
so that startup validation can verify every route has an explicit auth policy.
Game routes that guests may use are ``public_route``; ownership of a game is
checked by the round engine, not here.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING

from starlette.authentication import requires
from starlette.routing import Route

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.routing import BaseRoute

    Endpoint = Callable[[Request], Awaitable[Response]]

AUTH_POLICY_ATTR = "__auth_policy__"

PROTECTED_API = "protected_api"
PUBLIC = "public"


def protected_api(endpoint: Endpoint) -> Endpoint:
    """Require authentication; raise 401 for unauthenticated API requests."""
    wrapped = requires("authenticated", status_code=401)(endpoint)
    setattr(wrapped, AUTH_POLICY_ATTR, PROTECTED_API)
    return wrapped


def public_route(endpoint: Endpoint) -> Endpoint:
    """Mark an endpoint as explicitly public (guests allowed).

    Returns a thin wrapper so the marker lives on the wrapper, not on the
    original callable.
    """

    @functools.wraps(endpoint)
    async def wrapper(request: Request) -> Response:
        return await endpoint(request)

    setattr(wrapper, AUTH_POLICY_ATTR, PUBLIC)
    return wrapper


def collect_protected_api_paths(routes: list[BaseRoute]) -> set[str]:
    """Return the path strings of routes marked ``protected_api``."""
    return {
        route.path
        for route in routes
        if isinstance(route, Route) and getattr(route.endpoint, AUTH_POLICY_ATTR, None) == PROTECTED_API
    }


def validate_route_auth_policy(routes: list[BaseRoute]) -> None:
    """Verify every Route has an auth policy marker. Mounts are not Routes and are exempt.

    Raises RuntimeError listing all unclassified routes if any are found.
    """
    unclassified = [
        f"{route.path} ({route.name or getattr(route.endpoint, '__name__', 'unknown')})"
        for route in routes
        if isinstance(route, Route) and not hasattr(route.endpoint, AUTH_POLICY_ATTR)
    ]
    if unclassified:
        msg = f"Unclassified routes missing auth policy: {', '.join(unclassified)}"
        raise RuntimeError(msg)
