"""Tests for auth policy helpers and route validation."""

from __future__ import annotations

import pytest
from starlette.authentication import AuthCredentials
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from misfortune.auth.policy import (
    AUTH_POLICY_ATTR,
    PROTECTED_API,
    PUBLIC,
    collect_protected_api_paths,
    protected_api,
    public_route,
    validate_route_auth_policy,
)


def _make_request(*, authenticated: bool) -> Request:
    scopes = ["authenticated"] if authenticated else []
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/games",
        "query_string": b"",
        "headers": [],
        "auth": AuthCredentials(scopes),
    }
    return Request(scope)


async def _handler(request: Request) -> JSONResponse:
    return JSONResponse({"ok": True})


class TestProtectedApi:
    async def test_marks_endpoint(self):
        assert getattr(protected_api(_handler), AUTH_POLICY_ATTR) == PROTECTED_API

    async def test_allows_authenticated(self):
        response = await protected_api(_handler)(_make_request(authenticated=True))
        assert response.status_code == 200

    async def test_rejects_guest_with_401(self):
        with pytest.raises(HTTPException) as exc_info:
            await protected_api(_handler)(_make_request(authenticated=False))
        assert exc_info.value.status_code == 401


class TestPublicRoute:
    async def test_marks_wrapper_not_original(self):
        wrapped = public_route(_handler)
        assert getattr(wrapped, AUTH_POLICY_ATTR) == PUBLIC
        assert not hasattr(_handler, AUTH_POLICY_ATTR)

    async def test_passes_through(self):
        response = await public_route(_handler)(_make_request(authenticated=False))
        assert response.status_code == 200


class TestValidateRouteAuthPolicy:
    def test_accepts_classified_routes(self):
        validate_route_auth_policy(
            [
                Route("/a", public_route(_handler)),
                Route("/b", protected_api(_handler)),
            ],
        )

    def test_rejects_unclassified_routes(self):
        with pytest.raises(RuntimeError, match="/naked"):
            validate_route_auth_policy([Route("/naked", _handler, name="naked")])

    def test_collects_protected_paths(self):
        routes = [
            Route("/api/games", protected_api(_handler), methods=["GET"]),
            Route("/api/games", public_route(_handler), methods=["POST"]),
            Route("/health", public_route(_handler)),
        ]
        assert collect_protected_api_paths(routes) == {"/api/games"}
