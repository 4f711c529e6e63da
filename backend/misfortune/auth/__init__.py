"""Identity for game requests: Starlette backend, user model, and route policy."""

from misfortune.auth.backend import TrustedHeaderBackend, requester_id
from misfortune.auth.models import AuthenticatedPlayer
from misfortune.auth.policy import protected_api, public_route, validate_route_auth_policy

__all__ = [
    "AuthenticatedPlayer",
    "TrustedHeaderBackend",
    "protected_api",
    "public_route",
    "requester_id",
    "validate_route_auth_policy",
]
