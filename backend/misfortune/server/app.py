from __future__ import annotations

import contextlib
import random
from http import HTTPStatus
from typing import TYPE_CHECKING, cast

import structlog
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from misfortune.auth.backend import TrustedHeaderBackend
from misfortune.auth.policy import (
    collect_protected_api_paths,
    protected_api,
    public_route,
    validate_route_auth_policy,
)
from misfortune.logic.catalog import CardCatalog
from misfortune.logic.engine import RoundEngine
from misfortune.logic.exceptions import ErrorKind, GameError
from misfortune.server.handlers import (
    create_game,
    end_game,
    get_game,
    get_round_card,
    list_games,
    submit_placement,
)
from misfortune.server.settings import GameServerSettings
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.db import Database, SqliteCardRepository, SqliteGameRepository
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from starlette.requests import Request

ERROR_STATUS: dict[ErrorKind, HTTPStatus] = {
    ErrorKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.FORBIDDEN: HTTPStatus.FORBIDDEN,
    ErrorKind.UNAUTHENTICATED: HTTPStatus.UNAUTHORIZED,
    ErrorKind.VALIDATION: HTTPStatus.BAD_REQUEST,
    ErrorKind.INSUFFICIENT_CARDS: HTTPStatus.CONFLICT,
    ErrorKind.NO_CARDS_AVAILABLE: HTTPStatus.NOT_FOUND,
    ErrorKind.GAME_ALREADY_ENDED: HTTPStatus.CONFLICT,
    ErrorKind.STALE_SUBMISSION: HTTPStatus.CONFLICT,
    ErrorKind.FATAL_CONSISTENCY: HTTPStatus.INTERNAL_SERVER_ERROR,
}


async def _game_error_handler(request: Request, exc: Exception) -> Response:
    """Render round engine errors as JSON with the status mapped from their kind."""
    game_exc = cast("GameError", exc)
    status = ERROR_STATUS.get(game_exc.kind, HTTPStatus.INTERNAL_SERVER_ERROR)
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.error("game request failed", path=request.url.path, kind=game_exc.kind, error=str(game_exc))
    return JSONResponse({"error": str(game_exc), "kind": game_exc.kind.value}, status_code=status)


def _make_auth_error_handler(
    protected_api_paths: set[str],
) -> Callable[[Request, Exception], Awaitable[Response]]:
    """Build an HTTPException handler that rewrites 401s on protected JSON endpoints."""

    async def _auth_error_handler(request: Request, exc: Exception) -> Response:
        http_exc = cast("HTTPException", exc)
        if http_exc.status_code == HTTPStatus.UNAUTHORIZED and request.url.path in protected_api_paths:
            return JSONResponse(
                {"error": "Authentication required", "kind": ErrorKind.UNAUTHENTICATED.value},
                status_code=HTTPStatus.UNAUTHORIZED,
            )
        return PlainTextResponse(http_exc.detail or "", status_code=http_exc.status_code, headers=http_exc.headers)

    return _auth_error_handler


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


def create_app(
    settings: GameServerSettings | None = None,
    *,
    rng: random.Random | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = GameServerSettings()

    routes = [
        Route("/health", public_route(health), methods=["GET"], name="health"),
        Route("/api/games", protected_api(list_games), methods=["GET"], name="list_games"),
        Route("/api/games", public_route(create_game), methods=["POST"], name="create_game"),
        Route("/api/games/{game_id:int}", public_route(get_game), methods=["GET"], name="get_game"),
        Route("/api/games/{game_id:int}/round", public_route(get_round_card), methods=["GET"], name="get_round_card"),
        Route(
            "/api/games/{game_id:int}/round",
            public_route(submit_placement),
            methods=["POST"],
            name="submit_placement",
        ),
        Route("/api/games/{game_id:int}/end", public_route(end_game), methods=["POST"], name="end_game"),
    ]
    validate_route_auth_policy(routes)
    protected_api_paths = collect_protected_api_paths(routes)

    db = Database(settings.database_path)
    db.connect()
    db.import_cards_from_json(settings.cards_file)
    engine = RoundEngine(
        CardCatalog(SqliteCardRepository(db), rng=rng),
        SqliteGameRepository(db),
        rules=settings.game_rules(),
    )

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        yield
        db.close()

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        exception_handlers={
            HTTPException: _make_auth_error_handler(protected_api_paths),
            GameError: _game_error_handler,
        },
    )
    app.add_middleware(
        AuthenticationMiddleware,  # type: ignore[arg-type]
        backend=TrustedHeaderBackend(settings.identity_header),
    )
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    app.state.db = db
    app.state.settings = settings
    app.state.engine = engine

    logger.info("game server ready", database_path=settings.database_path, rules=settings.game_rules().model_dump())
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory misfortune.server.app:get_app."""
    settings = GameServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
