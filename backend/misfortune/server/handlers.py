"""JSON API handlers for games and rounds.

Handlers translate HTTP to round engine calls. Engine errors propagate to the
``GameError`` exception handler registered in ``create_app``.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from pydantic import ValidationError
from starlette.responses import JSONResponse

from misfortune.auth.backend import requester_id
from misfortune.server.types import EndGameRequest, SubmitPlacementRequest

if TYPE_CHECKING:
    from starlette.requests import Request

    from misfortune.logic.engine import RoundEngine

_MAX_REQUEST_BODY_SIZE = 4096


async def _read_json_object(request: Request) -> dict | JSONResponse:
    """Read the request body as a JSON object, or build the 4xx response to return."""
    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        return JSONResponse({"error": "Request body too large"}, status_code=413)
    try:
        body = json.loads(raw_body) if raw_body.strip() else {}
    except ValueError:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=422)
    if not isinstance(body, dict):
        return JSONResponse({"error": "JSON body must be an object"}, status_code=422)
    return body


def _engine(request: Request) -> RoundEngine:
    return request.app.state.engine


async def create_game(request: Request) -> JSONResponse:
    """POST /api/games - start a game; guests get a single-round game."""
    created = await _engine(request).create_game(requester_id(request))
    return JSONResponse(created.model_dump(mode="json"), status_code=201)


async def list_games(request: Request) -> JSONResponse:
    """GET /api/games - the authenticated player's game history."""
    games = await _engine(request).list_games(requester_id(request))
    return JSONResponse({"games": [g.model_dump(mode="json") for g in games]})


async def get_game(request: Request) -> JSONResponse:
    """GET /api/games/{game_id} - game record, hand and round history."""
    details = await _engine(request).get_game(request.path_params["game_id"], requester_id(request))
    return JSONResponse(details.model_dump(mode="json"))


async def get_round_card(request: Request) -> JSONResponse:
    """GET /api/games/{game_id}/round - the card to place, without its index."""
    card = await _engine(request).get_round_card(request.path_params["game_id"], requester_id(request))
    return JSONResponse(card.model_dump(mode="json"))


async def submit_placement(request: Request) -> JSONResponse:
    """POST /api/games/{game_id}/round - score a placement (-1 for a timeout)."""
    body = await _read_json_object(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        placement = SubmitPlacementRequest(**body)
    except ValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=422)
    verdict = await _engine(request).submit_placement(
        request.path_params["game_id"],
        requester_id(request),
        card_id=placement.card_id,
        position=placement.position,
        time_taken_seconds=placement.time_taken,
    )
    return JSONResponse(verdict.model_dump(mode="json", exclude_none=True))


async def end_game(request: Request) -> JSONResponse:
    """POST /api/games/{game_id}/end - end an active game with the given result."""
    body = await _read_json_object(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        end_request = EndGameRequest(**body)
    except ValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=422)
    game = await _engine(request).end_game(request.path_params["game_id"], requester_id(request), end_request.result)
    return JSONResponse(game.model_dump(mode="json"))
