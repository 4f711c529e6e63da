from pydantic import BaseModel, ConfigDict, Field

from shared.dal.models import MAX_STORED_INTEGER


class SubmitPlacementRequest(BaseModel):
    """Body of POST /api/games/{game_id}/round.

    position is range-checked by the round engine, so -1 (timeout) and
    negative values below it reach it unchanged.
    """

    model_config = ConfigDict(extra="forbid")

    card_id: int = Field(strict=True, ge=1, le=MAX_STORED_INTEGER)
    position: int = Field(strict=True, le=MAX_STORED_INTEGER)
    time_taken: float | None = Field(default=None, ge=0, allow_inf_nan=False)


class EndGameRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    result: str = Field(min_length=1, max_length=20)
