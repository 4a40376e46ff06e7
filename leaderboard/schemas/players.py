"""Schemas for player registration and earnings."""

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr


class CreatePlayerRequest(BaseModel):
    """Request body for POST /v1/players."""

    name: StrictStr
    country: StrictStr
    country_code: StrictStr = Field(alias="countryCode")

    model_config = {"populate_by_name": True}


class CreatePlayerResponse(BaseModel):
    message: str = "Player created successfully"
    player_id: int = Field(alias="playerId")

    model_config = {"populate_by_name": True}


class EarnRequest(BaseModel):
    """Request body for POST /v1/leaderboard/earn.

    `amount` must be a JSON number; numeric strings are rejected.
    """

    player_id: StrictInt | StrictStr = Field(alias="playerId")
    amount: StrictInt | StrictFloat

    model_config = {"populate_by_name": True}


class EarnResponse(BaseModel):
    message: str = "Earnings updated successfully"
    player_id: str = Field(alias="playerId")
    score: float
    contribution: float = Field(description="Amount added to the prize pool")

    model_config = {"populate_by_name": True}
