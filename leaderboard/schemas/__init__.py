"""Pydantic schemas for API request/response validation."""

from leaderboard.schemas.common import ErrorDetail, ErrorResponse, error_responses
from leaderboard.schemas.leaderboard import (
    RankedPlayer,
    SearchResult,
    Neighborhood,
    TopPlayersResponse,
    TopRankingDataResponse,
)
from leaderboard.schemas.players import (
    CreatePlayerRequest,
    CreatePlayerResponse,
    EarnRequest,
    EarnResponse,
)

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "RankedPlayer",
    "SearchResult",
    "Neighborhood",
    "TopPlayersResponse",
    "TopRankingDataResponse",
    "error_responses",
    "CreatePlayerRequest",
    "CreatePlayerResponse",
    "EarnRequest",
    "EarnResponse",
]
