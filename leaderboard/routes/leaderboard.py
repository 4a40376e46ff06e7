"""Leaderboard endpoints.

POST /v1/leaderboard/earn              - Record an earning.
GET  /v1/leaderboard/top               - Top-N rows.
GET  /v1/leaderboard/top-ranking-data  - Top-N plus optional search with neighborhoods.

Routers are thin: call services for business logic.
"""

from fastapi import APIRouter, Depends, Query

from leaderboard.container import LeaderboardServices, get_services
from leaderboard.schemas import (
    EarnRequest,
    EarnResponse,
    TopPlayersResponse,
    TopRankingDataResponse,
    error_responses,
)

router = APIRouter()


@router.post("/earn", response_model=EarnResponse, responses=error_responses(400, 404, 500, 503))
async def earn(
    request: EarnRequest,
    services: LeaderboardServices = Depends(get_services),
) -> EarnResponse:
    """Add an earning to the player's score and 2% of it to the prize pool.

    Not safe to retry blindly: a replayed request is counted twice.
    """
    result = await services.earnings.record(request.player_id, request.amount)
    return EarnResponse(player_id=result.player_id, score=result.score, contribution=result.contribution)


@router.get("/top", response_model=TopPlayersResponse, responses=error_responses(400, 503))
async def get_top(
    limit: int = Query(default=100, ge=1, le=100, description="Number of rows"),
    services: LeaderboardServices = Depends(get_services),
) -> TopPlayersResponse:
    players = await services.queries.top_players(limit=limit)
    return TopPlayersResponse(players=players, total_players=await services.ranks.count())


@router.get(
    "/top-ranking-data",
    response_model=TopRankingDataResponse,
    responses=error_responses(400, 503),
)
async def get_top_ranking_data(
    query: str | None = Query(
        default=None,
        max_length=255,
        description="Case-insensitive name/country substring",
        examples=["ada", "US"],
    ),
    services: LeaderboardServices = Depends(get_services),
) -> TopRankingDataResponse:
    """Top-N rows, plus search results with rank neighborhoods when `query` is set."""
    return await services.queries.top_ranking_data(query)
