"""Player endpoints.

POST /v1/players - Register a player (name, country, countryCode).
"""

from fastapi import APIRouter, Depends, status

from leaderboard.container import LeaderboardServices, get_services
from leaderboard.schemas import CreatePlayerRequest, CreatePlayerResponse, error_responses

router = APIRouter()


@router.post(
    "",
    response_model=CreatePlayerResponse,
    status_code=status.HTTP_201_CREATED,
    responses=error_responses(400, 409, 503),
)
async def create_player(
    request: CreatePlayerRequest,
    services: LeaderboardServices = Depends(get_services),
) -> CreatePlayerResponse:
    """Register a player and seed a zero score.

    Raises:
        400 INVALID_INPUT: missing/blank fields.
        409 PLAYER_EXISTS: identical name/country/countryCode already registered.
    """
    registration = await services.players.register(
        request.name, request.country, request.country_code
    )
    return CreatePlayerResponse(player_id=registration.player_id)
