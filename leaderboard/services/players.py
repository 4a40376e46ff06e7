"""Player registration.

A player is written to the identity store first, then given a zero score in
the rank store. The second write is best-effort: if it fails, the player
still exists and the search view restores the missing entry later.
"""

from dataclasses import dataclass
import logging

from leaderboard.errors import (
    MISSING_RANK,
    InvalidInputError,
    PlayerConflictError,
    StoreUnavailableError,
    report_anomaly,
)
from leaderboard.stores.identity import IdentityStore
from leaderboard.stores.rank import RankStore

logger = logging.getLogger("uvicorn.error")

# Column limits of the players table
MAX_NAME_LENGTH = 255
MAX_COUNTRY_LENGTH = 255
MAX_COUNTRY_CODE_LENGTH = 10


@dataclass
class Registration:
    player_id: int
    ranked: bool


def _clean(field: str, value: object, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"Missing required player detail: {field}", field=field)
    cleaned = value.strip()
    if len(cleaned) > max_length:
        raise InvalidInputError(
            f"{field} must be at most {max_length} characters",
            field=field,
            max_length=max_length,
        )
    return cleaned


class PlayerService:
    def __init__(self, identity: IdentityStore, ranks: RankStore) -> None:
        self.identity = identity
        self.ranks = ranks

    async def register(self, name: object, country: object, country_code: object) -> Registration:
        """Register a player and seed a zero score.

        Raises:
            InvalidInputError: a field is missing, blank or too long.
            PlayerConflictError: the exact (name, country, country_code) exists.
            StoreUnavailableError: the identity store could not be reached.
        """
        name = _clean("name", name, MAX_NAME_LENGTH)
        country = _clean("country", country, MAX_COUNTRY_LENGTH)
        country_code = _clean("countryCode", country_code, MAX_COUNTRY_CODE_LENGTH)

        if await self.identity.exists_exact(name, country, country_code):
            raise PlayerConflictError(
                "Player already exists",
                name=name,
                country=country,
                country_code=country_code,
            )

        player_id = await self.identity.insert(name, country, country_code)

        try:
            await self.ranks.set_score(player_id, 0)
        except StoreUnavailableError:
            report_anomaly(player_id, store="rank", direction=MISSING_RANK, context="registration")
            return Registration(player_id=player_id, ranked=False)

        logger.info(f"Player {player_id} registered ({name}, {country_code})")
        return Registration(player_id=player_id, ranked=True)
