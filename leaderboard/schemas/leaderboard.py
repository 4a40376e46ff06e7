"""Schemas for leaderboard views (/v1/leaderboard/*)."""

from pydantic import BaseModel, Field


class RankedPlayer(BaseModel):
    """A single leaderboard row (1-based rank).

    Profile fields are None when the id is ranked but has no identity record.
    """

    rank: int | None = Field(ge=1)
    id: str
    name: str | None = None
    country: str | None = None
    country_code: str | None = Field(alias="countryCode", default=None)
    score: float

    model_config = {"populate_by_name": True}


class Neighborhood(BaseModel):
    """Rank window around a search hit, split at the hit's own rank."""

    better_ranked: list[RankedPlayer] = Field(alias="betterRanked", default_factory=list)
    worse_ranked: list[RankedPlayer] = Field(alias="worseRanked", default_factory=list)

    model_config = {"populate_by_name": True}


class SearchResult(RankedPlayer):
    """A search hit; `rank` is None (and score 0) when the player was unranked."""

    neighborhood: Neighborhood = Field(default_factory=Neighborhood)


class TopPlayersResponse(BaseModel):
    players: list[RankedPlayer]
    total_players: int = Field(alias="totalPlayers")

    model_config = {"populate_by_name": True}


class TopRankingDataResponse(BaseModel):
    """Response payload for GET /v1/leaderboard/top-ranking-data."""

    top_ranking_players: list[RankedPlayer] = Field(alias="topRankingPlayers")
    search_results: list[SearchResult] | None = Field(alias="searchResults", default=None)

    model_config = {"populate_by_name": True}
