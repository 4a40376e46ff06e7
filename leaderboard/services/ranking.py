"""Ranking query engine: read views joining the rank store with identities.

Views:
1. Top-N: rank store top range + batch identity lookup. A ranked id with no
   identity record is kept with null profile fields (logged anomaly).
2. Search: identity substring match (name or country) + rank/score per hit.
   A hit missing from the rank store is reported unranked (score 0) and gets a
   zero-score entry (self-heal, add-if-absent).
3. Neighborhood: rank window [R-3, R+2] around a hit, split into better- and
   worse-ranked. Window ids with no identity record are dropped (logged).

Within one combined response an id appears at most once across the top-N rows
and all neighborhoods (search hits themselves are always listed).

Store failures propagate as StoreUnavailableError; inconsistencies never fail
a query.
"""

import asyncio
from dataclasses import dataclass, field
import logging

from leaderboard.errors import MISSING_IDENTITY, MISSING_RANK, ConsistencyAnomaly, report_anomaly
from leaderboard.models import Player
from leaderboard.schemas import Neighborhood, RankedPlayer, SearchResult, TopRankingDataResponse
from leaderboard.stores.identity import IdentityStore
from leaderboard.stores.rank import RankStore

logger = logging.getLogger("uvicorn.error")

# Neighborhood window, relative to the hit's 0-based rank
WINDOW_BEFORE = 3
WINDOW_AFTER = 2


@dataclass
class QueryContext:
    """Per-request state: ids already emitted and anomalies seen."""

    included: set[str] = field(default_factory=set)
    anomalies: list[ConsistencyAnomaly] = field(default_factory=list)


@dataclass
class _Hit:
    player: Player
    rank: int | None  # 0-based
    score: float


def _row(rank: int, player_id: str, score: float, profile: Player | None) -> RankedPlayer:
    return RankedPlayer(
        rank=rank + 1,
        id=player_id,
        name=profile.name if profile else None,
        country=profile.country if profile else None,
        country_code=profile.country_code if profile else None,
        score=score,
    )


class RankingQueryEngine:
    def __init__(
        self,
        identity: IdentityStore,
        ranks: RankStore,
        *,
        top_n: int = 100,
        search_limit: int = 50,
        self_heal: bool = True,
    ) -> None:
        self.identity = identity
        self.ranks = ranks
        self.top_n = top_n
        self.search_limit = search_limit
        self.self_heal = self_heal

    async def top_players(self, limit: int | None = None, ctx: QueryContext | None = None) -> list[RankedPlayer]:
        """Top-N rows, best first."""
        ctx = ctx or QueryContext()
        entries = await self.ranks.top_range(0, limit or self.top_n)
        profiles = await self.identity.find_many_by_ids(e.player_id for e in entries)

        rows: list[RankedPlayer] = []
        for index, entry in enumerate(entries):
            profile = profiles.get(entry.player_id)
            if profile is None:
                ctx.anomalies.append(
                    report_anomaly(entry.player_id, store="identity", direction=MISSING_IDENTITY, context="top-N")
                )
            rows.append(_row(index, entry.player_id, entry.score, profile))
        return rows

    async def search(self, query: str, ctx: QueryContext | None = None) -> list[SearchResult]:
        """Search players by name/country and attach rank neighborhoods.

        Results are ordered by rank; unranked hits come last.
        """
        ctx = ctx or QueryContext()
        players = await self.identity.find_by_name_or_country_substring(query, limit=self.search_limit)
        if not players:
            return []

        hits = await asyncio.gather(*(self._locate(p, ctx) for p in players))
        hits = sorted(hits, key=lambda h: (h.rank is None, h.rank or 0, h.player.id))

        # Hits are listed themselves, so keep them out of every neighborhood.
        ctx.included.update(str(h.player.id) for h in hits)

        results: list[SearchResult] = []
        for hit in hits:
            neighborhood = Neighborhood()
            if hit.rank is not None:
                neighborhood = await self.neighborhood(hit.rank, ctx, center_id=str(hit.player.id))
            results.append(
                SearchResult(
                    rank=None if hit.rank is None else hit.rank + 1,
                    id=str(hit.player.id),
                    name=hit.player.name,
                    country=hit.player.country,
                    country_code=hit.player.country_code,
                    score=hit.score,
                    neighborhood=neighborhood,
                )
            )
        return results

    async def neighborhood(self, rank: int, ctx: QueryContext | None = None, center_id: str | None = None) -> Neighborhood:
        """Players ranked just above/below 0-based `rank`, excluding `rank` itself."""
        ctx = ctx or QueryContext()
        start = max(0, rank - WINDOW_BEFORE)
        end = rank + WINDOW_AFTER
        entries = await self.ranks.top_range(start, end - start + 1)
        profiles = await self.identity.find_many_by_ids(e.player_id for e in entries)

        result = Neighborhood()
        for offset, entry in enumerate(entries):
            position = start + offset
            if position == rank or entry.player_id == center_id:
                continue
            profile = profiles.get(entry.player_id)
            if profile is None:
                ctx.anomalies.append(
                    report_anomaly(entry.player_id, store="identity", direction=MISSING_IDENTITY, context="neighborhood")
                )
                continue
            if entry.player_id in ctx.included:
                continue
            ctx.included.add(entry.player_id)
            row = _row(position, entry.player_id, entry.score, profile)
            if position < rank:
                result.better_ranked.append(row)
            else:
                result.worse_ranked.append(row)
        return result

    async def top_ranking_data(self, query: str | None = None) -> TopRankingDataResponse:
        """Top-N plus (when `query` is given) search results with neighborhoods."""
        ctx = QueryContext()
        top = await self.top_players(ctx=ctx)
        ctx.included.update(row.id for row in top)

        search_results = None
        if query and query.strip():
            search_results = await self.search(query.strip(), ctx) or None

        return TopRankingDataResponse(top_ranking_players=top, search_results=search_results)

    async def _locate(self, player: Player, ctx: QueryContext) -> _Hit:
        rank, score = await asyncio.gather(
            self.ranks.rank(player.id),
            self.ranks.score_of(player.id),
        )
        if rank is None or score is None:
            healed = False
            if self.self_heal:
                healed = await self.ranks.add_if_absent(player.id, 0)
            ctx.anomalies.append(
                report_anomaly(player.id, store="rank", direction=MISSING_RANK, healed=healed, context="search")
            )
            return _Hit(player=player, rank=None, score=0.0)
        return _Hit(player=player, rank=rank, score=score)
