"""Rank store: cumulative scores in a Redis sorted set.

Sorted set operations used:
- ZINCRBY: atomic per-member increment (earnings, settlement rewards)
- ZADD / ZADD NX: absolute set (registration) and add-if-absent (self-heal)
- ZREVRANK / ZSCORE: 0-based descending rank and score lookup, O(log n)
- ZREVRANGE WITHSCORES: rank windows, O(log n + k)

Tie-break: Redis orders equal scores by member (player id string)
lexicographically; with REV reads that order is reversed. The order is
deterministic for a given set contents, so `rank()` and `top_range()` always
agree.
"""

from dataclasses import dataclass

import redis.asyncio as redis

from leaderboard.stores.redis import translate_redis_errors

STORE = "rank"


@dataclass(frozen=True)
class ScoreEntry:
    """One (player id, score) row read from the rank store."""

    player_id: str
    score: float


class RankStore:
    """Ordered player id -> score mapping."""

    def __init__(self, client: redis.Redis, key: str = "game_leaderboard") -> None:
        self.client = client
        self.key = key

    async def upsert(self, player_id: object, score_delta: float) -> float:
        """Add `score_delta` to the player's score (creating it if absent).

        Returns:
            The new score.
        """
        with translate_redis_errors(STORE, "upsert"):
            new_score = await self.client.zincrby(self.key, score_delta, str(player_id))
        return float(new_score)

    async def set_score(self, player_id: object, value: float) -> None:
        """Set an absolute score (registration and reset flows)."""
        with translate_redis_errors(STORE, "set_score"):
            await self.client.zadd(self.key, {str(player_id): value})

    async def add_if_absent(self, player_id: object, value: float = 0.0) -> bool:
        """Insert an entry only if the player has none.

        Returns:
            True if a new entry was created.
        """
        with translate_redis_errors(STORE, "add_if_absent"):
            added = await self.client.zadd(self.key, {str(player_id): value}, nx=True)
        return bool(added)

    async def rank(self, player_id: object) -> int | None:
        """0-based descending rank, or None if the player is unscored."""
        with translate_redis_errors(STORE, "rank"):
            return await self.client.zrevrank(self.key, str(player_id))

    async def score_of(self, player_id: object) -> float | None:
        """Current score, or None if the player is unscored."""
        with translate_redis_errors(STORE, "score_of"):
            score = await self.client.zscore(self.key, str(player_id))
        return None if score is None else float(score)

    async def top_range(self, offset: int, limit: int) -> list[ScoreEntry]:
        """`limit` entries in descending score order starting at rank `offset`."""
        if limit <= 0:
            return []
        start = max(offset, 0)
        with translate_redis_errors(STORE, "top_range"):
            rows = await self.client.zrevrange(self.key, start, start + limit - 1, withscores=True)
        return [ScoreEntry(player_id=str(member), score=float(score)) for member, score in rows]

    async def count(self) -> int:
        """Number of ranked players."""
        with translate_redis_errors(STORE, "count"):
            return int(await self.client.zcard(self.key))
