"""Tests for the Redis rank store adapter."""

import pytest

from leaderboard.errors import ErrorKind, StoreUnavailableError
from leaderboard.stores.rank import RankStore, ScoreEntry


@pytest.fixture
def ranks(fake_redis) -> RankStore:
    return RankStore(fake_redis, key="lb")


async def test_upsert_initializes_then_accumulates(ranks: RankStore):
    assert await ranks.upsert(1, 50) == 50.0
    assert await ranks.upsert(1, 25.5) == 75.5
    assert await ranks.score_of(1) == 75.5


async def test_set_score_is_absolute(ranks: RankStore):
    await ranks.upsert("7", 300)
    await ranks.set_score("7", 0)
    assert await ranks.score_of("7") == 0.0


async def test_add_if_absent_never_overwrites(ranks: RankStore):
    assert await ranks.add_if_absent(3) is True
    await ranks.upsert(3, 10)
    assert await ranks.add_if_absent(3) is False
    assert await ranks.score_of(3) == 10.0
    assert await ranks.count() == 1


async def test_absent_player_has_no_rank_or_score(ranks: RankStore):
    assert await ranks.rank(42) is None
    assert await ranks.score_of(42) is None


async def test_rank_is_zero_based_descending(ranks: RankStore):
    await ranks.upsert(1, 100)
    await ranks.upsert(2, 300)
    await ranks.upsert(3, 200)
    assert await ranks.rank(2) == 0
    assert await ranks.rank(3) == 1
    assert await ranks.rank(1) == 2


async def test_top_range_matches_rank_including_ties(ranks: RankStore):
    for pid in ("10", "11", "12", "13"):
        await ranks.set_score(pid, 50)
    await ranks.set_score("9", 80)

    first = await ranks.top_range(0, 10)
    second = await ranks.top_range(0, 10)
    assert first == second
    assert first[0] == ScoreEntry(player_id="9", score=80.0)
    for index, entry in enumerate(first):
        assert await ranks.rank(entry.player_id) == index


async def test_top_range_offset_and_limit(ranks: RankStore):
    for pid, score in [(1, 5), (2, 4), (3, 3), (4, 2), (5, 1)]:
        await ranks.set_score(pid, score)
    window = await ranks.top_range(1, 3)
    assert [e.player_id for e in window] == ["2", "3", "4"]
    assert await ranks.top_range(10, 5) == []
    assert await ranks.top_range(0, 0) == []


async def test_connection_errors_become_store_unavailable(ranks: RankStore, fake_redis):
    fake_redis.fail.add("zincrby")
    with pytest.raises(StoreUnavailableError) as exc_info:
        await ranks.upsert(1, 5)
    assert exc_info.value.kind is ErrorKind.STORE_UNAVAILABLE
    assert exc_info.value.store == "rank"
    assert exc_info.value.operation == "upsert"
