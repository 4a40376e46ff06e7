"""HTTP-level tests: registration, earnings, leaderboard views, admin."""

import pytest
from httpx import AsyncClient

from leaderboard.services.settlement import LOCK_KEY
from leaderboard.stores.redis import PREFIX_LOCK


async def _register(client: AsyncClient, name: str, country: str = "Britain", code: str = "GB") -> str:
    response = await client.post("/v1/players", json={"name": name, "country": country, "countryCode": code})
    assert response.status_code == 201, response.text
    return str(response.json()["playerId"])


async def _earn(client: AsyncClient, player_id: str, amount: float):
    return await client.post("/v1/leaderboard/earn", json={"playerId": player_id, "amount": amount})


# ============================================================
# Players
# ============================================================


async def test_register_player(client: AsyncClient, services):
    response = await client.post(
        "/v1/players", json={"name": " Ada ", "country": "Britain", "countryCode": "GB"}
    )
    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Player created successfully"
    player_id = str(data["playerId"])

    stored = await services.identity.find_by_id(player_id)
    assert stored.name == "Ada"
    assert await services.ranks.score_of(player_id) == 0.0


async def test_register_duplicate_is_conflict(client: AsyncClient):
    await _register(client, "Ada")
    response = await client.post("/v1/players", json={"name": "Ada", "country": "Britain", "countryCode": "GB"})
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "PLAYER_EXISTS"


async def test_register_blank_field(client: AsyncClient):
    response = await client.post("/v1/players", json={"name": "   ", "country": "Britain", "countryCode": "GB"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INVALID_INPUT"
    assert error["detail"]["field"] == "name"


async def test_register_survives_rank_store_outage(client: AsyncClient, services, fake_redis):
    fake_redis.fail.add("zadd")
    player_id = await _register(client, "Ada")
    fake_redis.fail.clear()

    assert await services.identity.find_by_id(player_id) is not None
    assert await services.ranks.score_of(player_id) is None


# ============================================================
# Earnings
# ============================================================


async def test_earn_updates_score_and_pool(client: AsyncClient, services):
    player_id = await _register(client, "Ada")

    response = await _earn(client, player_id, 100)

    assert response.status_code == 200
    assert response.json() == {
        "message": "Earnings updated successfully",
        "playerId": player_id,
        "score": 100.0,
        "contribution": 2.0,
    }
    assert await services.pool.balance() == pytest.approx(2.0)

    response = await _earn(client, player_id, 50.5)
    assert response.json()["score"] == pytest.approx(150.5)


async def test_earn_accepts_integer_player_id(client: AsyncClient):
    player_id = await _register(client, "Ada")
    response = await client.post("/v1/leaderboard/earn", json={"playerId": int(player_id), "amount": 10})
    assert response.status_code == 200
    assert response.json()["playerId"] == player_id


@pytest.mark.parametrize("amount", ["100", None, True, 0, -5])
async def test_earn_rejects_bad_amount(client: AsyncClient, services, amount):
    player_id = await _register(client, "Ada")

    response = await _earn(client, player_id, amount)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_INPUT"
    assert await services.ranks.score_of(player_id) == 0.0
    assert await services.pool.balance() == 0.0


async def test_earn_unknown_player(client: AsyncClient, services):
    response = await _earn(client, "424242", 10)
    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "PLAYER_NOT_FOUND"
    assert error["detail"] == {"player_id": "424242"}
    assert await services.ranks.count() == 0
    assert await services.pool.balance() == 0.0


@pytest.mark.parametrize("player_id", ["99999999999999999999", 2**40])
async def test_earn_out_of_range_player_id_is_not_found(client: AsyncClient, services, player_id):
    response = await client.post("/v1/leaderboard/earn", json={"playerId": player_id, "amount": 5})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "PLAYER_NOT_FOUND"
    assert await services.pool.balance() == 0.0


async def test_earn_rank_store_down(client: AsyncClient, fake_redis):
    player_id = await _register(client, "Ada")
    fake_redis.fail.update({"zincrby", "incrbyfloat"})

    response = await _earn(client, player_id, 10)

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "STORE_UNAVAILABLE"


async def test_earn_partially_applied(client: AsyncClient, services, fake_redis):
    player_id = await _register(client, "Ada")
    fake_redis.fail.add("incrbyfloat")

    response = await _earn(client, player_id, 10)

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "EARNING_PARTIALLY_APPLIED"
    assert error["detail"]["rank_applied"] is True
    assert error["detail"]["pool_applied"] is False
    fake_redis.fail.clear()
    assert await services.ranks.score_of(player_id) == 10.0


# ============================================================
# Leaderboard views
# ============================================================


async def test_top_players(client: AsyncClient):
    ada = await _register(client, "Ada")
    bob = await _register(client, "Bob", "Germany", "DE")
    await _earn(client, ada, 10)
    await _earn(client, bob, 30)

    response = await client.get("/v1/leaderboard/top", params={"limit": 1})

    assert response.status_code == 200
    assert response.json()["totalPlayers"] == 2
    assert response.json()["players"] == [
        {"rank": 1, "id": bob, "name": "Bob", "country": "Germany", "countryCode": "DE", "score": 30.0}
    ]


async def test_top_ranking_data_without_query(client: AsyncClient):
    ada = await _register(client, "Ada")
    await _earn(client, ada, 10)

    data = (await client.get("/v1/leaderboard/top-ranking-data")).json()

    assert [row["id"] for row in data["topRankingPlayers"]] == [ada]
    assert data["searchResults"] is None


async def test_top_ranking_data_with_query(client: AsyncClient):
    ids = []
    for i, amount in enumerate([60, 50, 40, 30, 20, 10]):
        player_id = await _register(client, f"Player {i}", "Norway", "NO")
        await _earn(client, player_id, amount)
        ids.append(player_id)
    target = await _register(client, "Zelda", "Italy", "IT")
    await _earn(client, target, 35)
    # Ranking: P0 P1 P2 Zelda P3 P4 P5

    data = (await client.get("/v1/leaderboard/top-ranking-data", params={"query": "ZEL"})).json()

    (hit,) = data["searchResults"]
    assert hit["id"] == target
    assert hit["rank"] == 4
    assert hit["score"] == 35.0
    # Every ranked player is in the top-N, so the neighborhood holds nobody new.
    assert hit["neighborhood"] == {"betterRanked": [], "worseRanked": []}
    assert [row["id"] for row in data["topRankingPlayers"]][3] == target


async def test_top_ranking_data_no_match(client: AsyncClient):
    await _register(client, "Ada")
    data = (await client.get("/v1/leaderboard/top-ranking-data", params={"query": "nobody"})).json()
    assert data["searchResults"] is None


async def test_views_report_rank_store_outage(client: AsyncClient, fake_redis):
    fake_redis.fail.add("zrevrange")

    response = await client.get("/v1/leaderboard/top-ranking-data")

    assert response.status_code == 503
    error = response.json()["error"]
    assert error["code"] == "STORE_UNAVAILABLE"
    assert error["detail"]["store"] == "rank"


# ============================================================
# Admin
# ============================================================


async def test_prize_pool_balance(client: AsyncClient):
    ada = await _register(client, "Ada")
    await _earn(client, ada, 250)

    response = await client.get("/v1/admin/prize-pool")

    assert response.status_code == 200
    assert response.json()["balance"] == pytest.approx(5.0)


async def test_manual_settlement(client: AsyncClient, services):
    ada = await _register(client, "Ada")
    bob = await _register(client, "Bob")
    await _earn(client, ada, 2000)
    await _earn(client, bob, 3000)
    # pool = 100

    response = await client.post("/v1/admin/settlement/run")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "completed"
    assert data["pool"] == pytest.approx(100.0)
    assert data["rewards"] == [
        {"ranking": 1, "id": bob, "reward": pytest.approx(20.0)},
        {"ranking": 2, "id": ada, "reward": pytest.approx(15.0)},
    ]
    assert data["distributed"] == pytest.approx(35.0)
    assert "runId" in data and "startedAt" in data
    assert await services.pool.balance() == 0.0
    assert await services.ranks.score_of(bob) == pytest.approx(3020.0)


async def test_manual_settlement_conflict(client: AsyncClient, fake_redis):
    fake_redis.strings[f"{PREFIX_LOCK}{LOCK_KEY}"] = "someone-else"

    response = await client.post("/v1/admin/settlement/run")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "SETTLEMENT_IN_PROGRESS"


async def test_reconcile_endpoint(client: AsyncClient, services, fake_redis):
    ada = await _register(client, "Ada")
    fake_redis.zsets.clear()

    dry = (await client.post("/v1/admin/reconcile", json={})).json()
    assert dry["dryRun"] is True
    assert dry["stats"]["missing_ranks"] == 1
    assert await services.ranks.score_of(ada) is None

    healed = (await client.post("/v1/admin/reconcile", json={"dryRun": False})).json()
    assert healed["success"] is True
    assert healed["stats"]["healed_ranks"] == 1
    assert await services.ranks.score_of(ada) == 0.0
