"""Shared fixtures.

Identity store tests run real SQLAlchemy code on in-memory SQLite (aiosqlite).
Rank store / prize pool tests run the real adapters on `FakeRedis`, an
in-memory stand-in for the subset of the `redis.asyncio.Redis` API they use.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.pool import StaticPool

from leaderboard.container import LeaderboardServices
from leaderboard.main import create_app
from leaderboard.settings import Settings
from leaderboard.stores.postgres import Database


class FakeRedis:
    """Sorted sets + strings, decode_responses=True semantics.

    Equal scores are ordered by member, reversed for REV reads, as in Redis.
    Put a method name in `fail` to make it raise a connection error.
    """

    def __init__(self) -> None:
        self.zsets: dict[str, dict[str, float]] = {}
        self.strings: dict[str, str] = {}
        self.fail: set[str] = set()
        self.calls: list[str] = []

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail:
            raise RedisConnectionError(f"fake redis unavailable ({op})")

    def _desc(self, key: str) -> list[tuple[str, float]]:
        items = self.zsets.get(key, {})
        return sorted(items.items(), key=lambda kv: (kv[1], kv[0]), reverse=True)

    async def zincrby(self, key: str, amount: float, member: str) -> float:
        self._check("zincrby")
        zset = self.zsets.setdefault(key, {})
        zset[member] = zset.get(member, 0.0) + float(amount)
        return zset[member]

    async def zadd(self, key: str, mapping: dict[str, float], nx: bool = False) -> int:
        self._check("zadd")
        zset = self.zsets.setdefault(key, {})
        added = 0
        for member, score in mapping.items():
            if member in zset:
                if nx:
                    continue
            else:
                added += 1
            zset[member] = float(score)
        return added

    async def zrevrank(self, key: str, member: str) -> int | None:
        self._check("zrevrank")
        for index, (m, _) in enumerate(self._desc(key)):
            if m == member:
                return index
        return None

    async def zscore(self, key: str, member: str) -> float | None:
        self._check("zscore")
        return self.zsets.get(key, {}).get(member)

    async def zrevrange(self, key: str, start: int, end: int, withscores: bool = False) -> list:
        self._check("zrevrange")
        ordered = self._desc(key)
        stop = len(ordered) if end == -1 else end + 1
        rows = ordered[start:stop]
        return rows if withscores else [m for m, _ in rows]

    async def zcard(self, key: str) -> int:
        self._check("zcard")
        return len(self.zsets.get(key, {}))

    async def incrbyfloat(self, key: str, amount: float) -> float:
        self._check("incrbyfloat")
        value = float(self.strings.get(key, "0")) + float(amount)
        self.strings[key] = repr(value)
        return value

    async def get(self, key: str) -> str | None:
        self._check("get")
        return self.strings.get(key)

    async def set(self, key: str, value: object, nx: bool = False, ex: int | None = None) -> bool | None:
        self._check("set")
        if nx and key in self.strings:
            return None
        self.strings[key] = str(value)
        return True

    async def getset(self, key: str, value: object) -> str | None:
        self._check("getset")
        previous = self.strings.get(key)
        self.strings[key] = str(value)
        return previous

    async def delete(self, *keys: str) -> int:
        self._check("delete")
        removed = 0
        for key in keys:
            removed += int(self.zsets.pop(key, None) is not None)
            removed += int(self.strings.pop(key, None) is not None)
        return removed

    async def ping(self) -> bool:
        self._check("ping")
        return True

    async def aclose(self) -> None:
        pass


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        redis_url="redis://localhost:6379/15",
    )


@pytest.fixture
async def db():
    database = Database("sqlite+aiosqlite://", poolclass=StaticPool)
    await database.create_tables()
    yield database
    await database.drop_tables()
    await database.close()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def services(settings: Settings, db: Database, fake_redis: FakeRedis) -> LeaderboardServices:
    return LeaderboardServices.build(settings, db, fake_redis)


@pytest.fixture
async def client(settings: Settings, services: LeaderboardServices):
    """Create test client bound to in-memory stores."""
    app = create_app(settings, services=services)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
