"""Identity store: player profiles in PostgreSQL.

Every call opens its own session from the shared `Database`, so the store is
safe to use from concurrent request tasks.
"""

from collections.abc import AsyncGenerator, Iterable
from contextlib import asynccontextmanager
import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from leaderboard.errors import PlayerConflictError, StoreUnavailableError
from leaderboard.models import Player
from leaderboard.stores.postgres import Database

logger = logging.getLogger("uvicorn.error")

STORE = "identity"

# Range of the players.id column (INTEGER)
MIN_PLAYER_ID = 1
MAX_PLAYER_ID = 2**31 - 1


class IdentityStore:
    """Durable player id -> profile mapping."""

    def __init__(self, db: Database) -> None:
        self.db = db

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self.db.session() as session:
                yield session
        except (OperationalError, InterfaceError, OSError, TimeoutError) as e:
            logger.error(f"Postgres identity store unavailable during {operation}: {e}")
            raise StoreUnavailableError(STORE, operation, cause=e) from e

    async def find_by_id(self, player_id: object) -> Player | None:
        pk = _as_pk(player_id)
        if pk is None:
            return None
        async with self._session("find_by_id") as session:
            return await session.get(Player, pk)

    async def find_many_by_ids(self, player_ids: Iterable[object]) -> dict[str, Player]:
        """Batch lookup; returns profiles keyed by the string id.

        Ids that are not valid primary keys are simply absent from the result.
        """
        pks = {pk for pk in (_as_pk(pid) for pid in player_ids) if pk is not None}
        if not pks:
            return {}
        async with self._session("find_many_by_ids") as session:
            result = await session.execute(select(Player).where(Player.id.in_(pks)))
            return {str(p.id): p for p in result.scalars().all()}

    async def find_by_name_or_country_substring(self, query: str, limit: int | None = None) -> list[Player]:
        """Case-insensitive substring match on name or country.

        LIKE wildcards in `query` are matched literally.
        """
        stmt = (
            select(Player)
            .where(
                or_(
                    Player.name.icontains(query, autoescape=True),
                    Player.country.icontains(query, autoescape=True),
                )
            )
            .order_by(Player.id.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session("search") as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def exists_exact(self, name: str, country: str, country_code: str) -> bool:
        async with self._session("exists_exact") as session:
            result = await session.execute(
                select(Player.id)
                .where(Player.name == name)
                .where(Player.country == country)
                .where(Player.country_code == country_code)
                .limit(1)
            )
            return result.scalar_one_or_none() is not None

    async def insert(self, name: str, country: str, country_code: str) -> int:
        """Insert a player and return its id.

        Raises:
            PlayerConflictError: identical (name, country, country_code) exists.
        """
        try:
            async with self._session("insert") as session:
                player = Player(name=name, country=country, country_code=country_code)
                session.add(player)
                await session.flush()
                return player.id
        except IntegrityError as e:
            # Lost a race with a concurrent identical registration.
            raise PlayerConflictError(
                "Player already exists",
                name=name,
                country=country,
                country_code=country_code,
            ) from e

    async def iter_id_batches(self, batch_size: int = 1000) -> AsyncGenerator[list[int], None]:
        """Yield all player ids in ascending batches (keyset pagination)."""
        last_id = 0
        while True:
            async with self._session("iter_ids") as session:
                result = await session.execute(
                    select(Player.id)
                    .where(Player.id > last_id)
                    .order_by(Player.id.asc())
                    .limit(batch_size)
                )
                ids = list(result.scalars().all())
            if not ids:
                return
            yield ids
            last_id = ids[-1]


def _as_pk(player_id: object) -> int | None:
    """Convert an external player id to the integer primary key, if it is one.

    Ids outside the `players.id` column range (32-bit INTEGER) cannot exist and
    are treated as absent rather than sent to the driver.
    """
    if isinstance(player_id, bool):
        return None
    if isinstance(player_id, int):
        pk = player_id
    elif isinstance(player_id, str) and player_id.strip().isdigit():
        pk = int(player_id.strip())
    else:
        return None
    return pk if MIN_PLAYER_ID <= pk <= MAX_PLAYER_ID else None
