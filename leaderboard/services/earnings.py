"""Earnings ledger: apply an earning to the rank store and the prize pool.

Flow:
1. Validate amount (finite number; sign policy from settings)
2. Check the player exists in the identity store (NotFound otherwise)
3. Rank store: ZINCRBY player amount
4. Prize pool: INCRBYFLOAT amount * contribution_rate

Steps 3 and 4 are independent writes, not a transaction. Both are always
attempted; if exactly one fails the caller gets `EarningPartiallyAppliedError`
so the half-applied state is visible. Earnings must not be blindly retried:
replaying a request double-counts.
"""

from dataclasses import dataclass
import logging
import math

from leaderboard.errors import (
    EarningPartiallyAppliedError,
    InvalidInputError,
    PlayerNotFoundError,
    StoreUnavailableError,
)
from leaderboard.stores.identity import IdentityStore
from leaderboard.stores.prize_pool import PrizePool
from leaderboard.stores.rank import RankStore

logger = logging.getLogger("uvicorn.error")

CONTRIBUTION_RATE = 0.02


@dataclass
class EarningResult:
    player_id: str
    amount: float
    score: float
    contribution: float


def validate_amount(amount: object, *, allow_non_positive: bool = False) -> float:
    """Return `amount` as a float or raise InvalidInputError."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidInputError("Invalid amount: must be a number", field="amount")
    value = float(amount)
    if not math.isfinite(value):
        raise InvalidInputError("Invalid amount: must be finite", field="amount")
    if value <= 0 and not allow_non_positive:
        raise InvalidInputError("Invalid amount: must be positive", field="amount", amount=value)
    return value


def validate_player_id(player_id: object) -> str:
    if isinstance(player_id, bool) or player_id is None:
        raise InvalidInputError("Invalid playerId", field="playerId")
    if isinstance(player_id, int):
        return str(player_id)
    if isinstance(player_id, str) and player_id.strip():
        return player_id.strip()
    raise InvalidInputError("Invalid playerId", field="playerId")


class EarningsLedger:
    def __init__(
        self,
        identity: IdentityStore,
        ranks: RankStore,
        pool: PrizePool,
        *,
        contribution_rate: float = CONTRIBUTION_RATE,
        allow_non_positive: bool = False,
    ) -> None:
        self.identity = identity
        self.ranks = ranks
        self.pool = pool
        self.contribution_rate = contribution_rate
        self.allow_non_positive = allow_non_positive

    async def record(self, player_id: object, amount: object) -> EarningResult:
        """Apply one earning event.

        Raises:
            InvalidInputError: bad player id or amount (no store is touched).
            PlayerNotFoundError: unknown player (no store is mutated).
            StoreUnavailableError: identity lookup failed, or both writes failed.
            EarningPartiallyAppliedError: exactly one of the two writes failed.
        """
        pid = validate_player_id(player_id)
        value = validate_amount(amount, allow_non_positive=self.allow_non_positive)

        if await self.identity.find_by_id(pid) is None:
            raise PlayerNotFoundError(pid)

        contribution = value * self.contribution_rate
        score: float | None = None
        rank_error: StoreUnavailableError | None = None
        pool_error: StoreUnavailableError | None = None

        try:
            score = await self.ranks.upsert(pid, value)
        except StoreUnavailableError as e:
            rank_error = e

        try:
            await self.pool.add(contribution)
        except StoreUnavailableError as e:
            pool_error = e

        if rank_error and pool_error:
            raise rank_error
        if rank_error or pool_error:
            err = EarningPartiallyAppliedError(
                pid,
                rank_applied=rank_error is None,
                pool_applied=pool_error is None,
                amount=value,
            )
            logger.error(f"{err.message} (detail={err.detail})")
            raise err from (rank_error or pool_error)

        return EarningResult(player_id=pid, amount=value, score=score, contribution=contribution)
