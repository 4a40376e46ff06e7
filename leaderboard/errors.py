"""Error taxonomy for the ranking engine.

Every failure the engine reports carries an `ErrorKind` plus structured
`detail`, so routes can map it to the `{ "error": {code, message, detail} }`
envelope without parsing messages.

Consistency anomalies are not raised: they are returned as `ConsistencyAnomaly`
values and logged (see `report_anomaly`).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
import logging
from typing import Any

logger = logging.getLogger("uvicorn.error")


class ErrorKind(Enum):
    """Closed set of engine error kinds."""

    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    CONSISTENCY_ANOMALY = "CONSISTENCY_ANOMALY"


class LeaderboardError(Exception):
    """Base class for engine errors."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT
    code: str | None = None

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail: dict[str, Any] = detail

    @property
    def error_code(self) -> str:
        return self.code or self.kind.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.error_code,
            "message": self.message,
            "detail": self.detail or None,
        }


class InvalidInputError(LeaderboardError):
    kind = ErrorKind.INVALID_INPUT


class PlayerNotFoundError(LeaderboardError):
    kind = ErrorKind.NOT_FOUND
    code = "PLAYER_NOT_FOUND"

    def __init__(self, player_id: object) -> None:
        super().__init__(f"Player {player_id} not found", player_id=str(player_id))


class PlayerConflictError(LeaderboardError):
    kind = ErrorKind.CONFLICT
    code = "PLAYER_EXISTS"


class StoreUnavailableError(LeaderboardError):
    """Transient connectivity failure talking to one of the stores.

    Reads may be retried by the caller; earnings writes may not (replay double-counts).
    """

    kind = ErrorKind.STORE_UNAVAILABLE

    def __init__(self, store: str, operation: str, cause: BaseException | None = None) -> None:
        super().__init__(
            f"{store} store unavailable during {operation}",
            store=store,
            operation=operation,
        )
        self.store = store
        self.operation = operation
        self.__cause__ = cause


class EarningPartiallyAppliedError(LeaderboardError):
    """One leg of an earning (rank score / prize pool) applied, the other did not."""

    kind = ErrorKind.STORE_UNAVAILABLE
    code = "EARNING_PARTIALLY_APPLIED"

    def __init__(self, player_id: str, *, rank_applied: bool, pool_applied: bool, amount: float) -> None:
        failed = "prize pool" if rank_applied else "rank score"
        super().__init__(
            f"Earning for player {player_id} partially applied: {failed} update failed",
            player_id=player_id,
            amount=amount,
            rank_applied=rank_applied,
            pool_applied=pool_applied,
        )
        self.rank_applied = rank_applied
        self.pool_applied = pool_applied


class SettlementInProgressError(LeaderboardError):
    kind = ErrorKind.CONFLICT
    code = "SETTLEMENT_IN_PROGRESS"


@dataclass(frozen=True)
class ConsistencyAnomaly:
    """A player present in one store and missing/corrupt in the other.

    direction:
      - "missing_rank": identity record exists, no rank store entry
      - "missing_identity": rank store entry exists, no identity record
    """

    player_id: str
    store: str
    direction: str
    healed: bool = False

    kind = ErrorKind.CONSISTENCY_ANOMALY

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, **asdict(self)}


MISSING_RANK = "missing_rank"
MISSING_IDENTITY = "missing_identity"


def report_anomaly(
    player_id: object,
    *,
    store: str,
    direction: str,
    healed: bool = False,
    context: str = "",
) -> ConsistencyAnomaly:
    """Log an inconsistency between the two stores and return it as a value."""
    anomaly = ConsistencyAnomaly(
        player_id=str(player_id), store=store, direction=direction, healed=healed
    )
    if direction == MISSING_RANK:
        what = f"exists in identity store but not in {store} store"
    else:
        what = f"exists in rank store but not in {store} store"
    logger.error(
        f"Inconsistency detected{f' ({context})' if context else ''}: "
        f"player {anomaly.player_id} {what} (healed={healed})",
        extra={"anomaly": anomaly.as_dict()},
    )
    return anomaly
