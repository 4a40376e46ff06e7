"""Reconciliation service: identity store <-> rank store membership.

Two passes:
1. Identity -> rank: every registered player should have a rank entry.
   Missing entries get a zero score (ZADD NX, so concurrent earnings are
   never overwritten).
2. Rank -> identity: every rank entry should belong to a registered player.
   Orphans are reported only; they are already excluded from joined views.

Notes:
- `dry_run=True` reports without writing.
- Safe to run while traffic is live: it only ever adds zero-score entries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from leaderboard.errors import MISSING_IDENTITY, MISSING_RANK, report_anomaly
from leaderboard.stores.identity import IdentityStore
from leaderboard.stores.rank import RankStore

logger = logging.getLogger("uvicorn.error")


@dataclass
class ReconcileStats:
    scanned_players: int = 0
    scanned_ranks: int = 0
    missing_ranks: int = 0
    healed_ranks: int = 0
    orphan_ranks: int = 0
    orphan_ids: list[str] = field(default_factory=list)


async def reconcile_stores(
    *,
    identity: IdentityStore,
    ranks: RankStore,
    dry_run: bool = True,
    batch_size: int = 1000,
    orphan_sample_limit: int = 50,
) -> ReconcileStats:
    """Scan both stores and repair/report membership differences.

    Args:
        identity: Identity store.
        ranks: Rank store.
        dry_run: If True, only count; do not insert zero-score entries.
        batch_size: Ids per identity batch / rank page.
        orphan_sample_limit: Max orphan ids kept in the stats.

    Returns:
        Reconciliation statistics.
    """
    stats = ReconcileStats()

    async for ids in identity.iter_id_batches(batch_size):
        stats.scanned_players += len(ids)
        for player_id in ids:
            if await ranks.score_of(player_id) is not None:
                continue
            stats.missing_ranks += 1
            healed = False
            if not dry_run:
                healed = await ranks.add_if_absent(player_id, 0)
                if healed:
                    stats.healed_ranks += 1
            report_anomaly(player_id, store="rank", direction=MISSING_RANK, healed=healed, context="reconcile")

    offset = 0
    while True:
        page = await ranks.top_range(offset, batch_size)
        if not page:
            break
        stats.scanned_ranks += len(page)
        profiles = await identity.find_many_by_ids(e.player_id for e in page)
        for entry in page:
            if entry.player_id in profiles:
                continue
            stats.orphan_ranks += 1
            if len(stats.orphan_ids) < orphan_sample_limit:
                stats.orphan_ids.append(entry.player_id)
            report_anomaly(entry.player_id, store="identity", direction=MISSING_IDENTITY, context="reconcile")
        if len(page) < batch_size:
            break
        offset += batch_size

    logger.info(
        f"Reconcile done (dry_run={dry_run}): players={stats.scanned_players} "
        f"ranks={stats.scanned_ranks} missing={stats.missing_ranks} "
        f"healed={stats.healed_ranks} orphans={stats.orphan_ranks}"
    )
    return stats
