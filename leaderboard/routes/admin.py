"""Admin endpoints for settlement and store maintenance.

These endpoints are intended for operators.
In production, consider adding authentication (API key or admin token).
"""

import logging

from fastapi import APIRouter, Depends

from leaderboard.container import LeaderboardServices, get_services
from leaderboard.schemas.admin import (
    PrizePoolResponse,
    ReconcileRequest,
    ReconcileResponse,
    RewardOut,
    SettlementResponse,
)
from leaderboard.schemas.common import error_responses
from leaderboard.services.reconciliation import reconcile_stores

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


@router.get("/prize-pool", response_model=PrizePoolResponse, responses=error_responses(503))
async def get_prize_pool(services: LeaderboardServices = Depends(get_services)) -> PrizePoolResponse:
    return PrizePoolResponse(balance=await services.pool.balance())


@router.post("/settlement/run", response_model=SettlementResponse, responses=error_responses(409, 503))
async def run_settlement(services: LeaderboardServices = Depends(get_services)) -> SettlementResponse:
    """Run a settlement now (outside the weekly schedule).

    Uses the same lock/lease as the scheduler; 409 if a run is in progress.
    """
    logger.info("Manual settlement requested")
    report = await services.settlement.run()
    return SettlementResponse(
        run_id=report.run_id,
        status=report.status,
        started_at=report.started_at,
        pool=report.pool,
        distributed=report.distributed,
        residual=report.residual,
        rewards=[RewardOut(ranking=r.rank, id=r.player_id, reward=r.amount) for r in report.rewards],
    )


@router.post("/reconcile", response_model=ReconcileResponse, responses=error_responses(400, 503))
async def reconcile(
    request: ReconcileRequest,
    services: LeaderboardServices = Depends(get_services),
) -> ReconcileResponse:
    """Compare identity and rank store membership; heal missing ranks unless dryRun."""
    stats = await reconcile_stores(
        identity=services.identity,
        ranks=services.ranks,
        dry_run=request.dry_run,
        batch_size=request.batch_size,
    )
    return ReconcileResponse(
        success=True,
        dry_run=request.dry_run,
        stats={
            "scanned_players": stats.scanned_players,
            "scanned_ranks": stats.scanned_ranks,
            "missing_ranks": stats.missing_ranks,
            "healed_ranks": stats.healed_ranks,
            "orphan_ranks": stats.orphan_ranks,
            "orphan_ids": stats.orphan_ids,
        },
    )
