"""Schemas for admin endpoints (/v1/admin/*)."""

from datetime import datetime

from pydantic import BaseModel, Field


class PrizePoolResponse(BaseModel):
    balance: float


class RewardOut(BaseModel):
    ranking: int
    id: str
    reward: float


class SettlementResponse(BaseModel):
    run_id: str = Field(alias="runId")
    status: str
    started_at: datetime = Field(alias="startedAt")
    pool: float
    distributed: float
    residual: float
    rewards: list[RewardOut]

    model_config = {"populate_by_name": True}


class ReconcileRequest(BaseModel):
    dry_run: bool = Field(alias="dryRun", default=True)
    batch_size: int = Field(alias="batchSize", default=1000, ge=1, le=10000)

    model_config = {"populate_by_name": True}


class ReconcileResponse(BaseModel):
    success: bool
    dry_run: bool = Field(alias="dryRun")
    stats: dict

    model_config = {"populate_by_name": True}
