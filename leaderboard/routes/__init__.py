"""API routes."""

from fastapi import APIRouter

from leaderboard.routes import admin, leaderboard, players

api_router = APIRouter()

# Player registration
api_router.include_router(players.router, prefix="/v1/players", tags=["players"])

# Earnings and leaderboard views
api_router.include_router(leaderboard.router, prefix="/v1/leaderboard", tags=["leaderboard"])

# Admin endpoints (settlement, reconciliation)
api_router.include_router(admin.router, prefix="/v1/admin", tags=["admin"])
