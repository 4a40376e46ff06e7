"""SQLAlchemy ORM models.

Models represent database tables:
- players: Canonical player identity (name, country, country code)
"""

from leaderboard.models.player import Player

__all__ = ["Player"]
