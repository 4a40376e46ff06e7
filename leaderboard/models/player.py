"""Player model.

Canonical identity record for a ranked participant. Scores are NOT stored
here: they live in the Redis rank store under the same id.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from leaderboard.stores.postgres import Base


class Player(Base):
    """Registered player (immutable after registration)."""

    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("name", "country", "country_code", name="uq_players_identity"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(255), index=True)
    country: Mapped[str] = mapped_column(String(255))
    country_code: Mapped[str] = mapped_column(String(10))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Player {self.id} {self.name} ({self.country_code})>"
