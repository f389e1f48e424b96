"""
Race Goal database model.
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from fitdash.core.database import Base


class Goal(Base):
    """User-declared target race."""

    __tablename__ = "goals"
    __table_args__ = (
        Index("ix_goals_target_date", "target_date"),
        Index("ix_goals_tier", "tier"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tier: Mapped[str] = mapped_column(String(16), default="intermediate")  # primary, intermediate
    race_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    distance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # meters
    target_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    target_time: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)  # "3:30:00"
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    actual_time: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "id": str(self.id),
            "name": self.name,
            "tier": self.tier,
            "raceType": self.race_type,
            "distance": self.distance,
            "targetDate": self.target_date.isoformat(),
            "targetTime": self.target_time,
            "notes": self.notes,
            "completed": self.completed,
            "actualTime": self.actual_time,
        }
