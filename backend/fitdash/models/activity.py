"""
Activity database model.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Float, Index, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fitdash.core.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class Activity(Base):
    """Canonical activity, one row per real-world event."""

    __tablename__ = "activities"
    __table_args__ = (
        Index("ix_activities_start_time", "start_time"),
        Index("ix_activities_category", "category"),
        Index("ix_activities_workout_type", "workout_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    # NULLs never collide, so uploads without a Strava id coexist
    external_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        unique=True,
        nullable=True
    )

    # Classification
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False, default="other")
    running_sub_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    workout_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    is_indoor: Mapped[bool] = mapped_column(Boolean, default=False)

    source: Mapped[str] = mapped_column(String(16), nullable=False, default="file_upload")

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Time
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    moving_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    elapsed_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Distance & elevation (meters)
    distance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    elevation_gain: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    elevation_loss: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    elev_high: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    elev_low: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Speed (km/h) & pace (min/km)
    average_speed: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_speed: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    average_pace: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    average_hr: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_hr: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    avg_cadence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_cadence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    avg_power: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_power: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    normalized_power: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Running dynamics
    avg_vertical_oscillation: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    avg_stance_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    avg_vertical_ratio: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    avg_step_length: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    avg_temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    calories: Mapped[float] = mapped_column(Float, default=0.0)
    training_effect: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    anaerobic_effect: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    suffer_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    perceived_exertion: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # GPS & map
    has_gps: Mapped[bool] = mapped_column(Boolean, default=False)
    start_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    start_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    map_polyline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary_polyline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    gear: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonColumn, nullable=True)
    device_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # Rich sub-structures
    laps: Mapped[List[Dict[str, Any]]] = mapped_column(JsonColumn, default=list)
    splits: Mapped[List[Dict[str, Any]]] = mapped_column(JsonColumn, default=list)
    best_efforts: Mapped[List[Dict[str, Any]]] = mapped_column(JsonColumn, default=list)
    points: Mapped[List[Dict[str, Any]]] = mapped_column(JsonColumn, default=list)
    lap_count: Mapped[int] = mapped_column(default=0)
    has_points: Mapped[bool] = mapped_column(Boolean, default=False)

    workout_analysis: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonColumn, nullable=True)

    has_detailed_data: Mapped[bool] = mapped_column(Boolean, default=False)
    # Upstream refused the detail for good (deleted or private activity)
    detail_unavailable: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    def to_dict(self, include_points: bool = False) -> Dict[str, Any]:
        """Convert to dictionary for API response."""
        data = {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
            if column.name != "points"
        }
        data["id"] = str(self.id)
        data["start_time"] = self.start_time.isoformat()
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        if include_points:
            data["points"] = self.points
        return data
