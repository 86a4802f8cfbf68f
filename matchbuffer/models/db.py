"""
SQLAlchemy ORM models for persistent storage.

Models mirror the dataclass models but add database persistence.
Votes themselves are recorded elsewhere; these tables only carry the
aggregates the selection layer reads.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ItemDB(Base):
    """
    A votable item and its running vote aggregates.
    """

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    group: Mapped[str] = mapped_column("group_name", String(255), index=True)
    media_ref: Mapped[str] = mapped_column(Text)
    name: Mapped[str] = mapped_column(String(255), default="")

    # Vote aggregates
    rating: Mapped[float] = mapped_column(Float, default=1500.0)
    pair_votes: Mapped[int] = mapped_column(Integer, default=0, index=True)
    wins: Mapped[int] = mapped_column(Integer, default=0)
    calibration_votes: Mapped[int] = mapped_column(Integer, default=0)

    # Trait metadata stored as JSON list of [key, value] pairs
    traits: Mapped[list[Any]] = mapped_column(JSON, default=list)
    promoted: Mapped[bool] = mapped_column(Boolean, default=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<ItemDB(id={self.id}, group={self.group})>"


class GroupStatusDB(Base):
    """
    Selection state of one group of items.

    Counts are refreshed from the item table; active flag and priority are
    operator controlled.
    """

    __tablename__ = "group_status"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    priority: Mapped[float] = mapped_column(Float, default=1.0)
    item_count: Mapped[int] = mapped_column(Integer, default=0)
    avg_votes_per_item: Mapped[float] = mapped_column(Float, default=0.0)
    last_selected: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<GroupStatusDB(name={self.name}, active={self.active})>"
