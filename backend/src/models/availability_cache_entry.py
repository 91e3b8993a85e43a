"""
Availability cache entry: precomputed slots for one provider, service instance and date.

Entries are derived data. They can be dropped and rebuilt from templates,
exceptions and appointments at any time.
"""

from datetime import date as date_type, datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import Boolean, Date, TIMESTAMP, JSON, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class AvailabilityCacheEntry(Base):
    """
    Cached slot list keyed by (provider_id, service_instance_id, date).

    `slots` holds a list of `{start, end, available, duration_minutes}` dicts
    with HH:MM strings, ordered by (start, end). A stale entry must be
    recomputed before it is served.
    """

    __tablename__ = "availability_cache_entries"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))
    service_instance_id: Mapped[int] = mapped_column(ForeignKey("service_instances.id"))
    date: Mapped[date_type] = mapped_column(Date)

    slots: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)

    is_stale: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    populated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    invalidated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint('provider_id', 'service_instance_id', 'date', name='uq_availability_cache_key'),
        Index('idx_availability_cache_provider_date', 'provider_id', 'date'),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilityCacheEntry(provider_id={self.provider_id}, service_instance_id={self.service_instance_id}, "
            f"date={self.date}, slots={len(self.slots or [])}, stale={self.is_stale})>"
        )
