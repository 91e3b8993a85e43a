"""
Availability exception model for date-specific overrides of the weekly schedule.

A `blackout` removes the whole day. A `replacement` swaps the day's templates
for a single window. At most one exception exists per provider and date.
"""

from datetime import date as date_type, time, datetime
from typing import Optional
from sqlalchemy import String, Date, Time, TIMESTAMP, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import EXCEPTION_TYPE_BLACKOUT, EXCEPTION_TYPE_REPLACEMENT
from core.database import Base


class AvailabilityException(Base):
    """
    Date override taking precedence over the provider's templates.

    Blackouts take precedence over everything: no slots are generated for the
    date regardless of templates.
    """

    __tablename__ = "availability_exceptions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))

    exception_date: Mapped[date_type] = mapped_column(Date)

    exception_type: Mapped[str] = mapped_column(String(20), default=EXCEPTION_TYPE_BLACKOUT)
    """'blackout' or 'replacement'."""

    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    """Replacement window. Required for 'replacement', ignored for 'blackout'."""

    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    provider = relationship("Provider", back_populates="availability_exceptions")

    __table_args__ = (
        UniqueConstraint('provider_id', 'exception_date', name='uq_availability_exception_provider_date'),
        CheckConstraint(
            "exception_type IN ('blackout', 'replacement')",
            name='check_valid_exception_type'
        ),
    )

    @property
    def is_blackout(self) -> bool:
        return self.exception_type == EXCEPTION_TYPE_BLACKOUT

    @property
    def is_replacement(self) -> bool:
        return self.exception_type == EXCEPTION_TYPE_REPLACEMENT

    def __repr__(self) -> str:
        return f"<AvailabilityException(id={self.id}, provider_id={self.provider_id}, date={self.exception_date}, type={self.exception_type})>"
