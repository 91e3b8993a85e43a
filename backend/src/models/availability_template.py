"""
Availability template model for a provider's recurring weekly schedule.

Each row is one working window on one day of the week (e.g. Monday 09:00-12:00).
Providers may keep several windows per day, including overlapping ones; they
are never merged and each produces its own run of slots.
"""

from datetime import date as date_type, time, datetime
from typing import Optional
from sqlalchemy import Boolean, Date, Time, TIMESTAMP, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


class AvailabilityTemplate(Base):
    """
    Recurring weekly working window for a provider.

    Times are civil times in the provider's timezone and never cross midnight.
    The optional effective/expiration dates bound the weeks the window applies to.
    """

    __tablename__ = "availability_templates"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))

    day_of_week: Mapped[int] = mapped_column()
    """Day of the week (0=Monday, 1=Tuesday, ..., 6=Sunday), matching date.weekday()."""

    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)

    is_recurring: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Non-recurring templates are kept for history but never generate slots."""

    effective_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    expiration_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    """Last date the template applies (inclusive). Null means open-ended."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    provider = relationship("Provider", back_populates="availability_templates")

    __table_args__ = (
        CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='check_valid_day_of_week'),
        CheckConstraint('end_time > start_time', name='check_template_time_order'),
        Index('idx_availability_templates_provider_day', 'provider_id', 'day_of_week'),
        Index('idx_availability_templates_provider_day_time', 'provider_id', 'day_of_week', 'start_time'),
    )

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    @property
    def duration_minutes(self) -> int:
        """Length of the window in minutes."""
        start_minutes = self.start_time.hour * 60 + self.start_time.minute
        end_minutes = self.end_time.hour * 60 + self.end_time.minute
        return end_minutes - start_minutes

    def applies_on(self, target_date: date_type) -> bool:
        """Check weekday, recurrence flag and effective window for a date."""
        if not self.is_recurring or target_date.weekday() != self.day_of_week:
            return False
        if self.effective_date is not None and target_date < self.effective_date:
            return False
        return self.expiration_date is None or target_date <= self.expiration_date

    def __repr__(self) -> str:
        return f"<AvailabilityTemplate(provider_id={self.provider_id}, day={self.day_name}, {self.start_time}-{self.end_time})>"
