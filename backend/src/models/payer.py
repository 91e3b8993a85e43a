"""
Payer model representing an insurance plan (or the self-pay pseudo-payer).
"""

from datetime import date as date_type, datetime
from typing import Optional, Sequence

from sqlalchemy import String, Boolean, Date, TIMESTAMP, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import PAYER_TYPE_SELF_PAY
from core.database import Base


class Payer(Base):
    """
    Insurance payer.

    Whether a payer is currently accepted is driven by its status_code and
    effective dates, see `is_accepted_on`.
    """

    __tablename__ = "payers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    name: Mapped[str] = mapped_column(String(255))

    payer_type: Mapped[str] = mapped_column(String(20))
    """One of 'commercial', 'medicaid', 'medicare', 'self_pay'."""

    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)

    status_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    """Credentialing status; acceptance depends on ACCEPTED_PAYER_STATUS_CODES."""

    effective_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    projected_effective_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)

    requires_attending: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """Payer only reimburses trainees when billed under an attending."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "payer_type IN ('commercial', 'medicaid', 'medicare', 'self_pay')",
            name='check_valid_payer_type'
        ),
    )

    @property
    def is_self_pay(self) -> bool:
        return self.payer_type == PAYER_TYPE_SELF_PAY

    def is_accepted_on(self, on_date: date_type, accepted_status_codes: Sequence[str]) -> bool:
        """
        Check whether the payer is accepted on a date.

        Self-pay is always accepted. Otherwise the status code must be in the
        accepted set and the effective date (or the projected one when no
        effective date is recorded) must not be in the future.
        """
        if self.is_self_pay:
            return True
        if self.status_code not in accepted_status_codes:
            return False
        starts = self.effective_date or self.projected_effective_date
        return starts is None or starts <= on_date

    def __repr__(self) -> str:
        return f"<Payer(id={self.id}, name='{self.name}', type={self.payer_type}, status={self.status_code})>"
