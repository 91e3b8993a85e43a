"""
Supervision relationship between a supervised provider and an attending.

The supervised provider becomes bookable under a payer only through the
attending's direct contract with that payer, and always bills under the
attending.
"""

from datetime import date as date_type, datetime
from typing import Optional

from sqlalchemy import String, Boolean, Date, TIMESTAMP, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import SUPERVISION_LEVEL_SIGN_OFF_ONLY
from core.database import Base


class SupervisionRelationship(Base):
    """Attending/supervised provider pair, optionally scoped to one payer."""

    __tablename__ = "supervision_relationships"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    supervised_provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))
    """Rendering provider (resident or trainee)."""

    attending_provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))
    """Supervising provider whose contract and billing identity are used."""

    payer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("payers.id"), nullable=True)
    """Payer the supervision applies to. Null means every payer the attending is contracted with."""

    supervision_level: Mapped[str] = mapped_column(String(50), default=SUPERVISION_LEVEL_SIGN_OFF_ONLY)
    """
    One of 'none', 'sign_off_only', 'first_visit_in_person', 'co_visit_required'.
    'co_visit_required' makes the provider bookable only for joint visits.
    """

    start_date: Mapped[date_type] = mapped_column(Date)
    end_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    """Last day the supervision is valid (inclusive). Null means open-ended."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    supervised_provider = relationship("Provider", foreign_keys=[supervised_provider_id])
    attending_provider = relationship("Provider", foreign_keys=[attending_provider_id])

    __table_args__ = (
        CheckConstraint(
            "supervised_provider_id != attending_provider_id",
            name='check_no_self_supervision'
        ),
        CheckConstraint(
            "supervision_level IN ('none', 'sign_off_only', 'first_visit_in_person', 'co_visit_required')",
            name='check_valid_supervision_level'
        ),
        Index('idx_supervision_attending', 'attending_provider_id'),
        Index('idx_supervision_supervised', 'supervised_provider_id'),
    )

    def is_effective_on(self, on_date: date_type) -> bool:
        if not self.is_active or self.start_date > on_date:
            return False
        return self.end_date is None or self.end_date >= on_date

    def applies_to_payer(self, payer_id: int) -> bool:
        return self.payer_id is None or self.payer_id == payer_id

    def __repr__(self) -> str:
        return (
            f"<SupervisionRelationship(supervised={self.supervised_provider_id}, "
            f"attending={self.attending_provider_id}, level={self.supervision_level})>"
        )
