"""
Service instance model: a bookable appointment type offered under a payer.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, Integer, TIMESTAMP, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class ServiceInstance(Base):
    """
    Appointment type with a fixed duration.

    A null payer_id offers the service under every payer. Cache entries are
    keyed by service instance because the duration drives slot generation.
    """

    __tablename__ = "service_instances"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    name: Mapped[str] = mapped_column(String(255))
    duration_minutes: Mapped[int] = mapped_column(Integer)
    payer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("payers.id"), nullable=True)
    is_telehealth: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint('duration_minutes > 0', name='check_positive_duration'),
    )

    def __repr__(self) -> str:
        return f"<ServiceInstance(id={self.id}, name='{self.name}', duration={self.duration_minutes}, payer_id={self.payer_id})>"
