"""
Appointment model representing a committed booking.

Times are stored as the rendering provider's civil date and start/end time,
the same way the provider's templates are expressed.
"""

from datetime import date as date_type, time, datetime
from typing import Optional
from sqlalchemy import String, Integer, Date, Time, TIMESTAMP, ForeignKey, Index, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import APPOINTMENT_STATUS_CANCELLED, APPOINTMENT_STATUS_SCHEDULED, RESOLUTION_CO_VISIT
from core.database import Base


NOT_CANCELLED = text(f"status <> '{APPOINTMENT_STATUS_CANCELLED}'")


class Appointment(Base):
    """
    Booked appointment between a patient and a rendering provider.

    No two non-cancelled appointments of the same provider may overlap. The
    commit path checks this under a provider row lock; the partial unique
    index below (and a PostgreSQL exclusion constraint created by migration)
    back it up at the storage level.
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))
    """Rendering provider."""

    billing_provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))
    """Provider the claim is billed under (the attending for supervised visits)."""

    attending_provider_id: Mapped[Optional[int]] = mapped_column(ForeignKey("providers.id"), nullable=True)
    """Supervising provider for supervised and co-visit bookings."""

    payer_id: Mapped[int] = mapped_column(ForeignKey("payers.id"))
    service_instance_id: Mapped[Optional[int]] = mapped_column(ForeignKey("service_instances.id"), nullable=True)

    patient_ref: Mapped[str] = mapped_column(String(255))
    """Opaque patient identifier owned by the upstream patient system."""

    appointment_date: Mapped[date_type] = mapped_column(Date)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    duration_minutes: Mapped[int] = mapped_column(Integer)

    status: Mapped[str] = mapped_column(String(20), default=APPOINTMENT_STATUS_SCHEDULED)
    """'scheduled', 'completed', 'cancelled' or 'no_show'."""

    resolution_kind: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    """How the provider was bookable at commit time: 'direct', 'supervised' or 'co_visit'."""

    idempotency_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Client-supplied key; a repeated commit with the same key returns this appointment."""

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    emr_synced_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    provider = relationship("Provider", foreign_keys=[provider_id])
    payer = relationship("Payer")

    __table_args__ = (
        CheckConstraint('end_time > start_time', name='check_appointment_time_order'),
        CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled', 'no_show')",
            name='check_valid_appointment_status'
        ),
        Index(
            'uq_appointment_provider_slot',
            'provider_id', 'appointment_date', 'start_time',
            unique=True,
            postgresql_where=NOT_CANCELLED,
            sqlite_where=NOT_CANCELLED,
        ),
        Index('idx_appointments_provider_date', 'provider_id', 'appointment_date'),
        Index('uq_appointment_idempotency_key', 'idempotency_key', unique=True),
    )

    @property
    def requires_co_visit(self) -> bool:
        return self.resolution_kind == RESOLUTION_CO_VISIT

    @property
    def is_cancelled(self) -> bool:
        return self.status == APPOINTMENT_STATUS_CANCELLED

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, provider_id={self.provider_id}, "
            f"{self.appointment_date} {self.start_time}-{self.end_time}, status={self.status})>"
        )
