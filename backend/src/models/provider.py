"""
Provider model representing a bookable clinician.

Providers are soft-deactivated (is_active=False) rather than deleted so that
historical appointments, contracts and supervision rows keep their references.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import String, Boolean, TIMESTAMP, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Provider(Base):
    """
    Clinician identity and booking flags.

    The flags decide whether the resolver may offer the provider at all:
    - is_active: soft-deactivation switch
    - is_bookable: admin toggle for patient-facing booking
    - accepts_new_patients: honored when the caller asks for it
    """

    __tablename__ = "providers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100))
    title: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    """Credential suffix shown to patients (e.g. MD, DO, PMHNP)."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_bookable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    accepts_new_patients: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    offers_telehealth: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    list_on_provider_page: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    languages_spoken: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    """
    Languages the provider sees patients in. Older rows may hold a single
    comma-separated string; use `languages` for a normalized list.
    """

    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    """IANA timezone for the provider's civil schedule. Null uses the practice timezone."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    availability_templates = relationship("AvailabilityTemplate", back_populates="provider", cascade="all, delete-orphan")
    availability_exceptions = relationship("AvailabilityException", back_populates="provider", cascade="all, delete-orphan")
    contracts = relationship(
        "ProviderPayerContract",
        back_populates="provider",
        foreign_keys="ProviderPayerContract.provider_id",
    )

    __table_args__ = (
        Index('idx_providers_bookable', 'is_active', 'is_bookable'),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def languages(self) -> List[str]:
        """Normalized, lower-cased language list (empty when metadata is missing)."""
        raw = self.languages_spoken
        if not raw:
            return []
        if isinstance(raw, str):
            raw = raw.split(',')
        return [str(language).strip().lower() for language in raw if str(language).strip()]

    def __repr__(self) -> str:
        return f"<Provider(id={self.id}, name='{self.full_name}', active={self.is_active}, bookable={self.is_bookable})>"
