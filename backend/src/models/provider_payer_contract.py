"""
Direct provider-payer network contract.

One row per contract period. Only `in_network` rows whose date window covers
the booking date make a provider directly bookable under the payer.
"""

from datetime import date as date_type, datetime
from typing import Optional

from sqlalchemy import String, Date, TIMESTAMP, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import CONTRACT_STATUS_IN_NETWORK
from core.database import Base


class ProviderPayerContract(Base):
    """
    Join between Provider and Payer with status and validity window.

    At most one active contract per (provider, payer) is expected at any date.
    Overlapping windows are tolerated by the resolver, which keeps the most
    recently effective row.
    """

    __tablename__ = "provider_payer_contracts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))
    payer_id: Mapped[int] = mapped_column(ForeignKey("payers.id"))

    status: Mapped[str] = mapped_column(String(50), default=CONTRACT_STATUS_IN_NETWORK)
    """'in_network' makes the contract count; any other value is ignored."""

    effective_date: Mapped[date_type] = mapped_column(Date)

    expiration_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    """Last day the contract is valid (inclusive). Null means open-ended."""

    billing_provider_id: Mapped[Optional[int]] = mapped_column(ForeignKey("providers.id"), nullable=True)
    """Provider who bills the payer. Null means the contracted provider bills."""

    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    provider = relationship("Provider", back_populates="contracts", foreign_keys=[provider_id])
    payer = relationship("Payer")

    __table_args__ = (
        Index('idx_provider_payer_contracts_payer_status', 'payer_id', 'status'),
        Index('idx_provider_payer_contracts_provider_payer', 'provider_id', 'payer_id'),
    )

    @property
    def effective_billing_provider_id(self) -> int:
        return self.billing_provider_id or self.provider_id

    def is_effective_on(self, on_date: date_type) -> bool:
        """In network, already effective and not yet expired on the date."""
        if self.status != CONTRACT_STATUS_IN_NETWORK:
            return False
        if self.effective_date > on_date:
            return False
        return self.expiration_date is None or self.expiration_date >= on_date

    def __repr__(self) -> str:
        return (
            f"<ProviderPayerContract(provider_id={self.provider_id}, payer_id={self.payer_id}, "
            f"status={self.status}, {self.effective_date}..{self.expiration_date})>"
        )
