"""
Bookability health report for administrators.

Surfaces configuration gaps that silently hide providers from patients:
providers nobody can book, accepted payers with nobody to book, contracts
about to lapse and bookable providers with no direct contract.
"""

import logging
from collections import defaultdict
from datetime import date as date_type, timedelta
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy.orm import Session

from core.config import ACCEPTED_PAYER_STATUS_CODES
from core.constants import CONTRACT_EXPIRY_WINDOWS_DAYS, CONTRACT_STATUS_IN_NETWORK
from models.payer import Payer
from models.provider import Provider
from models.provider_payer_contract import ProviderPayerContract
from services.bookability_service import BookabilityService, ResolutionOptions
from utils.datetime_utils import practice_now

logger = logging.getLogger(__name__)


class BookabilityHealthService:
    """Builds the admin bookability health report."""

    @staticmethod
    def get_health_report(
        db: Session,
        on_date: Optional[date_type] = None,
        accepted_payer_status_codes: Sequence[str] = tuple(ACCEPTED_PAYER_STATUS_CODES),
    ) -> Dict[str, Any]:
        """
        Summarize bookability gaps on a date (defaults to today).

        Self-pay is excluded from payer counts since it bypasses contracts.

        Returns:
            Dict with keys providers_without_payers, payers_without_providers,
            expiring_contracts (keyed by window in days) and
            providers_without_direct_contracts
        """
        on_date = on_date or practice_now().date()
        options = ResolutionOptions(on_date=on_date, accepted_payer_status_codes=list(accepted_payer_status_codes))

        providers = db.query(Provider).filter(
            Provider.is_active == True,  # noqa: E712
            Provider.is_bookable == True,  # noqa: E712
        ).order_by(Provider.id).all()

        payers = [
            payer for payer in db.query(Payer).order_by(Payer.id).all()
            if not payer.is_self_pay and payer.is_accepted_on(on_date, accepted_payer_status_codes)
        ]

        payers_by_provider: Dict[int, Set[int]] = defaultdict(set)
        payers_without_providers: List[Dict[str, Any]] = []
        for payer in payers:
            resolved = BookabilityService.resolve_bookability(db, payer.id, options)
            if not resolved:
                payers_without_providers.append({"payer_id": payer.id, "name": payer.name})
            for entry in resolved:
                payers_by_provider[entry.provider_id].add(payer.id)

        providers_without_payers = [
            {"provider_id": provider.id, "name": provider.full_name}
            for provider in providers
            if not payers_by_provider.get(provider.id)
        ]

        direct_provider_ids = {
            row.provider_id
            for row in db.query(ProviderPayerContract.provider_id).filter(
                ProviderPayerContract.status == CONTRACT_STATUS_IN_NETWORK,
                ProviderPayerContract.effective_date <= on_date,
            ).filter(
                (ProviderPayerContract.expiration_date.is_(None))
                | (ProviderPayerContract.expiration_date >= on_date)
            ).all()
        }
        providers_without_direct_contracts = [
            {"provider_id": provider.id, "name": provider.full_name}
            for provider in providers
            if provider.id not in direct_provider_ids
        ]

        report = {
            "as_of": on_date.isoformat(),
            "providers_without_payers": providers_without_payers,
            "payers_without_providers": payers_without_providers,
            "expiring_contracts": BookabilityHealthService._expiring_contracts(db, on_date),
            "providers_without_direct_contracts": providers_without_direct_contracts,
        }
        logger.info(
            f"Bookability health on {on_date}: {len(providers_without_payers)} providers without payers, "
            f"{len(payers_without_providers)} payers without providers"
        )
        return report

    @staticmethod
    def _expiring_contracts(db: Session, on_date: date_type) -> Dict[str, List[Dict[str, Any]]]:
        """In-network contracts whose last valid day falls within each window (cumulative)."""
        horizon = on_date + timedelta(days=max(CONTRACT_EXPIRY_WINDOWS_DAYS))
        contracts = db.query(ProviderPayerContract).filter(
            ProviderPayerContract.status == CONTRACT_STATUS_IN_NETWORK,
            ProviderPayerContract.expiration_date.isnot(None),
            ProviderPayerContract.expiration_date >= on_date,
            ProviderPayerContract.expiration_date <= horizon,
        ).order_by(ProviderPayerContract.expiration_date, ProviderPayerContract.id).all()

        windows: Dict[str, List[Dict[str, Any]]] = {}
        for days in CONTRACT_EXPIRY_WINDOWS_DAYS:
            cutoff = on_date + timedelta(days=days)
            windows[str(days)] = [
                {
                    "contract_id": contract.id,
                    "provider_id": contract.provider_id,
                    "payer_id": contract.payer_id,
                    "expiration_date": contract.expiration_date.isoformat(),
                }
                for contract in contracts
                if contract.expiration_date <= cutoff
            ]
        return windows
