"""
Bookability resolution service.

Decides which providers may be booked under a payer on a date, and which
billing/rendering pair each booking must use. Resolution runs over the raw
contract and supervision rows in one place so every caller (search, merge,
commit, admin report) sees the same answer.
"""

import logging
import warnings
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date as date_type
from typing import Dict, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.config import ACCEPTED_PAYER_STATUS_CODES
from core.constants import (
    CONTRACT_STATUS_IN_NETWORK,
    RESOLUTION_CO_VISIT,
    RESOLUTION_DIRECT,
    RESOLUTION_PRIORITY,
    RESOLUTION_SUPERVISED,
    SUPERVISION_LEVEL_CO_VISIT_REQUIRED,
)
from core.exceptions import DataIntegrityWarning, NotFoundError
from models.payer import Payer
from models.provider import Provider
from models.provider_payer_contract import ProviderPayerContract
from models.supervision_relationship import SupervisionRelationship
from shared_types.availability import BookableProvider
from utils.retry import retry_on_store_unavailable

logger = logging.getLogger(__name__)


@dataclass
class ResolutionOptions:
    """
    Per-call resolution toggles.

    Always passed explicitly so two callers with different needs (e.g. the
    new-patient widget and the scheduling back office) never share state.
    """
    on_date: date_type
    require_accepts_new_patients: bool = False
    accepted_payer_status_codes: Sequence[str] = field(
        default_factory=lambda: list(ACCEPTED_PAYER_STATUS_CODES)
    )


class BookabilityService:
    """Service for resolving payer to bookable providers."""

    @staticmethod
    @retry_on_store_unavailable()
    def resolve_bookability(
        db: Session,
        payer_id: int,
        options: ResolutionOptions,
    ) -> List[BookableProvider]:
        """
        Resolve every provider bookable under a payer on options.on_date.

        Direct contracts come first. Supervised providers inherit bookability
        through an attending's direct contract and bill under the attending.
        A provider qualifying several ways keeps only its best resolution
        (direct, then supervised, then co-visit).

        Args:
            db: Database session
            payer_id: Payer to resolve for
            options: Resolution date and filters

        Returns:
            Bookable providers ordered by provider_id (possibly empty)

        Raises:
            NotFoundError: If the payer does not exist
            StoreUnavailableError: If the store stays unavailable after retries
        """
        payer = db.get(Payer, payer_id)
        if payer is None:
            raise NotFoundError("Payer", payer_id)

        on_date = options.on_date
        if not payer.is_accepted_on(on_date, options.accepted_payer_status_codes):
            logger.info(f"Payer {payer_id} is not accepted on {on_date} (status={payer.status_code})")
            return []

        if payer.is_self_pay:
            return BookabilityService._resolve_self_pay(db)

        direct = BookabilityService._resolve_direct(db, payer_id, on_date)
        attendings = BookabilityService._load_providers(db, list(direct.keys()))
        active_direct = {
            provider_id: entry
            for provider_id, entry in direct.items()
            if provider_id in attendings and attendings[provider_id].is_active
        }
        supervised = BookabilityService._resolve_supervised(db, payer_id, on_date, active_direct)

        # Direct wins: supervised rows only fill providers with no direct contract
        combined: Dict[int, BookableProvider] = dict(supervised)
        combined.update(direct)

        providers = BookabilityService._load_providers(db, list(combined.keys()))
        result: List[BookableProvider] = []
        for provider_id in sorted(combined):
            provider = providers.get(provider_id)
            if provider is None or not provider.is_active or not provider.is_bookable:
                continue
            if options.require_accepts_new_patients and not provider.accepts_new_patients:
                continue
            result.append(combined[provider_id])

        logger.debug(f"Resolved {len(result)} bookable providers for payer {payer_id} on {on_date}")
        return result

    @staticmethod
    def find_bookable_provider(
        db: Session,
        provider_id: int,
        payer_id: int,
        options: ResolutionOptions,
    ) -> Optional[BookableProvider]:
        """Resolution entry for a single provider, or None if not bookable."""
        for entry in BookabilityService.resolve_bookability(db, payer_id, options):
            if entry.provider_id == provider_id:
                return entry
        return None

    @staticmethod
    def _resolve_self_pay(db: Session) -> List[BookableProvider]:
        """Self-pay bypasses contracts: every open, new-patient-accepting provider books directly."""
        providers = db.query(Provider).filter(
            Provider.is_active == True,  # noqa: E712
            Provider.is_bookable == True,  # noqa: E712
            Provider.accepts_new_patients == True,  # noqa: E712
        ).order_by(Provider.id).all()

        return [
            BookableProvider(
                provider_id=provider.id,
                resolution_kind=RESOLUTION_DIRECT,
                billing_provider_id=provider.id,
                rendering_provider_id=provider.id,
            )
            for provider in providers
        ]

    @staticmethod
    def _resolve_direct(db: Session, payer_id: int, on_date: date_type) -> Dict[int, BookableProvider]:
        """Direct in-network contracts effective on the date, one per provider."""
        contracts = db.query(ProviderPayerContract).filter(
            ProviderPayerContract.payer_id == payer_id,
            ProviderPayerContract.status == CONTRACT_STATUS_IN_NETWORK,
            ProviderPayerContract.effective_date <= on_date,
            or_(
                ProviderPayerContract.expiration_date.is_(None),
                ProviderPayerContract.expiration_date >= on_date,
            ),
        ).all()

        by_provider: Dict[int, List[ProviderPayerContract]] = defaultdict(list)
        for contract in contracts:
            by_provider[contract.provider_id].append(contract)

        resolved: Dict[int, BookableProvider] = {}
        for provider_id, candidates in by_provider.items():
            # Most recent effective date wins, then the newest row
            candidates.sort(key=lambda c: (c.effective_date, c.id), reverse=True)
            chosen = candidates[0]
            if len(candidates) > 1:
                message = (
                    f"Provider {provider_id} has {len(candidates)} overlapping contracts with payer "
                    f"{payer_id} on {on_date}; using contract {chosen.id}"
                )
                logger.warning(message)
                warnings.warn(message, DataIntegrityWarning, stacklevel=3)

            resolved[provider_id] = BookableProvider(
                provider_id=provider_id,
                resolution_kind=RESOLUTION_DIRECT,
                billing_provider_id=chosen.effective_billing_provider_id,
                rendering_provider_id=provider_id,
                effective_date=chosen.effective_date,
            )
        return resolved

    @staticmethod
    def _resolve_supervised(
        db: Session,
        payer_id: int,
        on_date: date_type,
        direct: Dict[int, BookableProvider],
    ) -> Dict[int, BookableProvider]:
        """Supervised and co-visit providers whose attending is directly contracted."""
        if not direct:
            return {}

        relationships = db.query(SupervisionRelationship).filter(
            SupervisionRelationship.is_active == True,  # noqa: E712
            SupervisionRelationship.attending_provider_id.in_(list(direct.keys())),
            SupervisionRelationship.start_date <= on_date,
            or_(
                SupervisionRelationship.end_date.is_(None),
                SupervisionRelationship.end_date >= on_date,
            ),
            or_(
                SupervisionRelationship.payer_id.is_(None),
                SupervisionRelationship.payer_id == payer_id,
            ),
        ).all()

        candidates: Dict[int, List[tuple]] = defaultdict(list)
        for relationship in relationships:
            attending = direct[relationship.attending_provider_id]
            kind = (
                RESOLUTION_CO_VISIT
                if relationship.supervision_level == SUPERVISION_LEVEL_CO_VISIT_REQUIRED
                else RESOLUTION_SUPERVISED
            )
            entry = BookableProvider(
                provider_id=relationship.supervised_provider_id,
                resolution_kind=kind,
                billing_provider_id=attending.billing_provider_id,
                rendering_provider_id=relationship.supervised_provider_id,
                attending_provider_id=relationship.attending_provider_id,
                supervision_level=relationship.supervision_level,
                effective_date=relationship.start_date,
            )
            sort_key = (
                RESOLUTION_PRIORITY[kind],
                -relationship.start_date.toordinal(),
                relationship.attending_provider_id,
            )
            candidates[relationship.supervised_provider_id].append((sort_key, entry))

        resolved: Dict[int, BookableProvider] = {}
        for provider_id, ranked in candidates.items():
            ranked.sort(key=lambda item: item[0])
            chosen = ranked[0][1]
            if len(ranked) > 1:
                logger.info(
                    f"Provider {provider_id} has {len(ranked)} eligible attendings for payer {payer_id}; "
                    f"using attending {chosen.attending_provider_id}"
                )
            resolved[provider_id] = chosen
        return resolved

    @staticmethod
    def _load_providers(db: Session, provider_ids: List[int]) -> Dict[int, Provider]:
        if not provider_ids:
            return {}
        providers = db.query(Provider).filter(Provider.id.in_(provider_ids)).all()
        return {provider.id: provider for provider in providers}
