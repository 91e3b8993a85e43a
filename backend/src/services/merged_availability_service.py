"""
Merged availability service for patient-facing search.

Combines bookability resolution with cached per-provider slots into a single
feed ordered by time, annotated with how each provider is bookable.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date as date_type, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.config import MAX_BOOKING_WINDOW_DAYS, MIN_BOOKING_NOTICE_HOURS
from core.constants import MAX_MERGED_AVAILABILITY_DAYS
from core.exceptions import NotFoundError
from models.provider import Provider
from models.service_instance import ServiceInstance
from services.availability_cache_service import AvailabilityCacheService
from services.bookability_service import BookabilityService, ResolutionOptions
from shared_types.availability import BookableProvider, MergedSlot
from utils.datetime_utils import get_timezone, parse_time_string, practice_now

logger = logging.getLogger(__name__)


@dataclass
class MergeOptions:
    """Booking-policy and narrowing options for one merged availability request."""
    now: datetime = field(default_factory=practice_now)
    min_notice_hours: int = MIN_BOOKING_NOTICE_HOURS
    max_window_days: int = MAX_BOOKING_WINDOW_DAYS
    provider_id: Optional[int] = None
    per_provider_limit: Optional[int] = None
    require_accepts_new_patients: bool = False


class MergedAvailabilityService:
    """Service for building the merged, ranked availability feed."""

    @staticmethod
    def get_merged_availability(
        db: Session,
        payer_id: int,
        dates: Sequence[date_type],
        duration_minutes: int,
        language: Optional[str] = None,
        options: Optional[MergeOptions] = None,
    ) -> List[MergedSlot]:
        """
        Build the merged feed of available slots across bookable providers.

        Providers come from bookability resolution for each date. Slots are read
        from the cache (keys never populated are populated on demand), limited
        to available ones, deduplicated per (provider, date, start) and ordered
        by (date, start, provider_id). Co-visit providers are included and
        annotated.

        Args:
            db: Database session
            payer_id: Payer the patient books under
            dates: Dates to search
            duration_minutes: Requested appointment length
            language: Optional language the provider must speak
            options: Booking policy and narrowing options

        Returns:
            Ordered merged slots (possibly empty)

        Raises:
            NotFoundError: If the payer does not exist
            ValueError: If too many dates are requested or the duration is invalid
        """
        options = options or MergeOptions()
        if duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")
        unique_dates = sorted(set(dates))
        if len(unique_dates) > MAX_MERGED_AVAILABILITY_DAYS:
            raise ValueError(f"Too many dates requested (max {MAX_MERGED_AVAILABILITY_DAYS})")
        if not unique_dates:
            return []

        service_instance = MergedAvailabilityService.select_service_instance(db, payer_id, duration_minutes)
        if service_instance is None:
            # Still validates the payer so unknown payers 404 instead of returning empty
            BookabilityService.resolve_bookability(db, payer_id, ResolutionOptions(on_date=unique_dates[0]))
            logger.info(f"No active {duration_minutes}-minute service instance offered under payer {payer_id}")
            return []

        wanted_language = language.strip().lower() if language and language.strip() else None
        provider_cache: Dict[int, Provider] = {}

        merged: List[MergedSlot] = []
        seen: Set[Tuple[int, date_type, str]] = set()
        for target_date in unique_dates:
            resolution = BookabilityService.resolve_bookability(
                db,
                payer_id,
                ResolutionOptions(
                    on_date=target_date,
                    require_accepts_new_patients=options.require_accepts_new_patients,
                ),
            )
            for entry in resolution:
                if options.provider_id is not None and entry.provider_id != options.provider_id:
                    continue

                provider = MergedAvailabilityService._get_provider(db, entry.provider_id, provider_cache)
                if wanted_language and wanted_language not in provider.languages:
                    continue

                lookup = AvailabilityCacheService.get_or_populate(
                    db, entry.provider_id, service_instance.id, target_date
                )
                for slot in lookup.slots:
                    if not slot.available:
                        continue
                    key = (entry.provider_id, target_date, slot.start)
                    if key in seen:
                        continue
                    if not MergedAvailabilityService._passes_booking_policy(
                        provider, target_date, slot.start, options
                    ):
                        continue
                    seen.add(key)
                    merged.append(
                        MergedAvailabilityService._to_merged_slot(entry, target_date, slot, service_instance.id)
                    )

        merged.sort(key=lambda item: (item.date, item.slot.start, item.provider_id))

        if options.per_provider_limit is not None:
            merged = MergedAvailabilityService._limit_per_provider(merged, options.per_provider_limit)

        logger.debug(
            f"Merged availability for payer {payer_id}: {len(merged)} slots over {len(unique_dates)} dates"
        )
        return merged

    @staticmethod
    def select_service_instance(
        db: Session,
        payer_id: int,
        duration_minutes: int,
    ) -> Optional[ServiceInstance]:
        """Active service instance of the duration under the payer, payer-specific preferred over generic."""
        candidates = db.query(ServiceInstance).filter(
            ServiceInstance.is_active == True,  # noqa: E712
            ServiceInstance.duration_minutes == duration_minutes,
            or_(ServiceInstance.payer_id == payer_id, ServiceInstance.payer_id.is_(None)),
        ).all()
        if not candidates:
            return None
        candidates.sort(key=lambda instance: (instance.payer_id is None, instance.id))
        return candidates[0]

    @staticmethod
    def _get_provider(db: Session, provider_id: int, cache: Dict[int, Provider]) -> Provider:
        if provider_id not in cache:
            provider = db.get(Provider, provider_id)
            if provider is None:
                raise NotFoundError("Provider", provider_id)
            cache[provider_id] = provider
        return cache[provider_id]

    @staticmethod
    def _passes_booking_policy(
        provider: Provider,
        target_date: date_type,
        start: str,
        options: MergeOptions,
    ) -> bool:
        """Minimum notice and maximum booking window, evaluated in the provider's timezone."""
        tz = get_timezone(provider.timezone)
        now_local = options.now.astimezone(tz) if options.now.tzinfo else options.now.replace(tzinfo=tz)

        latest_date = now_local.date() + timedelta(days=options.max_window_days)
        if target_date > latest_date:
            return False

        slot_start = datetime.combine(target_date, parse_time_string(start), tzinfo=tz)
        return slot_start >= now_local + timedelta(hours=options.min_notice_hours)

    @staticmethod
    def _to_merged_slot(
        entry: BookableProvider,
        target_date: date_type,
        slot,
        service_instance_id: int,
    ) -> MergedSlot:
        return MergedSlot(
            provider_id=entry.provider_id,
            date=target_date,
            slot=slot,
            supervision_kind=entry.resolution_kind,
            billing_provider_id=entry.billing_provider_id,
            attending_provider_id=entry.attending_provider_id,
            service_instance_id=service_instance_id,
        )

    @staticmethod
    def _limit_per_provider(slots: List[MergedSlot], limit: int) -> List[MergedSlot]:
        """Keep at most `limit` slots per provider, preserving feed order."""
        counts: Dict[int, int] = defaultdict(int)
        limited: List[MergedSlot] = []
        for item in slots:
            if counts[item.provider_id] >= limit:
                continue
            counts[item.provider_id] += 1
            limited.append(item)
        return limited
