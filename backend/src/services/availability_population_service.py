"""
Batch population of the availability cache.

Fans out over bookable providers x active service instances x dates with a
bounded thread pool. Each unit of work uses its own database session and
upserts one cache key, so an aborted run leaves some keys populated and the
rest pending, never a partial entry.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import date as date_type
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session

from core.config import POPULATION_MAX_WORKERS
from core.database import SessionLocal
from models.provider import Provider
from models.service_instance import ServiceInstance
from services.availability_cache_service import AvailabilityCacheService
from services.bookability_service import BookabilityService, ResolutionOptions

logger = logging.getLogger(__name__)

PopulationUnit = Tuple[int, int, date_type]


@dataclass
class PopulationSummary:
    """Counters for one population run."""
    units_total: int = 0
    units_completed: int = 0
    units_skipped: int = 0
    units_failed: int = 0
    records_written: int = 0
    cancelled: bool = False


class AvailabilityPopulationJob:
    """
    Populates cache keys ahead of patient searches.

    A job instance can be cancelled from another thread; units not yet started
    are skipped while in-flight units finish their upsert.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        max_workers: int = POPULATION_MAX_WORKERS,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._session_factory = session_factory
        self._max_workers = max_workers
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Request the running (or next) run to stop after in-flight units."""
        logger.info("Availability population cancellation requested")
        self._cancel_event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(
        self,
        start_date: date_type,
        days: int,
        provider_ids: Optional[Sequence[int]] = None,
    ) -> PopulationSummary:
        """
        Populate every (provider, service instance, date) key in the window.

        Args:
            start_date: First date to populate
            days: Number of consecutive dates
            provider_ids: Restrict to these providers (still must be bookable)

        Returns:
            PopulationSummary with per-unit outcome counts
        """
        if days < 1:
            raise ValueError(f"days must be at least 1, got {days}")

        units = self._plan_units(start_date, days, provider_ids)
        summary = PopulationSummary(units_total=len(units))
        logger.info(
            f"Populating availability: {len(units)} units from {start_date} over {days} days "
            f"with {self._max_workers} workers"
        )

        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="availability-population") as executor:
            futures = {executor.submit(self._run_unit, unit): unit for unit in units}
            for future in as_completed(futures):
                provider_id, service_instance_id, target_date = futures[future]
                try:
                    written = future.result()
                except Exception as e:
                    summary.units_failed += 1
                    logger.exception(
                        f"Failed to populate provider {provider_id}, service instance {service_instance_id} "
                        f"on {target_date}: {e}"
                    )
                    continue

                if written is None:
                    summary.units_skipped += 1
                else:
                    summary.units_completed += 1
                    summary.records_written += written

        summary.cancelled = self.is_cancelled
        logger.info(
            f"Availability population finished: {summary.units_completed} completed, "
            f"{summary.units_skipped} skipped, {summary.units_failed} failed, "
            f"{summary.records_written} entries written"
        )
        return summary

    def _plan_units(
        self,
        start_date: date_type,
        days: int,
        provider_ids: Optional[Sequence[int]],
    ) -> List[PopulationUnit]:
        """
        List the keys to populate.

        A payer-specific service instance is only planned for providers
        bookable under its payer on that date; generic instances go to every
        bookable provider.
        """
        dates = AvailabilityCacheService.window(start_date, days)

        with self._session_factory() as db:
            provider_query = db.query(Provider.id).filter(
                Provider.is_active == True,  # noqa: E712
                Provider.is_bookable == True,  # noqa: E712
            )
            if provider_ids is not None:
                provider_query = provider_query.filter(Provider.id.in_(list(provider_ids)))
            providers = [row.id for row in provider_query.order_by(Provider.id).all()]

            instances = db.query(ServiceInstance.id, ServiceInstance.payer_id).filter(
                ServiceInstance.is_active == True  # noqa: E712
            ).order_by(ServiceInstance.id).all()

            bookable_under: Dict[Tuple[int, date_type], Set[int]] = {}
            for payer_id in sorted({row.payer_id for row in instances if row.payer_id is not None}):
                for target_date in dates:
                    resolved = BookabilityService.resolve_bookability(
                        db, payer_id, ResolutionOptions(on_date=target_date)
                    )
                    bookable_under[(payer_id, target_date)] = {entry.provider_id for entry in resolved}

        units = [
            (provider_id, instance.id, target_date)
            for provider_id in providers
            for instance in instances
            for target_date in dates
            if instance.payer_id is None or provider_id in bookable_under[(instance.payer_id, target_date)]
        ]
        skipped = len(providers) * len(instances) * len(dates) - len(units)
        if skipped:
            logger.debug(f"Skipping {skipped} units for payer-specific service instances outside the provider's payers")
        return units

    def _run_unit(self, unit: PopulationUnit) -> Optional[int]:
        """Populate one key in a fresh session. Returns None when skipped after cancel."""
        if self._cancel_event.is_set():
            return None

        provider_id, service_instance_id, target_date = unit
        with self._session_factory() as db:
            result = AvailabilityCacheService.populate(db, provider_id, service_instance_id, target_date)
            return result.records_written
