"""
Availability cache service.

Stores precomputed slots per (provider, service instance, date). Entries are
rebuilt from templates, exceptions and appointments; each key is upserted and
committed on its own so an interrupted batch never leaves a half-written entry.
"""

import logging
from datetime import date as date_type, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import APPOINTMENT_STATUS_CANCELLED
from core.exceptions import NotFoundError
from models.appointment import Appointment
from models.availability_cache_entry import AvailabilityCacheEntry
from models.availability_exception import AvailabilityException
from models.availability_template import AvailabilityTemplate
from models.provider import Provider
from models.service_instance import ServiceInstance
from services.conflict_filter import ConflictFilter
from services.slot_generator import SlotGenerator
from shared_types.availability import CacheLookup, PopulationResult, SlotData
from utils.datetime_utils import iter_dates, practice_now
from utils.keyed_lock import KeyedLock
from utils.retry import retry_on_store_unavailable

logger = logging.getLogger(__name__)

# At most one in-flight recompute per cache key in this process
_key_locks = KeyedLock()


class AvailabilityCacheService:
    """Service for populating, reading and invalidating cached availability."""

    @staticmethod
    def compute_slots(
        db: Session,
        provider_id: int,
        service_instance: ServiceInstance,
        target_date: date_type,
    ) -> List[SlotData]:
        """
        Compute the slot list for one key from source data.

        Returns all generated slots, with those colliding with a booked
        appointment marked unavailable.
        """
        slots = AvailabilityCacheService.offered_slots(
            db, provider_id, service_instance.duration_minutes, target_date
        )
        appointments = db.query(Appointment).filter(
            Appointment.provider_id == provider_id,
            Appointment.appointment_date == target_date,
            Appointment.status != APPOINTMENT_STATUS_CANCELLED,
        ).all()
        return ConflictFilter.apply_conflicts(slots, appointments)

    @staticmethod
    def offered_slots(
        db: Session,
        provider_id: int,
        duration_minutes: int,
        target_date: date_type,
    ) -> List[SlotData]:
        """Slots the provider's templates and exception offer on a date, ignoring bookings."""
        templates = db.query(AvailabilityTemplate).filter(
            AvailabilityTemplate.provider_id == provider_id,
            AvailabilityTemplate.day_of_week == target_date.weekday(),
        ).order_by(AvailabilityTemplate.start_time, AvailabilityTemplate.id).all()

        exception = db.query(AvailabilityException).filter(
            AvailabilityException.provider_id == provider_id,
            AvailabilityException.exception_date == target_date,
        ).one_or_none()

        return SlotGenerator.generate_slots(templates, exception, duration_minutes, target_date)

    @staticmethod
    def populate(
        db: Session,
        provider_id: int,
        service_instance_id: int,
        start_date: date_type,
        end_date: Optional[date_type] = None,
    ) -> PopulationResult:
        """
        Recompute and upsert cache entries for a provider over a date range.

        Idempotent: populating twice with unchanged source data writes nothing
        the second time and leaves identical slot payloads.

        Args:
            db: Database session
            provider_id: Provider to populate
            service_instance_id: Service instance whose duration drives the slots
            start_date: First date (inclusive)
            end_date: Last date (inclusive), defaults to start_date

        Returns:
            PopulationResult with the number of keys written and the dates covered

        Raises:
            NotFoundError: If the provider or service instance does not exist
            ValueError: If end_date is before start_date
        """
        end_date = end_date or start_date
        if end_date < start_date:
            raise ValueError(f"end_date {end_date} is before start_date {start_date}")

        if db.get(Provider, provider_id) is None:
            raise NotFoundError("Provider", provider_id)
        service_instance = db.get(ServiceInstance, service_instance_id)
        if service_instance is None:
            raise NotFoundError("Service instance", service_instance_id)

        result = PopulationResult()
        for target_date in iter_dates(start_date, end_date):
            if AvailabilityCacheService._populate_key(db, provider_id, service_instance, target_date):
                result.records_written += 1
            result.dates.append(target_date)

        logger.info(
            f"Populated availability for provider {provider_id}, service instance {service_instance_id}, "
            f"{start_date}..{end_date}: {result.records_written} entries written"
        )
        return result

    @staticmethod
    @retry_on_store_unavailable()
    def get(
        db: Session,
        provider_id: int,
        service_instance_id: int,
        target_date: date_type,
    ) -> CacheLookup:
        """
        Read one cache key.

        A stale entry is recomputed inline before it is returned. A key that
        was never populated is reported as pending rather than computed.
        """
        entry = AvailabilityCacheService._get_entry(db, provider_id, service_instance_id, target_date)
        if entry is None:
            return CacheLookup.pending()

        if entry.is_stale:
            service_instance = db.get(ServiceInstance, service_instance_id)
            if service_instance is None:
                raise NotFoundError("Service instance", service_instance_id)
            logger.debug(f"Stale cache entry {entry.id}, recomputing")
            AvailabilityCacheService._populate_key(db, provider_id, service_instance, target_date)
            entry = AvailabilityCacheService._get_entry(db, provider_id, service_instance_id, target_date)
            if entry is None:
                raise NotFoundError("Availability cache entry", (provider_id, service_instance_id, target_date.isoformat()))

        return CacheLookup.populated([SlotData.from_dict(slot) for slot in entry.slots or []])

    @staticmethod
    def get_or_populate(
        db: Session,
        provider_id: int,
        service_instance_id: int,
        target_date: date_type,
    ) -> CacheLookup:
        """Read one cache key, populating it on demand when it is still pending."""
        lookup = AvailabilityCacheService.get(db, provider_id, service_instance_id, target_date)
        if not lookup.is_pending:
            return lookup

        AvailabilityCacheService.populate(db, provider_id, service_instance_id, target_date)
        return AvailabilityCacheService.get(db, provider_id, service_instance_id, target_date)

    @staticmethod
    def invalidate(db: Session, provider_id: int, target_date: date_type) -> int:
        """
        Mark every service instance's entry for a provider/date as stale and commit.

        Returns:
            Number of entries marked
        """
        count = AvailabilityCacheService.mark_stale(db, provider_id, target_date)
        db.commit()
        return count

    @staticmethod
    def mark_stale(db: Session, provider_id: int, target_date: date_type) -> int:
        """
        Flag a provider/date's entries stale inside the caller's transaction.

        Does not commit, so the flag lands atomically with the write that
        made the entries out of date.
        """
        now = practice_now()
        count = db.query(AvailabilityCacheEntry).filter(
            AvailabilityCacheEntry.provider_id == provider_id,
            AvailabilityCacheEntry.date == target_date,
        ).update(
            {
                AvailabilityCacheEntry.is_stale: True,
                AvailabilityCacheEntry.invalidated_at: now,
            },
            synchronize_session="fetch",
        )
        logger.debug(f"Marked {count} cache entries for provider {provider_id} on {target_date}")
        return count

    @staticmethod
    def invalidate_weekday(
        db: Session,
        provider_id: int,
        day_of_week: int,
        from_date: date_type,
    ) -> int:
        """
        Mark stale every cached date on or after from_date falling on a weekday.

        Used after template edits, which affect every future occurrence of the day.
        """
        entries = db.query(AvailabilityCacheEntry).filter(
            AvailabilityCacheEntry.provider_id == provider_id,
            AvailabilityCacheEntry.date >= from_date,
        ).all()

        now = practice_now()
        count = 0
        for entry in entries:
            if entry.date.weekday() == day_of_week and not entry.is_stale:
                entry.is_stale = True
                entry.invalidated_at = now
                count += 1
        db.commit()
        logger.debug(
            f"Invalidated {count} cache entries for provider {provider_id}, weekday {day_of_week} from {from_date}"
        )
        return count

    @staticmethod
    def _get_entry(
        db: Session,
        provider_id: int,
        service_instance_id: int,
        target_date: date_type,
    ) -> Optional[AvailabilityCacheEntry]:
        return db.query(AvailabilityCacheEntry).filter(
            AvailabilityCacheEntry.provider_id == provider_id,
            AvailabilityCacheEntry.service_instance_id == service_instance_id,
            AvailabilityCacheEntry.date == target_date,
        ).one_or_none()

    @staticmethod
    def _populate_key(
        db: Session,
        provider_id: int,
        service_instance: ServiceInstance,
        target_date: date_type,
    ) -> bool:
        """
        Recompute and upsert one key under its lock.

        Returns:
            True if the entry was inserted or changed, False if it was already
            fresh with an identical payload
        """
        key = (provider_id, service_instance.id, target_date)
        with _key_locks.hold(key):
            slots = AvailabilityCacheService.compute_slots(db, provider_id, service_instance, target_date)
            payload = [slot.to_dict() for slot in slots]

            entry = AvailabilityCacheService._get_entry(db, provider_id, service_instance.id, target_date)
            if entry is not None and not entry.is_stale and entry.slots == payload:
                return False

            now = practice_now()
            if entry is None:
                entry = AvailabilityCacheEntry(
                    provider_id=provider_id,
                    service_instance_id=service_instance.id,
                    date=target_date,
                    slots=payload,
                    is_stale=False,
                    populated_at=now,
                )
                db.add(entry)
                try:
                    db.commit()
                    return True
                except IntegrityError:
                    # Another process inserted the key first; overwrite its row
                    db.rollback()
                    logger.debug(f"Cache key {key} inserted concurrently, updating instead")
                    entry = AvailabilityCacheService._get_entry(db, provider_id, service_instance.id, target_date)
                    if entry is None:
                        raise

            entry.slots = payload
            entry.is_stale = False
            entry.populated_at = now
            db.commit()
            return True

    @staticmethod
    def window(start_date: date_type, days: int) -> List[date_type]:
        """Dates start_date .. start_date + days - 1."""
        return [start_date + timedelta(days=offset) for offset in range(days)]
