"""
Integration tests for the availability cache.

Covers population, idempotency, pending lookups, invalidation and inline
recompute of stale entries.
"""

import threading
from datetime import time
from unittest.mock import patch

import pytest

from core.exceptions import NotFoundError
from models import AvailabilityCacheEntry
from services.availability_cache_service import AvailabilityCacheService
from tests.utils import (
    MONDAY, TUESDAY, bookable_setup, create_appointment, create_exception,
)


def _entry(db, provider, instance, target_date):
    return db.query(AvailabilityCacheEntry).filter(
        AvailabilityCacheEntry.provider_id == provider.id,
        AvailabilityCacheEntry.service_instance_id == instance.id,
        AvailabilityCacheEntry.date == target_date,
    ).one_or_none()


class TestPopulate:
    """Test populating cache keys from source data."""

    def test_populate_writes_slots(self, db_session):
        provider, _, instance = bookable_setup(db_session)

        result = AvailabilityCacheService.populate(db_session, provider.id, instance.id, MONDAY)

        assert result.records_written == 1
        assert result.dates == [MONDAY]
        entry = _entry(db_session, provider, instance, MONDAY)
        assert [slot["start"] for slot in entry.slots] == ["09:00", "10:00", "11:00"]
        assert entry.is_stale is False
        assert entry.populated_at is not None

    def test_populate_is_idempotent(self, db_session):
        provider, _, instance = bookable_setup(db_session)

        first = AvailabilityCacheService.populate(db_session, provider.id, instance.id, MONDAY, TUESDAY)
        payload = list(_entry(db_session, provider, instance, MONDAY).slots)
        second = AvailabilityCacheService.populate(db_session, provider.id, instance.id, MONDAY, TUESDAY)

        assert first.records_written == 2
        assert second.records_written == 0
        assert second.dates == [MONDAY, TUESDAY]
        assert _entry(db_session, provider, instance, MONDAY).slots == payload
        assert db_session.query(AvailabilityCacheEntry).count() == 2

    def test_day_without_templates_cached_empty(self, db_session):
        provider, _, instance = bookable_setup(db_session)

        AvailabilityCacheService.populate(db_session, provider.id, instance.id, TUESDAY)

        assert _entry(db_session, provider, instance, TUESDAY).slots == []

    def test_booked_slot_cached_unavailable(self, db_session):
        provider, payer, instance = bookable_setup(db_session)
        create_appointment(db_session, provider, payer, start_time=time(10, 0), end_time=time(11, 0))

        AvailabilityCacheService.populate(db_session, provider.id, instance.id, MONDAY)

        slots = _entry(db_session, provider, instance, MONDAY).slots
        assert [(slot["start"], slot["available"]) for slot in slots] == [
            ("09:00", True), ("10:00", False), ("11:00", True)
        ]

    def test_populate_rejects_reversed_range(self, db_session):
        provider, _, instance = bookable_setup(db_session)
        with pytest.raises(ValueError):
            AvailabilityCacheService.populate(db_session, provider.id, instance.id, TUESDAY, MONDAY)

    def test_populate_unknown_keys(self, db_session):
        provider, _, instance = bookable_setup(db_session)
        with pytest.raises(NotFoundError):
            AvailabilityCacheService.populate(db_session, 999999, instance.id, MONDAY)
        with pytest.raises(NotFoundError):
            AvailabilityCacheService.populate(db_session, provider.id, 999999, MONDAY)


class TestGet:
    """Test reading cache keys."""

    def test_missing_key_is_pending(self, db_session):
        provider, _, instance = bookable_setup(db_session)

        lookup = AvailabilityCacheService.get(db_session, provider.id, instance.id, MONDAY)

        assert lookup.is_pending
        assert lookup.slots == []
        assert _entry(db_session, provider, instance, MONDAY) is None

    def test_populated_key(self, db_session):
        provider, _, instance = bookable_setup(db_session)
        AvailabilityCacheService.populate(db_session, provider.id, instance.id, MONDAY)

        lookup = AvailabilityCacheService.get(db_session, provider.id, instance.id, MONDAY)

        assert lookup.status == "populated"
        assert [slot.start for slot in lookup.slots] == ["09:00", "10:00", "11:00"]

    def test_get_or_populate_fills_pending_key(self, db_session):
        provider, _, instance = bookable_setup(db_session)

        lookup = AvailabilityCacheService.get_or_populate(db_session, provider.id, instance.id, MONDAY)

        assert lookup.status == "populated"
        assert len(lookup.slots) == 3
        assert _entry(db_session, provider, instance, MONDAY) is not None


class TestInvalidation:
    """Test stale marking and recompute."""

    def test_invalidate_then_read_recomputes(self, db_session):
        provider, payer, instance = bookable_setup(db_session)
        AvailabilityCacheService.populate(db_session, provider.id, instance.id, MONDAY)

        # Source data changes behind the cache's back
        create_appointment(db_session, provider, payer, start_time=time(9, 0), end_time=time(10, 0))
        count = AvailabilityCacheService.invalidate(db_session, provider.id, MONDAY)

        assert count == 1
        entry = _entry(db_session, provider, instance, MONDAY)
        assert entry.is_stale is True
        assert entry.invalidated_at is not None

        lookup = AvailabilityCacheService.get(db_session, provider.id, instance.id, MONDAY)
        assert [slot.available for slot in lookup.slots] == [False, True, True]
        assert _entry(db_session, provider, instance, MONDAY).is_stale is False

    def test_stale_entry_rewritten_by_populate(self, db_session):
        provider, _, instance = bookable_setup(db_session)
        AvailabilityCacheService.populate(db_session, provider.id, instance.id, MONDAY)
        AvailabilityCacheService.invalidate(db_session, provider.id, MONDAY)

        result = AvailabilityCacheService.populate(db_session, provider.id, instance.id, MONDAY)

        assert result.records_written == 1
        assert _entry(db_session, provider, instance, MONDAY).is_stale is False

    def test_invalidate_without_entries(self, db_session):
        provider, _, _ = bookable_setup(db_session)
        assert AvailabilityCacheService.invalidate(db_session, provider.id, MONDAY) == 0

    def test_invalidate_weekday_only_touches_that_day(self, db_session):
        provider, _, instance = bookable_setup(db_session)
        AvailabilityCacheService.populate(db_session, provider.id, instance.id, MONDAY, TUESDAY)

        count = AvailabilityCacheService.invalidate_weekday(db_session, provider.id, 0, MONDAY)

        assert count == 1
        assert _entry(db_session, provider, instance, MONDAY).is_stale is True
        assert _entry(db_session, provider, instance, TUESDAY).is_stale is False

    def test_exception_change_reflected_after_recompute(self, db_session):
        provider, _, instance = bookable_setup(db_session)
        AvailabilityCacheService.populate(db_session, provider.id, instance.id, MONDAY)

        create_exception(db_session, provider, MONDAY)
        AvailabilityCacheService.invalidate(db_session, provider.id, MONDAY)

        lookup = AvailabilityCacheService.get(db_session, provider.id, instance.id, MONDAY)
        assert lookup.slots == []

    def test_window(self):
        assert AvailabilityCacheService.window(MONDAY, 2) == [MONDAY, TUESDAY]


class TestConcurrentPopulate:
    """Test populating one key from competing sessions on a shared file database."""

    def test_insert_race_updates_the_winning_row(self, file_session_factory):
        with file_session_factory() as db:
            provider, _, instance = bookable_setup(db)
            provider_id, instance_id = provider.id, instance.id

        original_get_entry = AvailabilityCacheService._get_entry
        lost_race = []

        def get_entry_after_other_insert(db, *key):
            if lost_race:
                return original_get_entry(db, *key)
            lost_race.append(key)
            # End this session's transaction so the other writer can commit first
            db.commit()
            with file_session_factory() as other:
                other.add(AvailabilityCacheEntry(
                    provider_id=provider_id, service_instance_id=instance_id, date=MONDAY, slots=[], is_stale=True,
                ))
                other.commit()
            return None

        with patch.object(AvailabilityCacheService, "_get_entry", side_effect=get_entry_after_other_insert):
            with file_session_factory() as db:
                result = AvailabilityCacheService.populate(db, provider_id, instance_id, MONDAY)

        assert result.records_written == 1
        with file_session_factory() as db:
            entries = db.query(AvailabilityCacheEntry).all()
            assert len(entries) == 1
            assert entries[0].is_stale is False
            assert [slot["start"] for slot in entries[0].slots] == ["09:00", "10:00", "11:00"]

    def test_two_threads_same_key_write_once(self, file_session_factory):
        with file_session_factory() as db:
            provider, _, instance = bookable_setup(db)
            provider_id, instance_id = provider.id, instance.id

        barrier = threading.Barrier(2)
        written = []
        errors = []

        def populate():
            try:
                with file_session_factory() as db:
                    barrier.wait()
                    written.append(
                        AvailabilityCacheService.populate(db, provider_id, instance_id, MONDAY).records_written
                    )
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=populate) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert errors == []
        assert sorted(written) == [0, 1]
        with file_session_factory() as db:
            entries = db.query(AvailabilityCacheEntry).all()
            assert len(entries) == 1
            assert [slot["start"] for slot in entries[0].slots] == ["09:00", "10:00", "11:00"]
