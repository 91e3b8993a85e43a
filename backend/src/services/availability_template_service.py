"""
Availability template service for managing providers' weekly schedules and date exceptions.

Every mutation invalidates the affected cache keys: template edits sweep every
future date on that weekday, exception edits touch a single date.
"""

import logging
from datetime import date as date_type, time
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from core.constants import EXCEPTION_TYPE_BLACKOUT, EXCEPTION_TYPE_REPLACEMENT
from core.exceptions import NotFoundError
from models.availability_exception import AvailabilityException
from models.availability_template import AvailabilityTemplate
from models.provider import Provider
from services.availability_cache_service import AvailabilityCacheService
from utils.datetime_utils import practice_now

logger = logging.getLogger(__name__)


class AvailabilityTemplateService:
    """Service for template and exception CRUD with cache invalidation."""

    @staticmethod
    def list_templates(db: Session, provider_id: int, day_of_week: Optional[int] = None) -> List[AvailabilityTemplate]:
        """Templates for a provider ordered by day and start time."""
        query = db.query(AvailabilityTemplate).filter(AvailabilityTemplate.provider_id == provider_id)
        if day_of_week is not None:
            query = query.filter(AvailabilityTemplate.day_of_week == day_of_week)
        return query.order_by(
            AvailabilityTemplate.day_of_week,
            AvailabilityTemplate.start_time,
            AvailabilityTemplate.id,
        ).all()

    @staticmethod
    def add_template(
        db: Session,
        provider_id: int,
        day_of_week: int,
        start_time: time,
        end_time: time,
        effective_date: Optional[date_type] = None,
        expiration_date: Optional[date_type] = None,
    ) -> AvailabilityTemplate:
        """
        Add one weekly window for a provider.

        Raises:
            NotFoundError: Unknown provider
            ValueError: Invalid day or window
        """
        AvailabilityTemplateService._get_provider(db, provider_id)
        AvailabilityTemplateService._validate_window(day_of_week, start_time, end_time)
        if effective_date and expiration_date and expiration_date < effective_date:
            raise ValueError("expiration_date must not be before effective_date")

        template = AvailabilityTemplate(
            provider_id=provider_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            is_recurring=True,
            effective_date=effective_date,
            expiration_date=expiration_date,
        )
        db.add(template)
        db.commit()
        db.refresh(template)
        logger.info(f"Added template {template.id} for provider {provider_id} on {template.day_name}")

        AvailabilityTemplateService._invalidate_weekday(db, provider_id, day_of_week)
        return template

    @staticmethod
    def set_day_templates(
        db: Session,
        provider_id: int,
        day_of_week: int,
        windows: Sequence[Tuple[time, time]],
    ) -> List[AvailabilityTemplate]:
        """
        Replace all templates of one weekday with the given windows.

        An empty list clears the day. Windows may overlap.
        """
        AvailabilityTemplateService._get_provider(db, provider_id)
        for start_time, end_time in windows:
            AvailabilityTemplateService._validate_window(day_of_week, start_time, end_time)

        db.query(AvailabilityTemplate).filter(
            AvailabilityTemplate.provider_id == provider_id,
            AvailabilityTemplate.day_of_week == day_of_week,
        ).delete(synchronize_session="fetch")

        templates = [
            AvailabilityTemplate(
                provider_id=provider_id,
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                is_recurring=True,
            )
            for start_time, end_time in windows
        ]
        db.add_all(templates)
        db.commit()
        logger.info(f"Set {len(templates)} templates for provider {provider_id} on day {day_of_week}")

        AvailabilityTemplateService._invalidate_weekday(db, provider_id, day_of_week)
        return AvailabilityTemplateService.list_templates(db, provider_id, day_of_week)

    @staticmethod
    def delete_template(db: Session, template_id: int) -> None:
        """Delete one template. Raises NotFoundError if it does not exist."""
        template = db.get(AvailabilityTemplate, template_id)
        if template is None:
            raise NotFoundError("Availability template", template_id)

        provider_id = template.provider_id
        day_of_week = template.day_of_week
        db.delete(template)
        db.commit()
        logger.info(f"Deleted template {template_id} for provider {provider_id}")

        AvailabilityTemplateService._invalidate_weekday(db, provider_id, day_of_week)

    @staticmethod
    def get_exception(db: Session, provider_id: int, exception_date: date_type) -> Optional[AvailabilityException]:
        return db.query(AvailabilityException).filter(
            AvailabilityException.provider_id == provider_id,
            AvailabilityException.exception_date == exception_date,
        ).one_or_none()

    @staticmethod
    def upsert_exception(
        db: Session,
        provider_id: int,
        exception_date: date_type,
        exception_type: str,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        reason: Optional[str] = None,
    ) -> AvailabilityException:
        """
        Create or replace the exception for a provider/date.

        A blackout clears any window; a replacement requires one.

        Raises:
            NotFoundError: Unknown provider
            ValueError: Invalid type or window
        """
        AvailabilityTemplateService._get_provider(db, provider_id)

        if exception_type == EXCEPTION_TYPE_BLACKOUT:
            start_time = end_time = None
        elif exception_type == EXCEPTION_TYPE_REPLACEMENT:
            if start_time is None or end_time is None:
                raise ValueError("Replacement exceptions require start_time and end_time")
            AvailabilityTemplateService._validate_window(exception_date.weekday(), start_time, end_time)
        else:
            raise ValueError(f"Unknown exception type '{exception_type}'")

        exception = AvailabilityTemplateService.get_exception(db, provider_id, exception_date)
        if exception is None:
            exception = AvailabilityException(provider_id=provider_id, exception_date=exception_date)
            db.add(exception)

        exception.exception_type = exception_type
        exception.start_time = start_time
        exception.end_time = end_time
        exception.reason = reason
        db.commit()
        db.refresh(exception)
        logger.info(f"Saved {exception_type} exception for provider {provider_id} on {exception_date}")

        AvailabilityTemplateService._invalidate_date(db, provider_id, exception_date)
        return exception

    @staticmethod
    def delete_exception(db: Session, provider_id: int, exception_date: date_type) -> bool:
        """Remove the exception for a provider/date. Returns False if there was none."""
        exception = AvailabilityTemplateService.get_exception(db, provider_id, exception_date)
        if exception is None:
            return False

        db.delete(exception)
        db.commit()
        logger.info(f"Deleted exception for provider {provider_id} on {exception_date}")

        AvailabilityTemplateService._invalidate_date(db, provider_id, exception_date)
        return True

    @staticmethod
    def _get_provider(db: Session, provider_id: int) -> Provider:
        provider = db.get(Provider, provider_id)
        if provider is None:
            raise NotFoundError("Provider", provider_id)
        return provider

    @staticmethod
    def _validate_window(day_of_week: int, start_time: time, end_time: time) -> None:
        if not 0 <= day_of_week <= 6:
            raise ValueError(f"day_of_week must be between 0 (Monday) and 6 (Sunday), got {day_of_week}")
        if end_time <= start_time:
            raise ValueError(f"end_time {end_time} must be after start_time {start_time}")

    @staticmethod
    def _invalidate_weekday(db: Session, provider_id: int, day_of_week: int) -> None:
        try:
            AvailabilityCacheService.invalidate_weekday(db, provider_id, day_of_week, practice_now().date())
        except Exception as e:
            logger.exception(f"Failed to invalidate cache for provider {provider_id}, weekday {day_of_week}: {e}")
            db.rollback()

    @staticmethod
    def _invalidate_date(db: Session, provider_id: int, target_date: date_type) -> None:
        try:
            AvailabilityCacheService.invalidate(db, provider_id, target_date)
        except Exception as e:
            logger.exception(f"Failed to invalidate cache for provider {provider_id} on {target_date}: {e}")
            db.rollback()
