"""
Appointment service: the single transactional write path for bookings.

Commit re-validates bookability, then under a provider row lock checks
conflicts and that the time is still an offered slot, inserts and flags the
cached date stale, all in one transaction. Audit and the EMR mirror run after
the commit and can never undo it.
"""

import logging
from datetime import date as date_type, datetime, time, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from core.constants import (
    APPOINTMENT_STATUS_CANCELLED,
    APPOINTMENT_STATUS_COMPLETED,
    APPOINTMENT_STATUS_NO_SHOW,
    APPOINTMENT_STATUS_SCHEDULED,
)
from core.exceptions import ConflictError, NotBookableError, NotFoundError, StoreUnavailableError
from models.appointment import Appointment
from models.payer import Payer
from models.provider import Provider
from models.service_instance import ServiceInstance
from services.audit_service import AuditService
from services.availability_cache_service import AvailabilityCacheService
from services.bookability_service import BookabilityService, ResolutionOptions
from services.emr_mirror_service import EmrMirrorService
from utils.datetime_utils import format_time, get_timezone, parse_time_string, practice_now, to_civil
from utils.retry import STORE_FAILURES

logger = logging.getLogger(__name__)

# Statuses an appointment may move to after being booked
UPDATABLE_STATUSES = (APPOINTMENT_STATUS_COMPLETED, APPOINTMENT_STATUS_NO_SHOW)


class AppointmentService:
    """
    Service class for appointment operations.

    Commit distinguishes "slot taken" (ConflictError) from "system error"
    (StoreUnavailableError) so callers can tell the patient which one happened.
    """

    @staticmethod
    def commit_appointment(
        db: Session,
        provider_id: int,
        payer_id: int,
        start: datetime,
        duration_minutes: int,
        patient_ref: str,
        service_instance_id: Optional[int] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Book an appointment atomically.

        Args:
            db: Database session
            provider_id: Rendering provider
            payer_id: Payer the visit is billed under
            start: Start time; naive values are read as the provider's local time
            duration_minutes: Appointment length
            patient_ref: Opaque patient identifier
            service_instance_id: Optional service instance being booked
            idempotency_key: Optional client key; repeating a commit with the
                same key returns the appointment booked the first time

        Returns:
            Dict with appointment details, including appointment_id

        Raises:
            NotFoundError: Unknown provider, payer or service instance
            NotBookableError: Provider not bookable under the payer on that date
            ConflictError: Slot overlaps an existing appointment or is not offered
            StoreUnavailableError: Persistence failed; nothing was booked
            ValueError: Invalid duration or a slot crossing midnight
        """
        if idempotency_key:
            existing = AppointmentService._find_by_idempotency_key(db, idempotency_key)
            if existing is not None:
                logger.info(f"Idempotent commit replayed appointment {existing.id}")
                return AppointmentService._to_dict(existing)

        if duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")

        provider = db.get(Provider, provider_id)
        if provider is None:
            raise NotFoundError("Provider", provider_id)
        if db.get(Payer, payer_id) is None:
            raise NotFoundError("Payer", payer_id)
        if service_instance_id is not None:
            service_instance = db.get(ServiceInstance, service_instance_id)
            if service_instance is None:
                raise NotFoundError("Service instance", service_instance_id)
            if service_instance.duration_minutes != duration_minutes:
                raise ValueError(
                    f"Service instance {service_instance_id} is {service_instance.duration_minutes} minutes, "
                    f"not {duration_minutes}"
                )

        civil_start = to_civil(start, get_timezone(provider.timezone))
        civil_end = civil_start + timedelta(minutes=duration_minutes)
        if civil_end.date() != civil_start.date():
            raise ValueError("Appointments cannot cross midnight in the provider's timezone")

        appointment_date = civil_start.date()
        entry = BookabilityService.find_bookable_provider(
            db, provider_id, payer_id, ResolutionOptions(on_date=appointment_date)
        )
        if entry is None:
            raise NotBookableError(provider_id, payer_id)

        try:
            # Serializes commits for the same provider until this transaction ends
            db.query(Provider).filter(Provider.id == provider_id).with_for_update().one()

            if idempotency_key:
                existing = AppointmentService._find_by_idempotency_key(db, idempotency_key)
                if existing is not None:
                    db.rollback()
                    logger.info(f"Idempotent commit replayed appointment {existing.id}")
                    return AppointmentService._to_dict(existing)

            conflicting = db.query(Appointment).filter(
                Appointment.provider_id == provider_id,
                Appointment.appointment_date == appointment_date,
                Appointment.status != APPOINTMENT_STATUS_CANCELLED,
                Appointment.start_time < civil_end.time(),
                Appointment.end_time > civil_start.time(),
            ).first()
            if conflicting is not None:
                db.rollback()
                logger.info(
                    f"Slot {appointment_date} {format_time(civil_start.time())} for provider {provider_id} "
                    f"conflicts with appointment {conflicting.id}"
                )
                raise ConflictError(details={"provider_id": provider_id, "conflicting_appointment_id": conflicting.id})

            if not AppointmentService._is_offered_slot(
                db, provider_id, appointment_date, civil_start.time(), civil_end.time(), duration_minutes
            ):
                db.rollback()
                logger.info(
                    f"Slot {appointment_date} {format_time(civil_start.time())} ({duration_minutes} min) "
                    f"is not offered by provider {provider_id}"
                )
                raise ConflictError(
                    "Requested time is not an offered slot",
                    details={"provider_id": provider_id, "date": appointment_date.isoformat()},
                )

            appointment = Appointment(
                provider_id=provider_id,
                billing_provider_id=entry.billing_provider_id,
                attending_provider_id=entry.attending_provider_id,
                payer_id=payer_id,
                service_instance_id=service_instance_id,
                patient_ref=patient_ref,
                appointment_date=appointment_date,
                start_time=civil_start.time(),
                end_time=civil_end.time(),
                duration_minutes=duration_minutes,
                status=APPOINTMENT_STATUS_SCHEDULED,
                resolution_kind=entry.resolution_kind,
                idempotency_key=idempotency_key or None,
            )
            db.add(appointment)
            AvailabilityCacheService.mark_stale(db, provider_id, appointment_date)
            db.commit()
            db.refresh(appointment)

        except IntegrityError as e:
            db.rollback()
            if idempotency_key:
                existing = AppointmentService._find_by_idempotency_key(db, idempotency_key)
                if existing is not None:
                    logger.info(f"Concurrent idempotent commit resolved to appointment {existing.id}")
                    return AppointmentService._to_dict(existing)
            logger.warning(f"Appointment booking conflict: {e}")
            raise ConflictError(details={"provider_id": provider_id}) from e
        except STORE_FAILURES as e:
            logger.exception(f"Failed to commit appointment for provider {provider_id}: {e}")
            db.rollback()
            raise StoreUnavailableError(details={"operation": "commit_appointment"}) from e

        logger.info(f"Created appointment {appointment.id} for provider {provider_id} on {appointment_date}")

        result = AppointmentService._to_dict(appointment)
        AppointmentService._record_audit(appointment, "appointment.committed")
        AppointmentService._mirror_to_emr(db, appointment, result)
        return result

    @staticmethod
    def cancel_appointment(db: Session, appointment_id: int) -> Dict[str, Any]:
        """
        Cancel an appointment, freeing its slot.

        Idempotent: cancelling an already cancelled appointment returns it
        unchanged.

        Raises:
            NotFoundError: Unknown appointment
            ConflictError: Appointment is locked by another operation
        """
        appointment = AppointmentService._lock_appointment(db, appointment_id)

        if appointment.is_cancelled:
            logger.debug(f"Appointment {appointment_id} already cancelled")
            db.rollback()
            return AppointmentService._to_dict(appointment)

        appointment.status = APPOINTMENT_STATUS_CANCELLED
        appointment.cancelled_at = practice_now()
        AppointmentService._save_change(db, appointment, "cancel_appointment")
        logger.info(f"Cancelled appointment {appointment_id}")

        AppointmentService._record_audit(appointment, "appointment.cancelled")
        return AppointmentService._to_dict(appointment)

    @staticmethod
    def update_appointment_status(db: Session, appointment_id: int, new_status: str) -> Dict[str, Any]:
        """
        Mark a scheduled appointment completed or no-show.

        Raises:
            NotFoundError: Unknown appointment
            ValueError: Status not allowed or appointment already cancelled
        """
        if new_status not in UPDATABLE_STATUSES:
            raise ValueError(f"Status must be one of {', '.join(UPDATABLE_STATUSES)}, got '{new_status}'")

        appointment = AppointmentService._lock_appointment(db, appointment_id)
        if appointment.is_cancelled:
            db.rollback()
            raise ValueError(f"Appointment {appointment_id} is cancelled")

        if appointment.status == new_status:
            db.rollback()
            return AppointmentService._to_dict(appointment)

        appointment.status = new_status
        AppointmentService._save_change(db, appointment, "update_appointment_status")
        logger.info(f"Appointment {appointment_id} marked {new_status}")

        AppointmentService._record_audit(appointment, f"appointment.{new_status}")
        return AppointmentService._to_dict(appointment)

    @staticmethod
    def _find_by_idempotency_key(db: Session, idempotency_key: str) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.idempotency_key == idempotency_key).one_or_none()

    @staticmethod
    def _is_offered_slot(
        db: Session,
        provider_id: int,
        appointment_date: date_type,
        start_time: time,
        end_time: time,
        duration_minutes: int,
    ) -> bool:
        """True if the provider's templates and exception for the date produce exactly this slot."""
        return any(
            parse_time_string(slot.start) == start_time and parse_time_string(slot.end) == end_time
            for slot in AvailabilityCacheService.offered_slots(db, provider_id, duration_minutes, appointment_date)
        )

    @staticmethod
    def _save_change(db: Session, appointment: Appointment, operation: str) -> None:
        """Commit an appointment change together with the stale flag on its cached date."""
        try:
            AvailabilityCacheService.mark_stale(db, appointment.provider_id, appointment.appointment_date)
            db.commit()
        except STORE_FAILURES as e:
            logger.exception(f"Failed to {operation.replace('_', ' ')} {appointment.id}: {e}")
            db.rollback()
            raise StoreUnavailableError(details={"operation": operation}) from e

    @staticmethod
    def _lock_appointment(db: Session, appointment_id: int) -> Appointment:
        try:
            appointment = db.query(Appointment).filter(
                Appointment.id == appointment_id
            ).with_for_update(nowait=True).first()
        except OperationalError as e:
            # Lock held by a concurrent transaction
            db.rollback()
            raise ConflictError("Appointment is being modified, please retry") from e

        if appointment is None:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    @staticmethod
    def _record_audit(appointment: Appointment, event: str) -> None:
        AuditService.record(event, {
            "appointment_id": appointment.id,
            "provider_id": appointment.provider_id,
            "billing_provider_id": appointment.billing_provider_id,
            "payer_id": appointment.payer_id,
            "date": appointment.appointment_date,
            "start_time": appointment.start_time,
            "status": appointment.status,
        })

    @staticmethod
    def _mirror_to_emr(db: Session, appointment: Appointment, payload: Dict[str, Any]) -> None:
        if not EmrMirrorService.is_enabled():
            return
        if not EmrMirrorService.mirror_appointment(payload):
            return
        try:
            appointment.emr_synced_at = practice_now()
            db.commit()
        except Exception as e:
            logger.exception(f"Failed to record EMR sync for appointment {appointment.id}: {e}")
            db.rollback()

    @staticmethod
    def _to_dict(appointment: Appointment) -> Dict[str, Any]:
        return {
            "appointment_id": appointment.id,
            "provider_id": appointment.provider_id,
            "billing_provider_id": appointment.billing_provider_id,
            "payer_id": appointment.payer_id,
            "service_instance_id": appointment.service_instance_id,
            "patient_ref": appointment.patient_ref,
            "date": appointment.appointment_date.isoformat(),
            "start_time": format_time(appointment.start_time),
            "end_time": format_time(appointment.end_time),
            "duration_minutes": appointment.duration_minutes,
            "status": appointment.status,
            "resolution_kind": appointment.resolution_kind,
            "attending_provider_id": appointment.attending_provider_id,
            "requires_co_visit": appointment.requires_co_visit,
        }
