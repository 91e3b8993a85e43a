"""
Appointment API endpoints.

Commit answers 201 with the new appointment, 409 when the slot was taken in
the meantime and 503 when the store failed (nothing was booked).
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.responses import AppointmentResponse
from core.database import get_db
from services.appointment_service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter()


class AppointmentCreateRequest(BaseModel):
    """Request model for committing an appointment."""
    provider_id: int
    payer_id: int
    start: datetime  # Naive values are read as the provider's local time
    duration_minutes: int = Field(gt=0)
    patient_ref: str = Field(min_length=1, max_length=255)
    service_instance_id: Optional[int] = None
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=255)


class AppointmentStatusRequest(BaseModel):
    """Request model for marking an appointment completed or no-show."""
    status: str


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
    responses={
        409: {"description": "Slot no longer available"},
        422: {"description": "Provider not bookable under the payer"},
        503: {"description": "Booking store unavailable"},
    },
)
async def create_appointment(
    request: AppointmentCreateRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key", max_length=255),
    db: Session = Depends(get_db),
) -> AppointmentResponse:
    """
    Book an appointment.

    A retry carrying the same idempotency key (body field or Idempotency-Key
    header, body wins) returns the appointment booked by the first attempt.
    """
    result = AppointmentService.commit_appointment(
        db,
        provider_id=request.provider_id,
        payer_id=request.payer_id,
        start=request.start,
        duration_minutes=request.duration_minutes,
        patient_ref=request.patient_ref,
        service_instance_id=request.service_instance_id,
        idempotency_key=request.idempotency_key or idempotency_key,
    )
    return AppointmentResponse(**result)


@router.post("/{appointment_id}/cancel", summary="Cancel an appointment")
async def cancel_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
) -> AppointmentResponse:
    """Cancel an appointment. Cancelling twice is a no-op."""
    return AppointmentResponse(**AppointmentService.cancel_appointment(db, appointment_id))


@router.post("/{appointment_id}/status", summary="Mark an appointment completed or no-show")
async def update_appointment_status(
    appointment_id: int,
    request: AppointmentStatusRequest,
    db: Session = Depends(get_db),
) -> AppointmentResponse:
    return AppointmentResponse(
        **AppointmentService.update_appointment_status(db, appointment_id, request.status)
    )
