# pyright: reportMissingTypeStubs=false
"""
Availability API endpoints: cached slots, population, merged search and schedule editing.
"""

import logging
from collections import defaultdict
from datetime import date as date_type
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from api.responses import (
    ExceptionResponse, MergedAvailabilityResponse, MergedSlotResponse, PopulateResponse,
    ProviderAvailabilityResponse, SlotResponse, TemplateResponse,
)
from core.database import get_db
from models.availability_exception import AvailabilityException
from models.availability_template import AvailabilityTemplate
from services.availability_cache_service import AvailabilityCacheService
from services.availability_template_service import AvailabilityTemplateService
from services.merged_availability_service import MergedAvailabilityService, MergeOptions
from utils.datetime_utils import format_time, iter_dates, parse_date_string, parse_time_string

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class TimeInterval(BaseModel):
    """Time interval model for availability windows."""
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time_format(cls, v: str) -> str:
        parse_time_string(v)
        return v


class DayTemplatesRequest(BaseModel):
    """Request model for replacing one weekday's windows."""
    windows: List[TimeInterval] = []


class ExceptionRequest(BaseModel):
    """Request model for creating or replacing a date exception."""
    exception_type: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None


class PopulateRequest(BaseModel):
    """Request model for populating cache keys on demand."""
    provider_id: int
    service_instance_id: int
    start_date: date_type
    end_date: Optional[date_type] = None


def _template_response(template: AvailabilityTemplate) -> TemplateResponse:
    return TemplateResponse(
        id=template.id,
        day_of_week=template.day_of_week,
        start_time=format_time(template.start_time),
        end_time=format_time(template.end_time),
        effective_date=template.effective_date,
        expiration_date=template.expiration_date,
    )


def _exception_response(exception: AvailabilityException) -> ExceptionResponse:
    return ExceptionResponse(
        id=exception.id,
        provider_id=exception.provider_id,
        exception_date=exception.exception_date,
        exception_type=exception.exception_type,
        start_time=format_time(exception.start_time) if exception.start_time else None,
        end_time=format_time(exception.end_time) if exception.end_time else None,
        reason=exception.reason,
    )


# ===== Cached Availability =====

@router.get("/providers/{provider_id}", summary="Get cached availability for one provider")
async def get_provider_availability(
    provider_id: int,
    service_instance_id: int = Query(..., description="Service instance whose duration defines the slots"),
    date: str = Query(..., description="Date in YYYY-MM-DD format"),
    db: Session = Depends(get_db),
) -> ProviderAvailabilityResponse:
    """
    Read the cached slots for one provider, service instance and date.

    Returns status 'pending' with no slots when the key has not been populated yet.
    """
    target_date = parse_date_string(date)
    lookup = AvailabilityCacheService.get(db, provider_id, service_instance_id, target_date)
    return ProviderAvailabilityResponse(
        provider_id=provider_id,
        service_instance_id=service_instance_id,
        date=target_date,
        status=lookup.status,
        slots=[SlotResponse(**slot.to_dict()) for slot in lookup.slots],
    )


@router.post("/populate", summary="Populate cached availability")
async def populate_availability(
    request: PopulateRequest,
    db: Session = Depends(get_db),
) -> PopulateResponse:
    """Recompute cache entries for a provider and service instance over a date range."""
    result = AvailabilityCacheService.populate(
        db, request.provider_id, request.service_instance_id, request.start_date, request.end_date
    )
    return PopulateResponse(records_written=result.records_written, dates=result.dates)


@router.get("/merged", summary="Search merged availability across providers")
async def get_merged_availability(
    payer_id: int = Query(..., description="Payer the patient books under"),
    date: str = Query(..., description="First date in YYYY-MM-DD format"),
    duration_minutes: int = Query(..., gt=0, description="Appointment length in minutes"),
    end_date: Optional[str] = Query(None, description="Last date (inclusive), defaults to date"),
    language: Optional[str] = Query(None, description="Language the provider must speak"),
    provider_id: Optional[int] = Query(None, description="Restrict to one provider"),
    per_provider_limit: Optional[int] = Query(None, ge=1, description="Maximum slots per provider"),
    require_accepts_new_patients: bool = Query(False, description="Only providers accepting new patients"),
    db: Session = Depends(get_db),
) -> MergedAvailabilityResponse:
    """
    Merged, time-ordered availability across every provider bookable under the payer.

    Co-visit providers are included and flagged with requires_co_visit.
    """
    start = parse_date_string(date)
    end = parse_date_string(end_date) if end_date else start
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before date"
        )

    merged = MergedAvailabilityService.get_merged_availability(
        db,
        payer_id,
        list(iter_dates(start, end)),
        duration_minutes,
        language=language,
        options=MergeOptions(
            provider_id=provider_id,
            per_provider_limit=per_provider_limit,
            require_accepts_new_patients=require_accepts_new_patients,
        ),
    )

    slots = [MergedSlotResponse(**item.to_dict()) for item in merged]
    slots_by_date: Dict[str, List[MergedSlotResponse]] = defaultdict(list)
    for slot in slots:
        slots_by_date[slot.date.isoformat()].append(slot)

    return MergedAvailabilityResponse(
        payer_id=payer_id,
        duration_minutes=duration_minutes,
        slots=slots,
        slots_by_date=dict(slots_by_date),
    )


# ===== Schedule Editing =====

@router.get("/providers/{provider_id}/templates", summary="List a provider's weekly templates")
async def list_templates(
    provider_id: int,
    db: Session = Depends(get_db),
) -> List[TemplateResponse]:
    templates = AvailabilityTemplateService.list_templates(db, provider_id)
    return [_template_response(template) for template in templates]


@router.put("/providers/{provider_id}/templates/{day_of_week}", summary="Replace one weekday's windows")
async def set_day_templates(
    provider_id: int,
    day_of_week: int,
    request: DayTemplatesRequest,
    db: Session = Depends(get_db),
) -> List[TemplateResponse]:
    """
    Replace every window of a weekday (0=Monday ... 6=Sunday).

    Cached availability for future dates on that weekday is invalidated.
    """
    windows = [
        (parse_time_string(interval.start_time), parse_time_string(interval.end_time))
        for interval in request.windows
    ]
    templates = AvailabilityTemplateService.set_day_templates(db, provider_id, day_of_week, windows)
    return [_template_response(template) for template in templates]


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a template")
async def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
) -> Response:
    AvailabilityTemplateService.delete_template(db, template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/providers/{provider_id}/exceptions/{exception_date}", summary="Get a date exception")
async def get_exception(
    provider_id: int,
    exception_date: str,
    db: Session = Depends(get_db),
) -> ExceptionResponse:
    exception = AvailabilityTemplateService.get_exception(db, provider_id, parse_date_string(exception_date))
    if exception is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Availability exception not found"
        )
    return _exception_response(exception)


@router.put("/providers/{provider_id}/exceptions/{exception_date}", summary="Create or replace a date exception")
async def upsert_exception(
    provider_id: int,
    exception_date: str,
    request: ExceptionRequest,
    db: Session = Depends(get_db),
) -> ExceptionResponse:
    """Blackout the date or replace its windows with a single window."""
    exception = AvailabilityTemplateService.upsert_exception(
        db,
        provider_id,
        parse_date_string(exception_date),
        request.exception_type,
        start_time=parse_time_string(request.start_time) if request.start_time else None,
        end_time=parse_time_string(request.end_time) if request.end_time else None,
        reason=request.reason,
    )
    return _exception_response(exception)


@router.delete(
    "/providers/{provider_id}/exceptions/{exception_date}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a date exception",
)
async def delete_exception(
    provider_id: int,
    exception_date: str,
    db: Session = Depends(get_db),
) -> Response:
    if not AvailabilityTemplateService.delete_exception(db, provider_id, parse_date_string(exception_date)):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Availability exception not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
