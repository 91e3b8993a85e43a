"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple routers to keep the JSON shapes consistent.
"""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel


class SlotResponse(BaseModel):
    """One cached slot."""
    start: str  # Format: "HH:MM"
    end: str  # Format: "HH:MM"
    available: bool
    duration_minutes: int


class BookableProviderResponse(BaseModel):
    """Response model for one bookability resolution entry."""
    provider_id: int
    resolution_kind: str
    billing_provider_id: int
    rendering_provider_id: int
    attending_provider_id: Optional[int] = None
    supervision_level: Optional[str] = None
    effective_date: Optional[date] = None


class BookabilityResponse(BaseModel):
    """Response model for payer bookability."""
    payer_id: int
    on_date: date
    providers: List[BookableProviderResponse]


class ProviderAvailabilityResponse(BaseModel):
    """Response model for one cache key lookup."""
    provider_id: int
    service_instance_id: int
    date: date
    status: str  # 'populated' or 'pending'
    slots: List[SlotResponse]


class PopulateResponse(BaseModel):
    """Response model for on-demand population."""
    records_written: int
    dates: List[date]


class MergedSlotResponse(BaseModel):
    """One entry of the merged availability feed."""
    provider_id: int
    date: date
    slot: SlotResponse
    supervision_kind: str
    billing_provider_id: int
    attending_provider_id: Optional[int] = None
    requires_co_visit: bool
    service_instance_id: Optional[int] = None


class MergedAvailabilityResponse(BaseModel):
    """Response model for merged availability."""
    payer_id: int
    duration_minutes: int
    slots: List[MergedSlotResponse]
    slots_by_date: Dict[str, List[MergedSlotResponse]]


class AppointmentResponse(BaseModel):
    """Response model for appointment commit, cancel and status updates."""
    appointment_id: int
    provider_id: int
    billing_provider_id: int
    payer_id: int
    service_instance_id: Optional[int] = None
    patient_ref: str
    date: date
    start_time: str
    end_time: str
    duration_minutes: int
    status: str
    resolution_kind: Optional[str] = None
    attending_provider_id: Optional[int] = None
    requires_co_visit: Optional[bool] = None


class TemplateResponse(BaseModel):
    """Response model for one weekly template window."""
    id: int
    day_of_week: int
    start_time: str
    end_time: str
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None


class ExceptionResponse(BaseModel):
    """Response model for a date exception."""
    id: int
    provider_id: int
    exception_date: date
    exception_type: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None
