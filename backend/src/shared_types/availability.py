"""
Shared types for availability-related functionality.

This module contains shared data classes used across the bookability,
cache, merge and commit services to keep slot and resolution data
consistent between them.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from core.constants import CACHE_STATUS_PENDING, CACHE_STATUS_POPULATED


@dataclass
class SlotData:
    """
    A concrete, fixed-duration slot on one date.

    Start/end are HH:MM civil times in the provider's timezone. This is the
    shape stored in the availability cache.
    """
    start: str  # Format: "HH:MM"
    end: str  # Format: "HH:MM"
    duration_minutes: int
    available: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format. Key order is fixed so payloads are stable."""
        return {
            "start": self.start,
            "end": self.end,
            "available": self.available,
            "duration_minutes": self.duration_minutes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SlotData":
        """Create SlotData from a cached dictionary."""
        start_val = data.get("start")
        end_val = data.get("end")
        duration_val = data.get("duration_minutes")

        if not isinstance(start_val, str):
            raise ValueError(f"start must be str, got {type(start_val)}")
        if not isinstance(end_val, str):
            raise ValueError(f"end must be str, got {type(end_val)}")
        if not isinstance(duration_val, int):
            raise ValueError(f"duration_minutes must be int, got {type(duration_val)}")

        return cls(
            start=start_val,
            end=end_val,
            duration_minutes=duration_val,
            available=bool(data.get("available", True)),
        )


@dataclass(frozen=True)
class BookableProvider:
    """One provider bookable under a payer, with the billing/rendering pair to use."""
    provider_id: int
    resolution_kind: str  # 'direct', 'supervised' or 'co_visit'
    billing_provider_id: int
    rendering_provider_id: int
    attending_provider_id: Optional[int] = None
    supervision_level: Optional[str] = None
    effective_date: Optional[date] = None

    @property
    def requires_co_visit(self) -> bool:
        return self.resolution_kind == "co_visit"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "resolution_kind": self.resolution_kind,
            "billing_provider_id": self.billing_provider_id,
            "rendering_provider_id": self.rendering_provider_id,
            "attending_provider_id": self.attending_provider_id,
            "supervision_level": self.supervision_level,
            "effective_date": self.effective_date.isoformat() if self.effective_date else None,
        }


@dataclass
class CacheLookup:
    """Result of reading one cache key."""
    status: str
    slots: List[SlotData] = field(default_factory=list)

    @property
    def is_pending(self) -> bool:
        return self.status == CACHE_STATUS_PENDING

    @classmethod
    def pending(cls) -> "CacheLookup":
        return cls(status=CACHE_STATUS_PENDING)

    @classmethod
    def populated(cls, slots: List[SlotData]) -> "CacheLookup":
        return cls(status=CACHE_STATUS_POPULATED, slots=slots)


@dataclass
class PopulationResult:
    """Outcome of populating one provider/service instance over a date range."""
    records_written: int = 0
    dates: List[date] = field(default_factory=list)


@dataclass
class MergedSlot:
    """One entry of the patient-facing merged availability feed."""
    provider_id: int
    date: date
    slot: SlotData
    supervision_kind: str
    billing_provider_id: int
    attending_provider_id: Optional[int] = None
    service_instance_id: Optional[int] = None

    @property
    def requires_co_visit(self) -> bool:
        return self.supervision_kind == "co_visit"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "date": self.date.isoformat(),
            "slot": self.slot.to_dict(),
            "supervision_kind": self.supervision_kind,
            "billing_provider_id": self.billing_provider_id,
            "attending_provider_id": self.attending_provider_id,
            "requires_co_visit": self.requires_co_visit,
            "service_instance_id": self.service_instance_id,
        }
