"""
Bookability API endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.responses import BookabilityResponse, BookableProviderResponse
from core.database import get_db
from services.bookability_service import BookabilityService, ResolutionOptions
from utils.datetime_utils import parse_date_string, practice_now

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{payer_id}", summary="List providers bookable under a payer")
async def get_bookable_providers(
    payer_id: int,
    date: Optional[str] = Query(None, description="Date in YYYY-MM-DD format (defaults to today)"),
    require_accepts_new_patients: bool = Query(False, description="Only providers accepting new patients"),
    db: Session = Depends(get_db),
) -> BookabilityResponse:
    """
    Resolve the providers bookable under a payer on a date.

    Each entry carries the resolution kind (direct, supervised or co_visit)
    and the billing/rendering provider pair to use when booking.
    """
    on_date = parse_date_string(date) if date else practice_now().date()
    providers = BookabilityService.resolve_bookability(
        db,
        payer_id,
        ResolutionOptions(on_date=on_date, require_accepts_new_patients=require_accepts_new_patients),
    )
    return BookabilityResponse(
        payer_id=payer_id,
        on_date=on_date,
        providers=[BookableProviderResponse(**entry.to_dict()) for entry in providers],
    )
