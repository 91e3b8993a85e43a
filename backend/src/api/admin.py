"""
Admin API endpoints for bookability configuration health.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.database import get_db
from services.bookability_health_service import BookabilityHealthService
from utils.datetime_utils import parse_date_string

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/bookability/health", summary="Bookability configuration health report")
async def get_bookability_health(
    date: Optional[str] = Query(None, description="Date in YYYY-MM-DD format (defaults to today)"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Report providers nobody can book, accepted payers with nobody to book,
    contracts expiring within 30/60/90 days and bookable providers without a
    direct contract.
    """
    on_date = parse_date_string(date) if date else None
    return BookabilityHealthService.get_health_report(db, on_date)
