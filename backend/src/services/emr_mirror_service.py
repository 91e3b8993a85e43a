"""
EMR mirror sink.

Committed appointments are pushed to the downstream EMR/practice-management
system over HTTP after the booking transaction has committed. The mirror is
best-effort: failures are logged and never undo the appointment.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.config import EMR_MIRROR_TIMEOUT_SECONDS, EMR_MIRROR_URL

logger = logging.getLogger(__name__)


class EmrMirrorService:
    """Posts appointment snapshots to the configured EMR endpoint."""

    @staticmethod
    def is_enabled(url: Optional[str] = None) -> bool:
        return bool(url if url is not None else EMR_MIRROR_URL)

    @staticmethod
    def mirror_appointment(payload: Dict[str, Any], url: Optional[str] = None) -> bool:
        """
        Send an appointment snapshot to the EMR.

        Args:
            payload: Appointment fields to mirror
            url: Override for EMR_MIRROR_URL

        Returns:
            True if the EMR accepted the snapshot, False if mirroring is
            disabled or failed
        """
        target = url if url is not None else EMR_MIRROR_URL
        if not target:
            return False

        try:
            response = httpx.post(
                target,
                headers={"Content-Type": "application/json"},
                json=payload,
                timeout=EMR_MIRROR_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            logger.debug(f"Mirrored appointment {payload.get('appointment_id')} to EMR")
            return True
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"EMR rejected appointment {payload.get('appointment_id')}: "
                f"{e.response.status_code} - {e.response.text}"
            )
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Failed to mirror appointment {payload.get('appointment_id')} to EMR: {e}")
            return False
