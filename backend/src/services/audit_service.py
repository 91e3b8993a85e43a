"""
Audit event sink.

Booking events are written as structured records on the dedicated `audit`
logger so deployments can route them separately from application logs.
Emitting an event never fails the operation that produced it.
"""

import json
import logging
from typing import Any, Dict, Optional

from utils.datetime_utils import practice_now

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")


class AuditService:
    """Best-effort emitter for booking audit events."""

    @staticmethod
    def record(event: str, details: Optional[Dict[str, Any]] = None) -> bool:
        """
        Emit one audit event.

        Args:
            event: Event name, e.g. "appointment.committed"
            details: JSON-serializable event payload

        Returns:
            True if the event was emitted, False if emitting failed
        """
        payload = {
            "event": event,
            "at": practice_now().isoformat(),
            **(details or {}),
        }
        try:
            audit_logger.info(json.dumps(payload, default=str, sort_keys=True))
            return True
        except Exception as e:
            logger.warning(f"Failed to emit audit event {event}: {e}")
            return False
