"""
Shared type definitions for the booking engine backend.

This module contains dataclasses that are used across multiple services.
"""

from shared_types.availability import (
    BookableProvider,
    CacheLookup,
    MergedSlot,
    PopulationResult,
    SlotData,
)

__all__ = ["BookableProvider", "CacheLookup", "MergedSlot", "PopulationResult", "SlotData"]
