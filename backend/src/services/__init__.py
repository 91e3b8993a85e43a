"""
Services package for shared business logic.

This package contains service classes that encapsulate the booking logic
shared across API endpoints and background jobs.
"""

from .bookability_service import BookabilityService, ResolutionOptions
from .slot_generator import SlotGenerator
from .conflict_filter import ConflictFilter
from .availability_cache_service import AvailabilityCacheService
from .merged_availability_service import MergedAvailabilityService, MergeOptions
from .appointment_service import AppointmentService
from .availability_template_service import AvailabilityTemplateService
from .availability_population_service import AvailabilityPopulationJob, PopulationSummary
from .bookability_health_service import BookabilityHealthService

__all__ = [
    "BookabilityService",
    "ResolutionOptions",
    "SlotGenerator",
    "ConflictFilter",
    "AvailabilityCacheService",
    "MergedAvailabilityService",
    "MergeOptions",
    "AppointmentService",
    "AvailabilityTemplateService",
    "AvailabilityPopulationJob",
    "PopulationSummary",
    "BookabilityHealthService",
]
