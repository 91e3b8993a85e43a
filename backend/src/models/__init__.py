# Package initialization
# Import all models to ensure relationships are properly established
from .provider import Provider
from .payer import Payer
from .provider_payer_contract import ProviderPayerContract
from .supervision_relationship import SupervisionRelationship
from .service_instance import ServiceInstance
from .availability_template import AvailabilityTemplate
from .availability_exception import AvailabilityException
from .availability_cache_entry import AvailabilityCacheEntry
from .appointment import Appointment

__all__ = [
    "Provider",
    "Payer",
    "ProviderPayerContract",
    "SupervisionRelationship",
    "ServiceInstance",
    "AvailabilityTemplate",
    "AvailabilityException",
    "AvailabilityCacheEntry",
    "Appointment",
]
