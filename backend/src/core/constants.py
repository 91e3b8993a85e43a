"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:3000",      # Booking widget dev server
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Contract and supervision vocabularies
CONTRACT_STATUS_IN_NETWORK = "in_network"

SUPERVISION_LEVEL_NONE = "none"
SUPERVISION_LEVEL_SIGN_OFF_ONLY = "sign_off_only"
SUPERVISION_LEVEL_FIRST_VISIT_IN_PERSON = "first_visit_in_person"
SUPERVISION_LEVEL_CO_VISIT_REQUIRED = "co_visit_required"

PAYER_TYPE_SELF_PAY = "self_pay"

# Appointment statuses
APPOINTMENT_STATUS_SCHEDULED = "scheduled"
APPOINTMENT_STATUS_COMPLETED = "completed"
APPOINTMENT_STATUS_CANCELLED = "cancelled"
APPOINTMENT_STATUS_NO_SHOW = "no_show"

# Availability exceptions
EXCEPTION_TYPE_BLACKOUT = "blackout"
EXCEPTION_TYPE_REPLACEMENT = "replacement"

# Read-path retry settings (never applied to writes)
STORE_RETRY_MAX_ATTEMPTS = 3
STORE_RETRY_BASE_DELAY_SECONDS = 0.1

# Bookability health report horizons
CONTRACT_EXPIRY_WINDOWS_DAYS = (30, 60, 90)

# Maximum number of dates in one merged availability request
MAX_MERGED_AVAILABILITY_DAYS = 31

# Bookability resolution kinds, best first
RESOLUTION_DIRECT = "direct"
RESOLUTION_SUPERVISED = "supervised"
RESOLUTION_CO_VISIT = "co_visit"
RESOLUTION_PRIORITY = {
    RESOLUTION_DIRECT: 0,
    RESOLUTION_SUPERVISED: 1,
    RESOLUTION_CO_VISIT: 2,
}

# Availability cache lookup states
CACHE_STATUS_POPULATED = "populated"
CACHE_STATUS_PENDING = "pending"
