"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or any("pytest" in str(frame) for frame in __import__('inspect').stack(0))

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    # Try multiple possible locations for .env file
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent / ".env",  # backend/.env (when run from backend/src)
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # .env (when run from src)
        pathlib.Path.cwd() / ".env",  # .env in current directory
        pathlib.Path.cwd().parent / ".env",  # .env in parent directory
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Configuration constants with defaults
# Each can be overridden through the environment or a .env file
def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "postgresql://localhost/booking_engine_dev"
    )

DATABASE_URL = get_database_url()
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Civil timezone used for templates, slots and appointments when a provider has none
PRACTICE_TIMEZONE = os.getenv("PRACTICE_TIMEZONE", "America/Denver")

# Payer acceptance
ACCEPTED_PAYER_STATUS_CODES = [
    code.strip() for code in os.getenv("ACCEPTED_PAYER_STATUS_CODES", "approved,active").split(",") if code.strip()
]

# Patient-facing booking policy
MIN_BOOKING_NOTICE_HOURS = int(os.getenv("MIN_BOOKING_NOTICE_HOURS", "24"))
MAX_BOOKING_WINDOW_DAYS = int(os.getenv("MAX_BOOKING_WINDOW_DAYS", "90"))

# Availability cache population
POPULATION_MAX_WORKERS = int(os.getenv("POPULATION_MAX_WORKERS", "4"))
POPULATION_WINDOW_DAYS = int(os.getenv("POPULATION_WINDOW_DAYS", "30"))
POPULATION_CRON_HOUR = int(os.getenv("POPULATION_CRON_HOUR", "2"))
ENABLE_POPULATION_SCHEDULER = _get_bool("ENABLE_POPULATION_SCHEDULER", not is_testing)

# Downstream EMR mirror (empty URL disables mirroring)
EMR_MIRROR_URL = os.getenv("EMR_MIRROR_URL", "")
EMR_MIRROR_TIMEOUT_SECONDS = float(os.getenv("EMR_MIRROR_TIMEOUT_SECONDS", "10"))
