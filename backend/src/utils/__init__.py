"""
Utility modules for the booking engine.

This package contains shared helpers used across the application: civil
datetime handling, per-key locking and store retry helpers.
"""
