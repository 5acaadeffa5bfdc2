"""pt-tracker public surface."""

from pt_tracker.client import DEFAULT_TRACKER_BASE, TrackerClient
from pt_tracker.errors import (
    PTError,
    TokenValidationError,
    TrackerAuthError,
    TrackerResponseError,
    TrackerUnavailableError,
)
from pt_tracker.types import TokenInfo

__all__ = [
    "PTError",
    "TokenValidationError",
    "TrackerAuthError",
    "TrackerResponseError",
    "TrackerUnavailableError",
    "TrackerClient",
    "DEFAULT_TRACKER_BASE",
    "TokenInfo",
]
