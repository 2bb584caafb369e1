"""Core components for Apex."""

from .cache import QueryCache, optimistic
from .config import Config
from .errors import (
    ApexError,
    BackendError,
    BikeInUseError,
    ExportError,
    NotAuthenticatedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    friendly_error_message,
)
from .preferences import Preferences
from .recorder import RecorderState, RideRecorder, RideSummary
from .toasts import ToastLevel, Toaster

__all__ = [
    "QueryCache",
    "optimistic",
    "Config",
    "ApexError",
    "BackendError",
    "BikeInUseError",
    "ExportError",
    "NotAuthenticatedError",
    "NotFoundError",
    "PermissionDeniedError",
    "ValidationError",
    "friendly_error_message",
    "Preferences",
    "RecorderState",
    "RideRecorder",
    "RideSummary",
    "ToastLevel",
    "Toaster",
]
