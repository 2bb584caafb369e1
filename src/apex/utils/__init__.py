"""Utility functions for Apex."""

from .formatting import format_duration, format_km, format_short_date, to_title_case

__all__ = ["format_duration", "format_km", "format_short_date", "to_title_case"]
