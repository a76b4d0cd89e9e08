"""Utility functions."""

from clinic_scheduling.utils.time import (
    clinic_now,
    format_datetime,
    start_of_day,
    to_clinic_time,
)

__all__ = ["clinic_now", "to_clinic_time", "start_of_day", "format_datetime"]
