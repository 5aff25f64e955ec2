"""Utils module for the booking engine"""
from .date_time_utils import (
    format_time_for_display,
    get_practice_now,
    get_date_label,
    parse_date,
    parse_time,
)
from .holidays import public_holidays

__all__ = [
    "format_time_for_display",
    "get_practice_now",
    "get_date_label",
    "parse_date",
    "parse_time",
    "public_holidays",
]
