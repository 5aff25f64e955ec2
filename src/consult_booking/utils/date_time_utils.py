"""Date and time utility functions"""
from datetime import datetime, date, time, timedelta
from typing import Callable, Union
import pytz

from consult_booking.config import config

# Practice timezone
PRACTICE_TZ = pytz.timezone(config.practice_timezone)

Clock = Callable[[], datetime]


def get_practice_now() -> datetime:
    """Get current datetime in the practice timezone"""
    return datetime.now(PRACTICE_TZ)


def to_practice_time(moment: datetime) -> datetime:
    """Convert an aware datetime to practice-local time (naive values are assumed local)"""
    if moment.tzinfo is None:
        return PRACTICE_TZ.localize(moment)
    return moment.astimezone(PRACTICE_TZ)


def parse_date(value: Union[str, date]) -> date:
    """Accept a date or a YYYY-MM-DD string"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def parse_time(value: Union[str, time]) -> time:
    """Accept a time or an HH:MM / HH:MM:SS string"""
    if isinstance(value, time):
        return value.replace(microsecond=0)
    text = value.strip()
    fmt = "%H:%M:%S" if text.count(":") == 2 else "%H:%M"
    return datetime.strptime(text, fmt).time()


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def format_time_for_display(time_str: Union[str, time]) -> str:
    """Convert 24-hour time to 12-hour display format"""
    time_obj = parse_time(time_str)
    hour = time_obj.hour
    minute = time_obj.minute

    if hour == 0:
        return f"12:{minute:02d} AM" if minute else "12 AM"
    elif hour < 12:
        return f"{hour}:{minute:02d} AM" if minute else f"{hour} AM"
    elif hour == 12:
        return f"12:{minute:02d} PM" if minute else "12 PM"
    else:
        return f"{hour-12}:{minute:02d} PM" if minute else f"{hour-12} PM"


def get_date_label(slot_date: date, today: date) -> str:
    """Get human-readable date label with today/tomorrow"""
    if slot_date == today:
        return f"today ({slot_date.strftime('%A, %B %d')})"
    elif slot_date == today + timedelta(days=1):
        return f"tomorrow ({slot_date.strftime('%A, %B %d')})"
    else:
        return slot_date.strftime("%A, %B %d")
