"""South African public holidays, used to bulk-block practice days"""
from datetime import date, timedelta
from typing import List, Tuple

from dateutil.easter import easter

FIXED_HOLIDAYS = [
    (1, 1, "New Year's Day"),
    (3, 21, "Human Rights Day"),
    (4, 27, "Freedom Day"),
    (5, 1, "Workers' Day"),
    (6, 16, "Youth Day"),
    (8, 9, "National Women's Day"),
    (9, 24, "Heritage Day"),
    (12, 16, "Day of Reconciliation"),
    (12, 25, "Christmas Day"),
    (12, 26, "Day of Goodwill"),
]


def public_holidays(year: int) -> List[Tuple[date, str]]:
    """
    Public holidays for a year, sorted by date.

    Easter-dependent days are computed per year. A holiday falling on a Sunday
    is observed on the following Monday (Public Holidays Act, s2(1)).
    """
    easter_sunday = easter(year)
    holidays = [(date(year, month, day), name) for month, day, name in FIXED_HOLIDAYS]
    holidays.append((easter_sunday - timedelta(days=2), "Good Friday"))
    holidays.append((easter_sunday + timedelta(days=1), "Family Day"))

    taken = {day for day, _ in holidays}
    observed = []
    for day, name in holidays:
        if day.weekday() == 6:
            monday = day + timedelta(days=1)
            if monday not in taken:
                observed.append((monday, f"{name} (observed)"))
                taken.add(monday)

    return sorted(holidays + observed)
