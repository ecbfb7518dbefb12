from datetime import date, datetime, timedelta
from typing import Iterator

from clinic_backend.scheduling.availability import ClockTime, WeeklyAvailability, now_local, weekday_label


SLOT_MINUTES = 30
OVERLAP_WINDOW = timedelta(minutes=SLOT_MINUTES)


def iterate_window_starts(start: ClockTime, end: ClockTime) -> Iterator[ClockTime]:
    current = start.minutes
    while current + SLOT_MINUTES <= end.minutes:
        yield ClockTime(current)
        current += SLOT_MINUTES


def generate_slots(
    availability: WeeklyAvailability,
    target_date: date,
    now: datetime | None = None,
) -> Iterator[ClockTime]:
    """Yield the bookable start times of ``target_date`` in ascending order.

    Overlapping or unordered windows are merged, so each start appears once.
    On the current day only starts strictly after ``now`` are kept.
    """
    now = now or now_local()

    starts: set[ClockTime] = set()
    for window in availability.windows_for(weekday_label(target_date)):
        starts.update(iterate_window_starts(window.start, window.end))

    if target_date == now.date():
        current = ClockTime.from_time(now)
        starts = {start for start in starts if start > current}

    yield from sorted(starts)


def slot_key(moment: datetime) -> datetime:
    """Floor ``moment`` to the slot grid; two active bookings never share a key."""
    floored_minute = moment.minute - moment.minute % SLOT_MINUTES
    return moment.replace(minute=floored_minute, second=0, microsecond=0)
