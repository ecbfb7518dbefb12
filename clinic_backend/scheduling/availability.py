"""Weekly availability of a doctor and the calendar helpers shared by booking."""

from dataclasses import dataclass
from datetime import date, datetime, time

from clinic_backend.core.errors import InvalidInput


DAY_LABELS = ('Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat')
MINUTES_PER_DAY = 24 * 60


def weekday_label(value: date | datetime) -> str:
    """Return the ``Sun``..``Sat`` label of a date; the only weekday mapping in the app."""
    return DAY_LABELS[value.isoweekday() % 7]


def now_local() -> datetime:
    return datetime.now()


@dataclass(frozen=True, order=True)
class ClockTime:
    """A wall-clock time of day held as minutes since midnight."""

    minutes: int

    def __post_init__(self) -> None:
        if not 0 <= self.minutes < MINUTES_PER_DAY:
            raise InvalidInput(f'Time of day out of range: {self.minutes} minutes.')

    @classmethod
    def parse(cls, value: str) -> 'ClockTime':
        try:
            hours, minutes = value.strip().split(':')
            hours_int, minutes_int = int(hours), int(minutes)
        except (AttributeError, ValueError) as exc:
            raise InvalidInput(f'Invalid time {value!r}, expected HH:MM.') from exc

        if not (0 <= hours_int < 24 and 0 <= minutes_int < 60):
            raise InvalidInput(f'Invalid time {value!r}, expected HH:MM.')

        return cls(hours_int * 60 + minutes_int)

    @classmethod
    def from_time(cls, value: time | datetime) -> 'ClockTime':
        return cls(value.hour * 60 + value.minute)

    def to_time(self) -> time:
        return time(self.minutes // 60, self.minutes % 60)

    def __str__(self) -> str:
        return f'{self.minutes // 60:02d}:{self.minutes % 60:02d}'


@dataclass(frozen=True)
class AvailabilityWindow:
    day: str
    start: ClockTime
    end: ClockTime

    def __post_init__(self) -> None:
        if self.day not in DAY_LABELS:
            raise InvalidInput(f'Invalid day {self.day!r}, expected one of {", ".join(DAY_LABELS)}.')
        if self.start >= self.end:
            raise InvalidInput(
                f'Availability window on {self.day} must start before it ends ({self.start}-{self.end}).'
            )

    @classmethod
    def parse(cls, day: str, start: str, end: str) -> 'AvailabilityWindow':
        return cls(day=day.strip().title(), start=ClockTime.parse(start), end=ClockTime.parse(end))

    def contains(self, clock: ClockTime) -> bool:
        # Half-open: a window ending at 17:00 does not take a 17:00 start.
        return self.start <= clock < self.end

    def as_dict(self) -> dict[str, str]:
        return {'day': self.day, 'start': str(self.start), 'end': str(self.end)}


class WeeklyAvailability:
    """Ordered recurring windows of one doctor; several may share a weekday."""

    def __init__(self, windows=()):
        self.windows = tuple(windows)

    @classmethod
    def from_rows(cls, rows) -> 'WeeklyAvailability':
        return cls(
            AvailabilityWindow(day=row.day, start=ClockTime(row.start_minute), end=ClockTime(row.end_minute))
            for row in rows
        )

    def windows_for(self, day: str) -> list[AvailabilityWindow]:
        return [window for window in self.windows if window.day == day]

    def is_available(self, moment: datetime) -> bool:
        clock = ClockTime.from_time(moment)
        return any(window.contains(clock) for window in self.windows_for(weekday_label(moment)))

    def __bool__(self) -> bool:
        return bool(self.windows)

    def __iter__(self):
        return iter(self.windows)
