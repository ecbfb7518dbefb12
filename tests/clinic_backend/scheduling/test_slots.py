from datetime import date, datetime

from clinic_backend.scheduling.availability import AvailabilityWindow, WeeklyAvailability
from clinic_backend.scheduling.slots import generate_slots, slot_key


MONDAY = date(2026, 1, 5)
BEFORE_MONDAY = datetime(2026, 1, 1, 8, 0)


def _availability(*windows) -> WeeklyAvailability:
    return WeeklyAvailability(AvailabilityWindow.parse(*window) for window in windows)


def _slots(availability, target_date=MONDAY, now=BEFORE_MONDAY) -> list[str]:
    return [str(slot) for slot in generate_slots(availability, target_date, now)]


def test_window_end_is_exclusive() -> None:
    assert _slots(_availability(('Mon', '09:00', '10:00'))) == ['09:00', '09:30']


def test_last_slot_must_fit_before_window_end() -> None:
    assert _slots(_availability(('Mon', '09:00', '10:45'))) == ['09:00', '09:30', '10:00']


def test_slots_step_from_window_start() -> None:
    assert _slots(_availability(('Mon', '09:15', '10:15'))) == ['09:15', '09:45']


def test_window_shorter_than_a_slot_yields_nothing() -> None:
    assert _slots(_availability(('Mon', '09:00', '09:20'))) == []


def test_overlapping_and_unordered_windows_are_merged() -> None:
    availability = _availability(('Mon', '10:00', '11:00'), ('Mon', '09:00', '10:30'))

    assert _slots(availability) == ['09:00', '09:30', '10:00', '10:30']


def test_only_windows_of_target_weekday_are_used() -> None:
    availability = _availability(('Tue', '09:00', '12:00'))

    assert _slots(availability) == []


def test_today_drops_times_not_after_now() -> None:
    availability = _availability(('Mon', '09:00', '11:00'))

    assert _slots(availability, now=datetime(2026, 1, 5, 9, 30, 0)) == ['10:00', '10:30']
    assert _slots(availability, now=datetime(2026, 1, 5, 9, 29, 59)) == ['09:30', '10:00', '10:30']


def test_past_filter_only_applies_to_today() -> None:
    availability = _availability(('Mon', '09:00', '10:00'))

    assert _slots(availability, now=datetime(2026, 1, 4, 23, 0)) == ['09:00', '09:30']


def test_generation_is_restartable() -> None:
    availability = _availability(('Mon', '09:00', '11:00'))

    assert _slots(availability) == _slots(availability)


def test_slot_key_floors_to_slot_grid() -> None:
    assert slot_key(datetime(2026, 1, 5, 14, 45, 30)) == datetime(2026, 1, 5, 14, 30)
    assert slot_key(datetime(2026, 1, 5, 14, 0)) == datetime(2026, 1, 5, 14, 0)
    assert slot_key(datetime(2026, 1, 5, 14, 29, 59, 999)) == datetime(2026, 1, 5, 14, 0)
