"""Typed rejections raised by the booking engine.

Every error here is user-facing: the API layer renders ``message`` and ``code``
with the class's HTTP status and never adds storage details.
"""


class AdmissionError(Exception):
    status_code = 400
    code = 'admission_error'
    default_message = 'The request could not be completed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(AdmissionError):
    code = 'invalid_input'
    default_message = 'Invalid request.'


class NotFound(AdmissionError):
    status_code = 404
    code = 'not_found'
    default_message = 'Not found.'


class OutsideAvailability(AdmissionError):
    code = 'outside_availability'
    default_message = "Selected time is outside doctor's availability."


class DayFullyBooked(AdmissionError):
    code = 'day_fully_booked'
    default_message = 'All slots for this day are fully booked. Please choose another day.'


class SlotConflict(AdmissionError):
    status_code = 409
    code = 'slot_conflict'
    default_message = 'Time slot not available.'


class Forbidden(AdmissionError):
    status_code = 403
    code = 'forbidden'
    default_message = 'Forbidden.'


class ConfirmedCannotCancel(AdmissionError):
    code = 'confirmed_cannot_cancel'
    default_message = 'Confirmed appointments cannot be cancelled here. Please contact the clinic.'
