# tests/test_booking_rules.py
import pytest

from app.core.config import get_settings
from app.core.errors import InvalidError
from app.schemas.booking import AttendeeIn
from app.services.booking_rules import BookingRules
from app.services.interval import Interval
from helpers import FrozenClock, at


@pytest.fixture
def rules() -> BookingRules:
    return BookingRules(get_settings(), FrozenClock())


@pytest.mark.parametrize(
    "start, end",
    [
        (at(10), at(10, 15)),  # minimum duration
        (at(9), at(17)),  # maximum duration
        (at(7), at(8)),  # opening hour
        (at(20), at(21)),  # end may equal the closing hour
    ],
)
def test_valid_intervals_pass(rules, start, end):
    rules.validate_interval(Interval(start, end))


@pytest.mark.parametrize(
    "start, end, message",
    [
        (at(10), at(10, 10), "at least 15 minutes"),
        (at(9), at(17, 15), "cannot exceed 8 hours"),
        (at(6, 30), at(7, 30), "business hours"),
        (at(20, 30), at(21, 15), "business hours"),
        (at(20), at(9, days=1), "cannot exceed"),
        (at(10, days=91), at(11, days=91), "days in advance"),
        (at(8, 2), at(9), "minutes from now"),
    ],
)
def test_invalid_intervals_rejected(rules, start, end, message):
    with pytest.raises(InvalidError) as exc_info:
        rules.validate_interval(Interval(start, end))
    assert message in exc_info.value.message


def test_lead_time_only_applies_to_new_bookings(rules):
    """
    An existing booking that is about to start can still be edited.
    """
    soon = Interval(at(8, 2), at(9))

    rules.validate_interval(soon, is_new=False)
    with pytest.raises(InvalidError):
        rules.validate_interval(soon, is_new=True)


def test_interval_spanning_midnight_rejected(rules):
    with pytest.raises(InvalidError) as exc_info:
        rules.validate_interval(Interval(at(20), at(0, 30, days=1)))
    assert "business hours" in exc_info.value.message


def test_title_length_limits(rules):
    rules.validate_details("abc", None, [])

    with pytest.raises(InvalidError):
        rules.validate_details("ab", None, [])
    with pytest.raises(InvalidError):
        rules.validate_details("x" * 201, None, [])
    with pytest.raises(InvalidError):
        rules.validate_details("   ab   ", None, [])


def test_description_length_limit(rules):
    rules.validate_details("Planning", "d" * 2000, [])

    with pytest.raises(InvalidError):
        rules.validate_details("Planning", "d" * 2001, [])


def test_attendee_limits(rules):
    attendees = [AttendeeIn(email=f"user{i}@example.com") for i in range(50)]
    rules.validate_details("Planning", None, attendees)

    attendees.append(AttendeeIn(email="one.too.many@example.com"))
    with pytest.raises(InvalidError):
        rules.validate_details("Planning", None, attendees)


def test_duplicate_attendee_emails_rejected_case_insensitively(rules):
    attendees = [
        AttendeeIn(email="Jane.Doe@example.com"),
        AttendeeIn(email="jane.doe@EXAMPLE.com"),
    ]

    with pytest.raises(InvalidError) as exc_info:
        rules.validate_details("Planning", None, attendees)
    assert "Duplicate" in exc_info.value.message


def test_attendee_email_must_look_like_an_address():
    with pytest.raises(ValueError):
        AttendeeIn(email="not-an-email")
