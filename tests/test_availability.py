from __future__ import annotations

from datetime import datetime, timedelta, timezone

from booknest.constants import EventStatus
from booknest.models import Event
from booknest.services.availability import (
    availability_label,
    compute_availability,
    reservation_refusal,
    validate_seat_request,
)

NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)
FUTURE = NOW + timedelta(days=3)
PAST = NOW - timedelta(days=3)


def _event(available: int, maximum: int = 10) -> Event:
    return Event(
        event_id="e1",
        title="Concert",
        description="",
        date=FUTURE,
        location="Lyon",
        max_participants=maximum,
        available_seats=available,
        status=EventStatus.PUBLISHED,
    )


def test_open_event_can_be_reserved():
    a = compute_availability(6, 10, FUTURE, EventStatus.PUBLISHED, now=NOW)
    assert a.can_reserve
    assert not a.is_full
    assert not a.is_low_availability
    assert abs(a.fill_ratio - 0.4) < 1e-9


def test_low_availability_threshold_is_inclusive():
    assert compute_availability(2, 10, FUTURE, EventStatus.PUBLISHED, now=NOW).is_low_availability
    assert not compute_availability(3, 10, FUTURE, EventStatus.PUBLISHED, now=NOW).is_low_availability


def test_full_event_is_not_low_and_not_reservable():
    a = compute_availability(0, 10, FUTURE, EventStatus.PUBLISHED, now=NOW)
    assert a.is_full
    assert not a.is_low_availability
    assert not a.can_reserve
    assert a.fill_ratio == 1.0
    assert availability_label(a) == "Complet"


def test_past_or_undated_event_is_not_reservable():
    assert compute_availability(5, 10, PAST, EventStatus.PUBLISHED, now=NOW).is_past_event
    undated = compute_availability(5, 10, None, EventStatus.PUBLISHED, now=NOW)
    assert undated.is_past_event
    assert not undated.can_reserve


def test_unpublished_event_is_not_reservable():
    for status in (EventStatus.DRAFT, EventStatus.CANCELED):
        a = compute_availability(5, 10, FUTURE, status, now=NOW)
        assert not a.can_reserve
        assert reservation_refusal(a, status) == "Cet événement n'est pas ouvert aux réservations"


def test_zero_capacity_counts_as_full_ratio():
    a = compute_availability(0, 0, FUTURE, EventStatus.PUBLISHED, now=NOW)
    assert a.fill_ratio == 1.0
    assert not a.can_reserve


def test_seat_request_bounds():
    event = _event(available=2)
    assert validate_seat_request(0, event) == "Le nombre de places doit être au moins 1"
    assert validate_seat_request(None, event) == "Le nombre de places doit être au moins 1"
    assert validate_seat_request(3, event) == "Seulement 2 places disponibles"
    assert validate_seat_request(2, event) is None


def test_refusal_messages_follow_priority():
    past = compute_availability(5, 10, PAST, EventStatus.PUBLISHED, now=NOW)
    assert reservation_refusal(past, EventStatus.PUBLISHED) == "Cet événement a déjà eu lieu"
    full = compute_availability(0, 10, FUTURE, EventStatus.PUBLISHED, now=NOW)
    assert reservation_refusal(full, EventStatus.PUBLISHED) == (
        "Il n'y a plus de places disponibles pour cet événement"
    )
    open_ = compute_availability(4, 10, FUTURE, EventStatus.PUBLISHED, now=NOW)
    assert reservation_refusal(open_, EventStatus.PUBLISHED) is None


def test_label_flags_low_availability():
    a = compute_availability(1, 10, FUTURE, EventStatus.PUBLISHED, now=NOW)
    assert availability_label(a) == "🔥 Plus que 1/10 places disponibles"


def test_full_and_low_are_mutually_exclusive():
    for maximum in (0, 1, 5, 10):
        for available in range(0, maximum + 1):
            a = compute_availability(available, maximum, FUTURE, EventStatus.PUBLISHED, now=NOW)
            assert not (a.is_full and a.is_low_availability)
            assert a.is_full == (available == 0)
