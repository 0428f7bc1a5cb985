from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from booknest.constants import EventStatus, ReservationStatus, Role
from booknest.models import Event, Reservation
from booknest.services.lifecycle import (
    ReservationAction,
    allowed_actions,
    allowed_event_transitions,
    can_download_ticket,
    ensure_allowed,
    is_terminal,
    target_status,
)
from booknest.utils.errors import InvalidTransition

NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


def _reservation(status: ReservationStatus, days_ahead: float = 5) -> Reservation:
    event = Event(
        event_id="e1",
        title="Concert",
        description="",
        date=NOW + timedelta(days=days_ahead),
        location="Lyon",
        max_participants=10,
        available_seats=5,
        status=EventStatus.PUBLISHED,
    )
    return Reservation(
        reservation_id="r1",
        user_id="u1",
        event_id="e1",
        number_of_seats=2,
        status=status,
        event=event,
    )


def test_admin_moderates_pending():
    actions = allowed_actions(_reservation(ReservationStatus.PENDING), Role.ADMIN, now=NOW)
    assert actions == [ReservationAction.CONFIRM, ReservationAction.REFUSE]
    assert target_status(ReservationAction.CONFIRM) == ReservationStatus.CONFIRMED
    assert target_status(ReservationAction.REFUSE) == ReservationStatus.REFUSED


def test_participant_cannot_touch_pending():
    assert allowed_actions(_reservation(ReservationStatus.PENDING), Role.PARTICIPANT, now=NOW) == []


def test_participant_cancels_confirmed_future_only():
    future = _reservation(ReservationStatus.CONFIRMED, days_ahead=5)
    past = _reservation(ReservationStatus.CONFIRMED, days_ahead=-1)
    assert allowed_actions(future, Role.PARTICIPANT, now=NOW) == [ReservationAction.CANCEL]
    assert allowed_actions(past, Role.PARTICIPANT, now=NOW) == []


def test_admin_cancels_confirmed_regardless_of_date():
    past = _reservation(ReservationStatus.CONFIRMED, days_ahead=-1)
    assert allowed_actions(past, Role.ADMIN, now=NOW) == [ReservationAction.ADMIN_CANCEL]


@pytest.mark.parametrize("status", [ReservationStatus.REFUSED, ReservationStatus.CANCELED])
def test_terminal_statuses_have_no_actions(status):
    assert is_terminal(status)
    for role in (Role.ADMIN, Role.PARTICIPANT, None):
        assert allowed_actions(_reservation(status), role, now=NOW) == []


def test_ensure_allowed_raises_on_wrong_source():
    with pytest.raises(InvalidTransition):
        ensure_allowed(ReservationAction.CONFIRM, _reservation(ReservationStatus.CONFIRMED), Role.ADMIN, now=NOW)
    ensure_allowed(ReservationAction.CONFIRM, _reservation(ReservationStatus.PENDING), Role.ADMIN, now=NOW)


def test_ticket_only_for_confirmed_participant():
    assert can_download_ticket(_reservation(ReservationStatus.CONFIRMED), Role.PARTICIPANT)
    assert not can_download_ticket(_reservation(ReservationStatus.PENDING), Role.PARTICIPANT)
    assert not can_download_ticket(_reservation(ReservationStatus.CONFIRMED), Role.ADMIN)


def test_event_status_transitions():
    assert allowed_event_transitions(EventStatus.DRAFT, Role.ADMIN) == [EventStatus.PUBLISHED]
    assert allowed_event_transitions(EventStatus.PUBLISHED, Role.ADMIN) == [EventStatus.CANCELED]
    assert allowed_event_transitions(EventStatus.CANCELED, Role.ADMIN) == []
    assert allowed_event_transitions(EventStatus.DRAFT, Role.PARTICIPANT) == []
