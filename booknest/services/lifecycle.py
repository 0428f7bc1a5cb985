"""
Reservation and event status transitions as the backend enforces them.

The tables below decide which action buttons a screen renders. They never
replace the backend: an action sent from a stale screen can still be refused,
and that refusal is shown to the user.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from ..constants import EventStatus, ReservationStatus, Role
from ..models import Reservation, utcnow
from ..utils.errors import InvalidTransition


class ReservationAction(str, Enum):
    CONFIRM = "confirm"
    REFUSE = "refuse"
    CANCEL = "cancel"
    ADMIN_CANCEL = "admin_cancel"


@dataclass(frozen=True)
class Transition:
    source: ReservationStatus
    target: ReservationStatus
    actor: Role
    requires_future_event: bool = False


TRANSITIONS: Dict[ReservationAction, Transition] = {
    ReservationAction.CONFIRM: Transition(ReservationStatus.PENDING, ReservationStatus.CONFIRMED, Role.ADMIN),
    ReservationAction.REFUSE: Transition(ReservationStatus.PENDING, ReservationStatus.REFUSED, Role.ADMIN),
    ReservationAction.CANCEL: Transition(
        ReservationStatus.CONFIRMED, ReservationStatus.CANCELED, Role.PARTICIPANT, requires_future_event=True
    ),
    ReservationAction.ADMIN_CANCEL: Transition(
        ReservationStatus.CONFIRMED, ReservationStatus.CANCELED, Role.ADMIN
    ),
}

TERMINAL_STATUSES = frozenset({ReservationStatus.REFUSED, ReservationStatus.CANCELED})

EVENT_TRANSITIONS: Dict[EventStatus, List[EventStatus]] = {
    EventStatus.DRAFT: [EventStatus.PUBLISHED],
    EventStatus.PUBLISHED: [EventStatus.CANCELED],
    EventStatus.CANCELED: [],
}


def is_terminal(status: ReservationStatus) -> bool:
    return status in TERMINAL_STATUSES


def _event_is_upcoming(reservation: Reservation, now: datetime) -> bool:
    event = reservation.event
    if event is None or event.date is None:
        return False
    return event.date > now


def can_perform(
    action: ReservationAction,
    reservation: Reservation,
    role: Optional[Role],
    now: Optional[datetime] = None,
) -> bool:
    transition = TRANSITIONS[action]
    if role != transition.actor or reservation.status != transition.source:
        return False
    if transition.requires_future_event and not _event_is_upcoming(reservation, now or utcnow()):
        return False
    return True


def allowed_actions(
    reservation: Reservation,
    role: Optional[Role],
    now: Optional[datetime] = None,
) -> List[ReservationAction]:
    now = now or utcnow()
    return [action for action in ReservationAction if can_perform(action, reservation, role, now)]


def target_status(action: ReservationAction) -> ReservationStatus:
    return TRANSITIONS[action].target


def ensure_allowed(
    action: ReservationAction,
    reservation: Reservation,
    role: Optional[Role],
    now: Optional[datetime] = None,
) -> None:
    if not can_perform(action, reservation, role, now):
        raise InvalidTransition(
            f"Action {action.value} impossible sur une réservation {reservation.status.value}"
        )


def can_download_ticket(reservation: Reservation, role: Optional[Role]) -> bool:
    return role == Role.PARTICIPANT and reservation.status == ReservationStatus.CONFIRMED


def allowed_event_transitions(status: EventStatus, role: Optional[Role]) -> List[EventStatus]:
    if role != Role.ADMIN:
        return []
    return list(EVENT_TRANSITIONS.get(status, []))
