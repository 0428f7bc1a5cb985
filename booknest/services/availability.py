"""
Seat availability derived from an event's counters.

Every screen that shows seats or decides whether "Réserver" is offered goes
through :func:`compute_availability`; nothing else re-derives these flags.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..constants import EventStatus
from ..models import Event, utcnow

LOW_AVAILABILITY_RATIO = 0.20


@dataclass(frozen=True)
class Availability:
    available_seats: int
    max_participants: int
    is_full: bool
    fill_ratio: float
    is_low_availability: bool
    is_past_event: bool
    can_reserve: bool


def compute_availability(
    available_seats: int,
    max_participants: int,
    event_date: Optional[datetime],
    event_status: EventStatus,
    now: Optional[datetime] = None,
) -> Availability:
    now = now or utcnow()
    is_full = available_seats == 0
    if max_participants > 0:
        fill_ratio = (max_participants - available_seats) / max_participants
        remaining_ratio = available_seats / max_participants
    else:
        fill_ratio = 1.0
        remaining_ratio = 0.0
    is_low = remaining_ratio <= LOW_AVAILABILITY_RATIO and available_seats > 0
    # An event without a date cannot be proven upcoming.
    is_past = event_date is None or event_date < now
    can_reserve = (
        event_status == EventStatus.PUBLISHED
        and not is_full
        and not is_past
        and available_seats > 0
    )
    return Availability(
        available_seats=available_seats,
        max_participants=max_participants,
        is_full=is_full,
        fill_ratio=fill_ratio,
        is_low_availability=is_low,
        is_past_event=is_past,
        can_reserve=can_reserve,
    )


def event_availability(event: Event, now: Optional[datetime] = None) -> Availability:
    return compute_availability(
        event.available_seats, event.max_participants, event.date, event.status, now=now
    )


def validate_seat_request(requested: Optional[int], event: Event) -> Optional[str]:
    """Return the refusal shown to the participant, or None when the request may be sent."""
    if requested is None or requested < 1:
        return "Le nombre de places doit être au moins 1"
    if requested > event.available_seats:
        return f"Seulement {event.available_seats} places disponibles"
    return None


def availability_label(availability: Availability) -> str:
    if availability.is_full:
        return "Complet"
    seats = f"{availability.available_seats}/{availability.max_participants} places disponibles"
    if availability.is_low_availability:
        return f"🔥 Plus que {seats}"
    return seats


def reservation_refusal(availability: Availability, event_status: EventStatus) -> Optional[str]:
    """Why the reservation screen cannot open, mirrored from the booking page."""
    if availability.can_reserve:
        return None
    if event_status != EventStatus.PUBLISHED:
        return "Cet événement n'est pas ouvert aux réservations"
    if availability.is_past_event:
        return "Cet événement a déjà eu lieu"
    return "Il n'y a plus de places disponibles pour cet événement"
