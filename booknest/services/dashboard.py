from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..constants import EventStatus, ReservationStatus
from ..models import DashboardStats, Event, Reservation, utcnow
from .availability import event_availability


def build_dashboard_stats(
    events: Iterable[Event],
    reservations: Iterable[Reservation],
    now: Optional[datetime] = None,
) -> DashboardStats:
    now = now or utcnow()
    events = list(events)
    reservations = list(reservations)
    stats = DashboardStats(total_events=len(events), total_reservations=len(reservations))

    published = [e for e in events if e.status == EventStatus.PUBLISHED]
    stats.upcoming_events = len([e for e in published if e.date is not None and e.date > now])
    ratios = [event_availability(e, now).fill_ratio for e in published if e.max_participants > 0]
    stats.average_fill_rate = sum(ratios) / len(ratios) if ratios else 0.0

    for reservation in reservations:
        stats.reservations_by_status[reservation.status.value] += 1
    return stats


def count_by_status(reservations: Iterable[Reservation]) -> dict[ReservationStatus, int]:
    counts = {status: 0 for status in ReservationStatus}
    for reservation in reservations:
        counts[reservation.status] += 1
    return counts
