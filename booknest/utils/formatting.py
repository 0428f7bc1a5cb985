from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from ..constants import EventStatus, ReservationStatus
from ..models import Reservation

RESERVATION_STATUS_LABELS: Dict[ReservationStatus, str] = {
    ReservationStatus.PENDING: "⏳ En attente",
    ReservationStatus.CONFIRMED: "✅ Confirmée",
    ReservationStatus.REFUSED: "⛔ Refusée",
    ReservationStatus.CANCELED: "❌ Annulée",
}

EVENT_STATUS_LABELS: Dict[EventStatus, str] = {
    EventStatus.DRAFT: "📝 Brouillon",
    EventStatus.PUBLISHED: "🟢 Publié",
    EventStatus.CANCELED: "🚫 Annulé",
}


def format_datetime(value: Optional[datetime]) -> str:
    if value is None:
        return "—"
    return value.strftime("%d/%m/%Y %H:%M")


def event_title(reservation: Reservation) -> str:
    if reservation.event is not None:
        return reservation.event.title
    return reservation.event_id


def truncate(text: str, limit: int = 48) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"
