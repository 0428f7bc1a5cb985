from __future__ import annotations

import io
from typing import Any, Dict, Iterable, List

from ..models import Reservation
from ..utils.formatting import event_title

EXPORT_COLUMNS = [
    "reservation_id",
    "event_id",
    "event_title",
    "event_date",
    "user_id",
    "full_name",
    "email",
    "seats",
    "status",
    "created_at",
]


def _naive(value):
    # Excel cannot store timezone-aware datetimes.
    return value.replace(tzinfo=None) if value is not None else None


def reservation_rows(reservations: Iterable[Reservation]) -> List[Dict[str, Any]]:
    rows = []
    for reservation in reservations:
        user = reservation.user
        event = reservation.event
        rows.append(
            {
                "reservation_id": reservation.reservation_id,
                "event_id": reservation.event_id,
                "event_title": event_title(reservation),
                "event_date": _naive(event.date) if event else None,
                "user_id": reservation.user_id,
                "full_name": user.full_name if user else "",
                "email": user.email if user else "",
                "seats": reservation.number_of_seats,
                "status": reservation.status.value,
                "created_at": _naive(reservation.created_at),
            }
        )
    return rows


def reservations_workbook(reservations: Iterable[Reservation]) -> io.BytesIO:
    """Render reservations as an .xlsx workbook held in memory."""
    # Heavy dependency: import lazily to keep bot startup fast.
    import pandas as pd

    df = pd.DataFrame(reservation_rows(reservations), columns=EXPORT_COLUMNS)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="reservations")
    buffer.seek(0)
    return buffer
