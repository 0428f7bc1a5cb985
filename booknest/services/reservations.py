from __future__ import annotations

from typing import List, Optional

from ..logging_config import logger
from ..models import Reservation, ReservationFilters

RESERVATIONS_PATH = "/reservations"
# Pinned convention; the backend also answered on /reservations/my-reservations in older builds.
MY_RESERVATIONS_PATH = "/reservations/me"


def _reservation_path(reservation_id: str) -> str:
    return f"{RESERVATIONS_PATH}/{reservation_id}"


class ReservationService:
    def __init__(self, client):
        self.client = client

    async def create_reservation(self, session, event_id: str, number_of_seats: int) -> Reservation:
        data = await self.client.post(
            session,
            RESERVATIONS_PATH,
            json={"eventId": event_id, "numberOfSeats": number_of_seats},
        )
        reservation = Reservation.from_api(data)
        logger.info(
            "Reservation %s created event=%s seats=%s",
            reservation.reservation_id,
            event_id,
            number_of_seats,
        )
        return reservation

    async def list_mine(self, session) -> List[Reservation]:
        data = await self.client.get(session, MY_RESERVATIONS_PATH)
        return [Reservation.from_api(row) for row in data or []]

    async def list_all(self, session, filters: Optional[ReservationFilters] = None) -> List[Reservation]:
        params = filters.to_params() if filters else None
        data = await self.client.get(session, RESERVATIONS_PATH, params=params)
        return [Reservation.from_api(row) for row in data or []]

    async def list_for_event(self, session, event_id: str) -> List[Reservation]:
        data = await self.client.get(session, f"{RESERVATIONS_PATH}/event/{event_id}")
        return [Reservation.from_api(row) for row in data or []]

    async def get_reservation(self, session, reservation_id: str) -> Reservation:
        return Reservation.from_api(await self.client.get(session, _reservation_path(reservation_id)))

    async def confirm(self, session, reservation_id: str) -> Reservation:
        return await self._transition(session, reservation_id, "confirm")

    async def refuse(self, session, reservation_id: str) -> Reservation:
        return await self._transition(session, reservation_id, "refuse")

    async def cancel(self, session, reservation_id: str) -> Reservation:
        # Pinned convention: PATCH .../cancel rather than DELETE /reservations/:id.
        return await self._transition(session, reservation_id, "cancel")

    async def admin_cancel(self, session, reservation_id: str) -> Reservation:
        return await self._transition(session, reservation_id, "admin-cancel")

    async def fetch_ticket(self, session, reservation_id: str) -> bytes:
        return await self.client.get(session, f"{_reservation_path(reservation_id)}/ticket", binary=True)

    async def _transition(self, session, reservation_id: str, verb: str) -> Reservation:
        data = await self.client.patch(session, f"{_reservation_path(reservation_id)}/{verb}")
        reservation = Reservation.from_api(data)
        logger.info("Reservation %s %s -> %s", reservation_id, verb, reservation.status.value)
        return reservation
