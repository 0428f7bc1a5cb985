from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..constants import EventStatus
from ..logging_config import logger
from ..models import Event, EventFilters, format_api_datetime, utcnow

EVENTS_PATH = "/events"


def _event_path(event_id: str) -> str:
    return f"{EVENTS_PATH}/{event_id}"


class EventService:
    def __init__(self, client):
        self.client = client

    async def list_events(self, session, filters: Optional[EventFilters] = None) -> List[Event]:
        params = filters.to_params() if filters else None
        data = await self.client.get(session, EVENTS_PATH, params=params)
        return [Event.from_api(row) for row in data or []]

    async def list_published(self, session, search: Optional[str] = None) -> List[Event]:
        return await self.list_events(session, EventFilters(status=EventStatus.PUBLISHED, search=search))

    async def list_upcoming(self, session, now: Optional[datetime] = None) -> List[Event]:
        return await self.list_events(
            session, EventFilters(status=EventStatus.PUBLISHED, start_date=now or utcnow())
        )

    async def get_event(self, session, event_id: str) -> Event:
        return Event.from_api(await self.client.get(session, _event_path(event_id)))

    async def create_event(
        self,
        session,
        title: str,
        description: str,
        date: datetime,
        location: str,
        max_participants: int,
    ) -> Event:
        payload = {
            "title": title,
            "description": description,
            "date": format_api_datetime(date),
            "location": location,
            "maxParticipants": max_participants,
        }
        event = Event.from_api(await self.client.post(session, EVENTS_PATH, json=payload))
        logger.info("Event created id=%s title=%s seats=%s", event.event_id, event.title, max_participants)
        return event

    async def update_event(self, session, event_id: str, **changes: Any) -> Event:
        payload: Dict[str, Any] = {}
        for key, api_key in (
            ("title", "title"),
            ("description", "description"),
            ("location", "location"),
            ("max_participants", "maxParticipants"),
        ):
            if changes.get(key) is not None:
                payload[api_key] = changes[key]
        if changes.get("date") is not None:
            payload["date"] = format_api_datetime(changes["date"])
        event = Event.from_api(await self.client.patch(session, _event_path(event_id), json=payload))
        logger.info("Event %s updated fields=%s", event_id, sorted(payload))
        return event

    async def delete_event(self, session, event_id: str) -> Dict[str, Any]:
        result = await self.client.delete(session, _event_path(event_id))
        logger.info("Event %s deleted", event_id)
        return result or {}

    async def update_status(self, session, event_id: str, status: EventStatus) -> Event:
        data = await self.client.patch(session, f"{_event_path(event_id)}/status", json={"status": status.value})
        logger.info("Event %s status -> %s", event_id, status.value)
        return Event.from_api(data)
