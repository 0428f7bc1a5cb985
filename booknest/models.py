from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .constants import EventStatus, ReservationStatus, Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_api_datetime(value: Any) -> Optional[datetime]:
    """Parse the ISO-8601 strings sent by the API; naive values are taken as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_api_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _object_id(data: Dict[str, Any]) -> str:
    return str(data.get("_id") or data.get("id") or "")


@dataclass
class User:
    user_id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    role: Role = Role.PARTICIPANT
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "User":
        try:
            role = Role(data.get("role") or Role.PARTICIPANT.value)
        except ValueError:
            role = Role.PARTICIPANT
        return cls(
            user_id=_object_id(data),
            email=data.get("email") or "",
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            role=role,
            is_active=bool(data.get("isActive", True)),
            created_at=parse_api_datetime(data.get("createdAt")),
            updated_at=parse_api_datetime(data.get("updatedAt")),
        )

    def to_api(self) -> Dict[str, Any]:
        return {
            "_id": self.user_id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role.value,
            "isActive": self.is_active,
        }


@dataclass
class Owner:
    user_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Event:
    event_id: str
    title: str
    description: str
    date: Optional[datetime]
    location: str
    max_participants: int
    available_seats: int
    status: EventStatus = EventStatus.DRAFT
    created_by: Optional[Owner] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def seats_held(self) -> int:
        return self.max_participants - self.available_seats

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Event":
        owner = data.get("createdBy")
        created_by = None
        if isinstance(owner, dict):
            created_by = Owner(
                user_id=_object_id(owner),
                first_name=owner.get("firstName") or "",
                last_name=owner.get("lastName") or "",
                email=owner.get("email") or "",
            )
        elif owner:
            created_by = Owner(user_id=str(owner))
        return cls(
            event_id=_object_id(data),
            title=data.get("title") or "",
            description=data.get("description") or "",
            date=parse_api_datetime(data.get("date")),
            location=data.get("location") or "",
            max_participants=int(data.get("maxParticipants") or 0),
            available_seats=int(data.get("availableSeats") or 0),
            status=EventStatus(data.get("status") or EventStatus.DRAFT.value),
            created_by=created_by,
            created_at=parse_api_datetime(data.get("createdAt")),
            updated_at=parse_api_datetime(data.get("updatedAt")),
        )


@dataclass
class Reservation:
    reservation_id: str
    user_id: str
    event_id: str
    number_of_seats: int
    status: ReservationStatus = ReservationStatus.PENDING
    user: Optional[User] = None
    event: Optional[Event] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Reservation":
        raw_user = data.get("user")
        raw_event = data.get("event")
        user = User.from_api(raw_user) if isinstance(raw_user, dict) else None
        event = Event.from_api(raw_event) if isinstance(raw_event, dict) else None
        return cls(
            reservation_id=_object_id(data),
            user_id=user.user_id if user else str(raw_user or ""),
            event_id=event.event_id if event else str(raw_event or ""),
            number_of_seats=int(data.get("numberOfSeats") or 0),
            status=ReservationStatus(data.get("status") or ReservationStatus.PENDING.value),
            user=user,
            event=event,
            created_at=parse_api_datetime(data.get("createdAt")),
            updated_at=parse_api_datetime(data.get("updatedAt")),
        )


@dataclass
class AuthResponse:
    access_token: str
    user: User

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AuthResponse":
        raw_user = data.get("user")
        if not isinstance(raw_user, dict):
            # Some backend builds flatten the user next to the token.
            raw_user = {k: v for k, v in data.items() if k != "access_token"}
        return cls(access_token=data.get("access_token") or "", user=User.from_api(raw_user))


@dataclass
class EventFilters:
    status: Optional[EventStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None
    page: Optional[int] = None
    limit: Optional[int] = None

    def to_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if self.status:
            params["status"] = self.status.value
        if self.start_date:
            params["startDate"] = format_api_datetime(self.start_date)
        if self.end_date:
            params["endDate"] = format_api_datetime(self.end_date)
        if self.search:
            params["search"] = self.search
        if self.page:
            params["page"] = str(self.page)
        if self.limit:
            params["limit"] = str(self.limit)
        return params


@dataclass
class ReservationFilters:
    status: Optional[ReservationStatus] = None
    event_id: Optional[str] = None
    user_id: Optional[str] = None
    page: Optional[int] = None
    limit: Optional[int] = None

    def to_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if self.status:
            params["status"] = self.status.value
        if self.event_id:
            params["eventId"] = self.event_id
        if self.user_id:
            params["userId"] = self.user_id
        if self.page:
            params["page"] = str(self.page)
        if self.limit:
            params["limit"] = str(self.limit)
        return params


@dataclass
class DashboardStats:
    total_events: int = 0
    total_reservations: int = 0
    upcoming_events: int = 0
    average_fill_rate: float = 0.0
    reservations_by_status: Dict[str, int] = field(
        default_factory=lambda: {s.value: 0 for s in ReservationStatus}
    )
