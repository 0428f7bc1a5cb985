from __future__ import annotations

from enum import Enum, IntEnum


class Role(str, Enum):
    ADMIN = "ADMIN"
    PARTICIPANT = "PARTICIPANT"


class EventStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CANCELED = "CANCELED"


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REFUSED = "REFUSED"
    CANCELED = "CANCELED"


class Conversation(IntEnum):
    LOGIN_EMAIL = 1
    LOGIN_PASSWORD = 2
    REGISTER_FIRST_NAME = 3
    REGISTER_LAST_NAME = 4
    REGISTER_EMAIL = 5
    REGISTER_PASSWORD = 6
    RESERVE_SEATS = 10
    RESERVE_CONFIRM = 11
    PROFILE_FIRST_NAME = 20
    PROFILE_LAST_NAME = 21
    PROFILE_EMAIL = 22
    EVENT_TITLE = 30
    EVENT_DESCRIPTION = 31
    EVENT_DATE = 32
    EVENT_LOCATION = 33
    EVENT_SEATS = 34
    EDIT_EVENT_VALUE = 35


# Screen paths mirror the web routes so guards and redirects speak one language.
HOME_SCREEN = "/"
LOGIN_SCREEN = "/auth/login"
REGISTER_SCREEN = "/auth/register"
FORBIDDEN_SCREEN = "/403"
EVENTS_SCREEN = "/events"
PARTICIPANT_DASHBOARD_SCREEN = "/participant/dashboard"
MY_RESERVATIONS_SCREEN = "/participant/reservations"
PROFILE_SCREEN = "/profile"
ADMIN_DASHBOARD_SCREEN = "/admin/dashboard"
ADMIN_EVENTS_SCREEN = "/admin/events"
ADMIN_RESERVATIONS_SCREEN = "/admin/reservations"
ADMIN_USERS_SCREEN = "/admin/users"

ACCESS_TOKEN_KEY = "access_token"
USER_KEY = "user"

DEFAULT_ERROR_MESSAGE = "Une erreur est survenue"
