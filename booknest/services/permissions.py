from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Any, Awaitable, Callable, FrozenSet, Optional
from urllib.parse import quote

from telegram import Update
from telegram.ext import ContextTypes

from ..constants import FORBIDDEN_SCREEN, LOGIN_SCREEN, Role
from ..models import User
from ..utils.errors import PermissionDenied


class Capability(str, Enum):
    BROWSE_EVENTS = "browse_events"
    RESERVE_SEATS = "reserve_seats"
    MANAGE_OWN_RESERVATIONS = "manage_own_reservations"
    EDIT_PROFILE = "edit_profile"
    ACCESS_ADMIN = "access_admin"
    MANAGE_EVENTS = "manage_events"
    MODERATE_RESERVATIONS = "moderate_reservations"
    VIEW_USERS = "view_users"


ANONYMOUS_CAPABILITIES: FrozenSet[Capability] = frozenset({Capability.BROWSE_EVENTS})

ROLE_CAPABILITIES = {
    Role.PARTICIPANT: frozenset(
        {
            Capability.BROWSE_EVENTS,
            Capability.RESERVE_SEATS,
            Capability.MANAGE_OWN_RESERVATIONS,
            Capability.EDIT_PROFILE,
        }
    ),
    Role.ADMIN: frozenset(
        {
            Capability.BROWSE_EVENTS,
            Capability.EDIT_PROFILE,
            Capability.ACCESS_ADMIN,
            Capability.MANAGE_EVENTS,
            Capability.MODERATE_RESERVATIONS,
            Capability.VIEW_USERS,
        }
    ),
}

# Screens that need a logged-in user, and the capability each one needs.
ROUTE_RULES = [
    (re.compile(r"^/admin(/|$)"), Capability.ACCESS_ADMIN),
    (re.compile(r"^/participant(/|$)"), Capability.MANAGE_OWN_RESERVATIONS),
    (re.compile(r"^/events/[^/]+/reserve$"), Capability.RESERVE_SEATS),
    (re.compile(r"^/profile(/|$)"), Capability.EDIT_PROFILE),
]


def capabilities_for(user: Optional[User]) -> FrozenSet[Capability]:
    if user is None:
        return ANONYMOUS_CAPABILITIES
    return ROLE_CAPABILITIES.get(user.role, ANONYMOUS_CAPABILITIES)


def can(user: Optional[User], capability: Capability) -> bool:
    return capability in capabilities_for(user)


@dataclass(frozen=True)
class RouteDecision:
    allowed: bool
    redirect_to: Optional[str] = None


def login_path(redirect: Optional[str] = None) -> str:
    if not redirect:
        return LOGIN_SCREEN
    return f"{LOGIN_SCREEN}?redirect={quote(redirect, safe='/')}"


def guard_route(path: str, user: Optional[User]) -> RouteDecision:
    for pattern, capability in ROUTE_RULES:
        if not pattern.match(path):
            continue
        if user is None:
            return RouteDecision(False, login_path(path))
        if not can(user, capability):
            return RouteDecision(False, FORBIDDEN_SCREEN)
        return RouteDecision(True)
    return RouteDecision(True)


def _resolve_user_id(update: Update) -> Optional[int]:
    user = getattr(update, "effective_user", None)
    if not user:
        cq = getattr(update, "callback_query", None)
        if cq:
            user = getattr(cq, "from_user", None)
    if not user and getattr(update, "message", None):
        user = getattr(update.message, "from_user", None)
    return getattr(user, "id", None)


async def enforce_route(update: Update, context: ContextTypes.DEFAULT_TYPE, path: str):
    """
    Apply the route guard for ``path`` and return the chat session when allowed.

    Anonymous access sends the login prompt (remembering ``path``) and returns
    None; a logged-in user without the capability raises PermissionDenied.
    """
    user_id = _resolve_user_id(update)
    if user_id is None:
        eff_msg = getattr(update, "effective_message", None)
        if eff_msg:
            await eff_msg.reply_text("Impossible d'identifier l'utilisateur, réessayez.")
        return None
    session = await context.application.bot_data["session_store"].get(user_id)
    decision = guard_route(path, session.user if session.is_authenticated else None)
    if decision.allowed:
        return session
    if decision.redirect_to and decision.redirect_to.startswith(LOGIN_SCREEN):
        await context.application.bot_data["navigator"].to_login(session, redirect=path)
        return None
    raise PermissionDenied(f"Access to {path} denied for role {getattr(session.user, 'role', None)}")


def require_screen(path: str):
    def decorator(func: Callable[..., Awaitable[Any]]):
        @wraps(func)
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
            session = await enforce_route(update, context, path)
            if session is None:
                return None
            return await func(update, context, *args, **kwargs)

        return wrapper

    return decorator
