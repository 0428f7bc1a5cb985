from __future__ import annotations

import pytest

from booknest.constants import FORBIDDEN_SCREEN, LOGIN_SCREEN, Role
from booknest.models import User
from booknest.services.messaging import (
    ADMIN_BUTTON_TEXT,
    MENU_LABEL_LOGIN,
    MENU_LABEL_MY_RESERVATIONS,
    build_main_keyboard,
)
from booknest.services.permissions import Capability, can, enforce_route, guard_route
from booknest.utils.errors import PermissionDenied
from tests.conftest import ADMIN_CHAT, ANONYMOUS_CHAT, PARTICIPANT_CHAT, make_message_update

PARTICIPANT = User(user_id="u1", email="p@example.com", role=Role.PARTICIPANT)
ADMIN = User(user_id="u2", email="a@example.com", role=Role.ADMIN)


def _labels(markup) -> list[str]:
    return [getattr(b, "text", b) for row in markup.keyboard for b in row]


def test_capabilities_by_role():
    assert can(None, Capability.BROWSE_EVENTS)
    assert not can(None, Capability.RESERVE_SEATS)
    assert can(PARTICIPANT, Capability.RESERVE_SEATS)
    assert not can(PARTICIPANT, Capability.ACCESS_ADMIN)
    assert can(ADMIN, Capability.MODERATE_RESERVATIONS)
    assert not can(ADMIN, Capability.RESERVE_SEATS)


def test_guard_sends_anonymous_to_login_with_redirect():
    decision = guard_route("/admin/events", None)
    assert not decision.allowed
    assert decision.redirect_to == f"{LOGIN_SCREEN}?redirect=/admin/events"


def test_guard_forbids_wrong_role():
    assert guard_route("/admin/dashboard", PARTICIPANT).redirect_to == FORBIDDEN_SCREEN
    assert guard_route("/participant/reservations", ADMIN).redirect_to == FORBIDDEN_SCREEN
    assert guard_route("/events/e1/reserve", ADMIN).redirect_to == FORBIDDEN_SCREEN


def test_public_screens_are_open():
    assert guard_route("/events", None).allowed
    assert guard_route("/events/e1", None).allowed
    assert guard_route("/profile", ADMIN).allowed


def test_main_keyboard_follows_role():
    assert MENU_LABEL_LOGIN in _labels(build_main_keyboard(None))
    participant_labels = _labels(build_main_keyboard(PARTICIPANT))
    assert MENU_LABEL_MY_RESERVATIONS in participant_labels
    assert ADMIN_BUTTON_TEXT not in participant_labels
    admin_labels = _labels(build_main_keyboard(ADMIN))
    assert ADMIN_BUTTON_TEXT in admin_labels
    assert MENU_LABEL_MY_RESERVATIONS not in admin_labels


@pytest.mark.asyncio
async def test_enforce_route_redirects_anonymous(context, fake_bot, session_store):
    update = make_message_update(ANONYMOUS_CHAT, text="/admin")
    assert await enforce_route(update, context, "/admin/dashboard") is None

    session = await session_store.get(ANONYMOUS_CHAT)
    assert session.screen == LOGIN_SCREEN
    assert session.redirect_to == "/admin/dashboard"
    assert fake_bot.sent_messages[-1]["chat_id"] == ANONYMOUS_CHAT


@pytest.mark.asyncio
async def test_enforce_route_denies_participant_admin(context, participant):
    update = make_message_update(PARTICIPANT_CHAT, text="/admin")
    with pytest.raises(PermissionDenied):
        await enforce_route(update, context, "/admin/dashboard")


@pytest.mark.asyncio
async def test_enforce_route_returns_session_for_admin(context, admin):
    update = make_message_update(ADMIN_CHAT, text="/admin")
    session = await enforce_route(update, context, "/admin/dashboard")
    assert session is not None
    assert session.user.role == Role.ADMIN
