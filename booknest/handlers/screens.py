"""Open a screen by path, used to resume navigation after login."""
from __future__ import annotations

import logging
import re
from typing import Optional

from telegram import Update
from telegram.ext import ContextTypes

from ..constants import (
    ADMIN_DASHBOARD_SCREEN,
    MY_RESERVATIONS_SCREEN,
    PARTICIPANT_DASHBOARD_SCREEN,
    PROFILE_SCREEN,
    Role,
)
from ..models import User
from . import admin as admin_handlers
from . import events as event_handlers
from . import profile as profile_handlers
from . import reservations as reservation_handlers

logger = logging.getLogger(__name__)

_EVENT_PATH = re.compile(r"^/events/([^/?]+)(?:/reserve)?$")


def home_screen(user: Optional[User]) -> str:
    if user is not None and user.role == Role.ADMIN:
        return ADMIN_DASHBOARD_SCREEN
    return PARTICIPANT_DASHBOARD_SCREEN


async def open_screen(update: Update, context: ContextTypes.DEFAULT_TYPE, path: str):
    chat_id = update.effective_chat.id
    logger.debug("Opening screen %s for chat_id=%s", path, chat_id)
    match = _EVENT_PATH.match(path)
    if match:
        return await event_handlers.send_event_details(context, chat_id, match.group(1))
    if path.startswith("/admin"):
        return await admin_handlers.admin_entry(update, context)
    if path.startswith(MY_RESERVATIONS_SCREEN):
        return await reservation_handlers.show_my_reservations(update, context)
    if path.startswith(PARTICIPANT_DASHBOARD_SCREEN):
        return await reservation_handlers.show_dashboard(update, context)
    if path.startswith(PROFILE_SCREEN):
        return await profile_handlers.show_profile(update, context)
    return await event_handlers.list_events(update, context)
