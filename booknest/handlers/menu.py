from __future__ import annotations

import logging

from telegram import Update
from telegram.ext import ContextTypes, MessageHandler, filters

from ..services.messaging import (
    ADMIN_BUTTON_TEXT,
    MENU_LABEL_DASHBOARD,
    MENU_LABEL_EVENTS,
    MENU_LABEL_LOGOUT,
    MENU_LABEL_MY_RESERVATIONS,
    MENU_LABEL_PROFILE,
    send_main_menu,
)
from . import admin as admin_handlers
from . import auth as auth_handlers
from . import events as events_handlers
from . import profile as profile_handlers
from . import reservations as reservation_handlers

logger = logging.getLogger(__name__)

MENU_ROUTES = {
    MENU_LABEL_EVENTS: events_handlers.list_events,
    MENU_LABEL_MY_RESERVATIONS: reservation_handlers.show_my_reservations,
    MENU_LABEL_DASHBOARD: reservation_handlers.show_dashboard,
    MENU_LABEL_PROFILE: profile_handlers.show_profile,
    MENU_LABEL_LOGOUT: auth_handlers.logout,
    ADMIN_BUTTON_TEXT: admin_handlers.admin_entry,
}


async def main_menu_router(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Dispatch presses on the reply keyboard."""
    text = (update.message.text or "").strip()
    handler = MENU_ROUTES.get(text)
    if handler is not None:
        return await handler(update, context)

    await send_main_menu(context, update.effective_chat.id, text="Je n'ai pas compris, voici le menu :")
    logger.debug("Unknown menu action text=%r chat_id=%s", text, update.effective_chat.id)


def setup_handlers(application):
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, main_menu_router))
