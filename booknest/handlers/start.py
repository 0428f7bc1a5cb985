from __future__ import annotations

import logging

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import CallbackQueryHandler, CommandHandler, ContextTypes

from ..keyboards.common import NOOP_CALLBACK
from ..services.messaging import DISMISS_CALLBACK, send_main_menu

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "BookNest : réservez vos places pour les événements.\n\n"
    "/events [recherche] : événements publiés\n"
    "/login, /register, /logout : compte\n"
    "/profile : profil\n"
    "/admin : administration\n"
    "/cancel : abandonner la saisie en cours"
)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    chat_id = update.effective_chat.id
    session_store = context.application.bot_data["session_store"]
    auth_service = context.application.bot_data["auth_service"]
    session = await session_store.init(chat_id, auth_service)
    if session.is_authenticated:
        text = f"Bon retour {session.user.first_name or session.user.email} !"
    else:
        text = "Bienvenue sur BookNest ! Parcourez les événements ou connectez-vous pour réserver."
    await send_main_menu(context, chat_id, text=text)
    logger.info("Start chat_id=%s authenticated=%s", chat_id, session.is_authenticated)


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(HELP_TEXT)


async def dismiss_alert(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    try:
        await query.delete_message()
    except TelegramError as exc:
        logger.debug("Alert already gone: %s", exc)


async def noop(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.callback_query.answer()


def setup_handlers(application):
    application.add_handler(CommandHandler("start", start))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CallbackQueryHandler(dismiss_alert, pattern=f"^{DISMISS_CALLBACK}$"))
    application.add_handler(CallbackQueryHandler(noop, pattern=f"^{NOOP_CALLBACK}$"))
