from __future__ import annotations

import logging

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from ..constants import PROFILE_SCREEN, Conversation
from ..services.messaging import get_session, render, report_failure, send_main_menu
from ..services.permissions import enforce_route, require_screen
from ..utils.errors import ApiError, ValidationError
from ..utils.formatting import format_datetime

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "first_name": (Conversation.PROFILE_FIRST_NAME, "Entrez votre prénom :"),
    "last_name": (Conversation.PROFILE_LAST_NAME, "Entrez votre nom :"),
    "email": (Conversation.PROFILE_EMAIL, "Entrez votre nouvelle adresse email :"),
}
ROLE_LABELS = {"ADMIN": "Administrateur", "PARTICIPANT": "Participant"}


def profile_keyboard():
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("✏️ Modifier le prénom", callback_data="profile_edit_first_name")],
            [InlineKeyboardButton("✏️ Modifier le nom", callback_data="profile_edit_last_name")],
            [InlineKeyboardButton("✉️ Modifier l'email", callback_data="profile_edit_email")],
            [InlineKeyboardButton("↩️ Menu", callback_data="profile_back")],
        ]
    )


@require_screen(PROFILE_SCREEN)
async def show_profile(update: Update, context: ContextTypes.DEFAULT_TYPE):
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    ticket = session.enter(PROFILE_SCREEN)
    auth_service = context.application.bot_data["auth_service"]
    try:
        user = await auth_service.get_profile(session)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement du profil")
        return
    if not session.is_current(ticket):
        return
    text = (
        "👤 Profil\n"
        f"Prénom : {user.first_name or '—'}\n"
        f"Nom : {user.last_name or '—'}\n"
        f"Email : {user.email or '—'}\n"
        f"Rôle : {ROLE_LABELS.get(user.role.value, user.role.value)}\n"
        f"Membre depuis : {format_datetime(user.created_at)}"
    )
    await render(update, text, profile_keyboard())


async def ask_field(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    if await enforce_route(update, context, PROFILE_SCREEN) is None:
        return ConversationHandler.END
    field = query.data.replace("profile_edit_", "")
    state, prompt = EDITABLE_FIELDS[field]
    context.user_data["profile_field"] = field
    await query.edit_message_text(f"{prompt} (/cancel pour abandonner)")
    return state


async def save_field(update: Update, context: ContextTypes.DEFAULT_TYPE):
    field = context.user_data.get("profile_field")
    if field not in EDITABLE_FIELDS:
        return ConversationHandler.END
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    auth_service = context.application.bot_data["auth_service"]
    try:
        await auth_service.update_profile(session, **{field: update.message.text or ""})
    except ValidationError as exc:
        await update.message.reply_text(f"⚠️ {exc.message}")
        return EDITABLE_FIELDS[field][0]
    except ApiError as exc:
        context.user_data.pop("profile_field", None)
        await report_failure(context, chat_id, exc, "Erreur lors de la mise à jour du profil")
        return ConversationHandler.END
    context.user_data.pop("profile_field", None)
    await update.message.reply_text("✅ Profil mis à jour avec succès")
    logger.info("Profile field %s updated chat_id=%s", field, chat_id)
    await send_main_menu(context, chat_id, text="Profil mis à jour. Que souhaitez-vous faire ?")
    return ConversationHandler.END


async def cancel_edit(update: Update, context: ContextTypes.DEFAULT_TYPE):
    context.user_data.pop("profile_field", None)
    await update.message.reply_text("Modification annulée.")
    return ConversationHandler.END


async def back(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    await send_main_menu(context, query.from_user.id)


def setup_handlers(application):
    value_handler = MessageHandler(filters.TEXT & ~filters.COMMAND, save_field)
    conv = ConversationHandler(
        entry_points=[CallbackQueryHandler(ask_field, pattern="^profile_edit_(first_name|last_name|email)$")],
        states={state: [value_handler] for state, _ in EDITABLE_FIELDS.values()},
        fallbacks=[CommandHandler("cancel", cancel_edit)],
        per_user=True,
    )
    application.add_handler(conv)
    application.add_handler(CallbackQueryHandler(back, pattern="^profile_back$"))
    application.add_handler(CommandHandler("profile", show_profile))
