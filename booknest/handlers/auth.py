from __future__ import annotations

import logging

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import (
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from ..constants import LOGIN_SCREEN, REGISTER_SCREEN, Conversation
from ..services.messaging import (
    MENU_LABEL_LOGIN,
    MENU_LABEL_REGISTER,
    error_message,
    get_session,
    send_main_menu,
)
from ..utils.errors import ApiError
from ..utils.validators import is_valid_email
from . import screens

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_AUTH_KEYS = ["auth_email", "register_first_name", "register_last_name", "register_email"]


def _clear_auth_draft(context: ContextTypes.DEFAULT_TYPE) -> None:
    for key in _AUTH_KEYS:
        context.user_data.pop(key, None)


async def _prompt(update: Update, text: str):
    query = getattr(update, "callback_query", None)
    if query is not None:
        await query.answer()
        await query.edit_message_text(text)
    else:
        await update.effective_message.reply_text(text)


async def _forget_password_message(update: Update):
    try:
        await update.message.delete()
    except TelegramError as exc:
        logger.debug("Could not delete password message: %s", exc)


async def _finish_authentication(update: Update, context: ContextTypes.DEFAULT_TYPE, greeting: str):
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    redirect, session.redirect_to = session.redirect_to, None
    await send_main_menu(context, chat_id, text=greeting)
    await screens.open_screen(update, context, redirect or screens.home_screen(session.user))


# --- login ---------------------------------------------------------------


async def login_start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = await get_session(context, update.effective_chat.id)
    if session.is_authenticated:
        await send_main_menu(context, update.effective_chat.id, text="Vous êtes déjà connecté.")
        return ConversationHandler.END
    # Keep the redirect remembered by the route guard.
    session.enter(LOGIN_SCREEN)
    _clear_auth_draft(context)
    await _prompt(update, "🔑 Connexion\nVotre adresse email : (/cancel pour abandonner)")
    return Conversation.LOGIN_EMAIL


async def login_email(update: Update, context: ContextTypes.DEFAULT_TYPE):
    email = (update.message.text or "").strip()
    if not is_valid_email(email):
        await update.message.reply_text("⚠️ Adresse email invalide, réessayez :")
        return Conversation.LOGIN_EMAIL
    context.user_data["auth_email"] = email
    await update.message.reply_text("Votre mot de passe :")
    return Conversation.LOGIN_PASSWORD


async def login_password(update: Update, context: ContextTypes.DEFAULT_TYPE):
    password = update.message.text or ""
    await _forget_password_message(update)
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    auth_service = context.application.bot_data["auth_service"]
    try:
        auth = await auth_service.login(session, context.user_data.get("auth_email", ""), password)
    except ApiError as exc:
        logger.info("Login failed chat_id=%s status=%s", chat_id, exc.status)
        await update.effective_chat.send_message(
            f"⚠️ {error_message(exc, 'Email ou mot de passe incorrect')}\nVotre adresse email :"
        )
        return Conversation.LOGIN_EMAIL
    _clear_auth_draft(context)
    await _finish_authentication(update, context, f"✅ Bienvenue {auth.user.first_name or auth.user.email} !")
    return ConversationHandler.END


# --- register ------------------------------------------------------------


async def register_start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = await get_session(context, update.effective_chat.id)
    if session.is_authenticated:
        await send_main_menu(context, update.effective_chat.id, text="Vous êtes déjà connecté.")
        return ConversationHandler.END
    session.enter(REGISTER_SCREEN)
    _clear_auth_draft(context)
    await _prompt(update, "📝 Création de compte\nVotre prénom : (/cancel pour abandonner)")
    return Conversation.REGISTER_FIRST_NAME


async def register_first_name(update: Update, context: ContextTypes.DEFAULT_TYPE):
    value = (update.message.text or "").strip()
    if len(value) < 2:
        await update.message.reply_text("⚠️ Le prénom doit contenir au moins 2 caractères.")
        return Conversation.REGISTER_FIRST_NAME
    context.user_data["register_first_name"] = value
    await update.message.reply_text("Votre nom :")
    return Conversation.REGISTER_LAST_NAME


async def register_last_name(update: Update, context: ContextTypes.DEFAULT_TYPE):
    value = (update.message.text or "").strip()
    if len(value) < 2:
        await update.message.reply_text("⚠️ Le nom doit contenir au moins 2 caractères.")
        return Conversation.REGISTER_LAST_NAME
    context.user_data["register_last_name"] = value
    await update.message.reply_text("Votre adresse email :")
    return Conversation.REGISTER_EMAIL


async def register_email(update: Update, context: ContextTypes.DEFAULT_TYPE):
    value = (update.message.text or "").strip()
    if not is_valid_email(value):
        await update.message.reply_text("⚠️ Adresse email invalide, réessayez :")
        return Conversation.REGISTER_EMAIL
    context.user_data["register_email"] = value
    await update.message.reply_text(f"Choisissez un mot de passe ({MIN_PASSWORD_LENGTH} caractères minimum) :")
    return Conversation.REGISTER_PASSWORD


async def register_password(update: Update, context: ContextTypes.DEFAULT_TYPE):
    password = update.message.text or ""
    await _forget_password_message(update)
    if len(password) < MIN_PASSWORD_LENGTH:
        await update.effective_chat.send_message(
            f"⚠️ Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères."
        )
        return Conversation.REGISTER_PASSWORD
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    auth_service = context.application.bot_data["auth_service"]
    try:
        auth = await auth_service.register(
            session,
            first_name=context.user_data.get("register_first_name", ""),
            last_name=context.user_data.get("register_last_name", ""),
            email=context.user_data.get("register_email", ""),
            password=password,
        )
    except ApiError as exc:
        logger.info("Registration failed chat_id=%s status=%s", chat_id, exc.status)
        _clear_auth_draft(context)
        await update.effective_chat.send_message(
            f"⚠️ {error_message(exc, 'Erreur lors de la création du compte')}\nRecommencez avec /register."
        )
        return ConversationHandler.END
    _clear_auth_draft(context)
    await _finish_authentication(update, context, f"✅ Compte créé. Bienvenue {auth.user.first_name} !")
    return ConversationHandler.END


async def auth_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _clear_auth_draft(context)
    await send_main_menu(context, update.effective_chat.id, text="Annulé.")
    return ConversationHandler.END


# --- logout --------------------------------------------------------------


async def logout(update: Update, context: ContextTypes.DEFAULT_TYPE):
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    await context.application.bot_data["auth_service"].logout(session)
    logger.info("Logout chat_id=%s", chat_id)
    await send_main_menu(context, chat_id, text="👋 Vous êtes déconnecté.")


def setup_handlers(application):
    text_input = filters.TEXT & ~filters.COMMAND
    login_conv = ConversationHandler(
        entry_points=[
            CommandHandler("login", login_start),
            CallbackQueryHandler(login_start, pattern="^auth_login$"),
            MessageHandler(filters.Regex(f"^{MENU_LABEL_LOGIN}$"), login_start),
        ],
        states={
            Conversation.LOGIN_EMAIL: [MessageHandler(text_input, login_email)],
            Conversation.LOGIN_PASSWORD: [MessageHandler(text_input, login_password)],
        },
        fallbacks=[CommandHandler("cancel", auth_cancel)],
        per_user=True,
    )
    register_conv = ConversationHandler(
        entry_points=[
            CommandHandler("register", register_start),
            CallbackQueryHandler(register_start, pattern="^auth_register$"),
            MessageHandler(filters.Regex(f"^{MENU_LABEL_REGISTER}$"), register_start),
        ],
        states={
            Conversation.REGISTER_FIRST_NAME: [MessageHandler(text_input, register_first_name)],
            Conversation.REGISTER_LAST_NAME: [MessageHandler(text_input, register_last_name)],
            Conversation.REGISTER_EMAIL: [MessageHandler(text_input, register_email)],
            Conversation.REGISTER_PASSWORD: [MessageHandler(text_input, register_password)],
        },
        fallbacks=[CommandHandler("cancel", auth_cancel)],
        per_user=True,
    )
    application.add_handler(login_conv)
    application.add_handler(register_conv)
    application.add_handler(CommandHandler("logout", logout))
