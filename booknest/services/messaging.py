from __future__ import annotations

from typing import List, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, ReplyKeyboardMarkup, Update
from telegram.ext import ContextTypes

from ..constants import DEFAULT_ERROR_MESSAGE, FORBIDDEN_SCREEN, HOME_SCREEN, LOGIN_SCREEN
from ..logging_config import logger
from ..models import User
from ..utils.errors import ApiError, AuthenticationError, AuthorizationError
from .permissions import Capability, can

MENU_LABEL_EVENTS = "📅 Événements"
MENU_LABEL_MY_RESERVATIONS = "🎟 Mes réservations"
MENU_LABEL_DASHBOARD = "📊 Mon espace"
MENU_LABEL_PROFILE = "👤 Profil"
MENU_LABEL_LOGIN = "🔑 Se connecter"
MENU_LABEL_REGISTER = "📝 Créer un compte"
MENU_LABEL_LOGOUT = "🚪 Déconnexion"
ADMIN_BUTTON_TEXT = "⚙️ Administration"
DEFAULT_MENU_TEXT = "Menu principal"

SESSION_EXPIRED_TEXT = "🔒 Votre session a expiré. Connectez-vous pour continuer."
LOGIN_REQUIRED_TEXT = "🔒 Connectez-vous pour accéder à cette page."
FORBIDDEN_TEXT = "⛔ Accès interdit : votre rôle ne permet pas cette action."

# Reply-keyboard labels handled by the menu router.
MENU_LABELS = (
    MENU_LABEL_EVENTS,
    MENU_LABEL_MY_RESERVATIONS,
    MENU_LABEL_DASHBOARD,
    MENU_LABEL_PROFILE,
    MENU_LABEL_LOGOUT,
    ADMIN_BUTTON_TEXT,
)

DISMISS_CALLBACK = "alert_dismiss"


def build_main_keyboard(user: Optional[User]) -> ReplyKeyboardMarkup:
    rows: List[List[str]] = [[MENU_LABEL_EVENTS]]
    if user is None:
        rows.append([MENU_LABEL_LOGIN, MENU_LABEL_REGISTER])
        return ReplyKeyboardMarkup(rows, resize_keyboard=True, one_time_keyboard=False)
    if can(user, Capability.MANAGE_OWN_RESERVATIONS):
        rows.append([MENU_LABEL_MY_RESERVATIONS, MENU_LABEL_DASHBOARD])
    if can(user, Capability.ACCESS_ADMIN):
        rows.append([ADMIN_BUTTON_TEXT])
    rows.append([MENU_LABEL_PROFILE, MENU_LABEL_LOGOUT])
    return ReplyKeyboardMarkup(rows, resize_keyboard=True, one_time_keyboard=False)


def login_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(MENU_LABEL_LOGIN, callback_data="auth_login")],
            [InlineKeyboardButton(MENU_LABEL_REGISTER, callback_data="auth_register")],
        ]
    )


def alert_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[InlineKeyboardButton("✖️ Fermer", callback_data=DISMISS_CALLBACK)]])


async def get_session(context: ContextTypes.DEFAULT_TYPE, chat_id: int):
    return await context.application.bot_data["session_store"].get(chat_id)


async def send_main_menu(context: ContextTypes.DEFAULT_TYPE, chat_id: int, text: str = DEFAULT_MENU_TEXT):
    session = await get_session(context, chat_id)
    user = session.user if session.is_authenticated else None
    session.enter(HOME_SCREEN)
    await context.bot.send_message(chat_id=chat_id, text=text, reply_markup=build_main_keyboard(user))
    logger.debug("Sent main menu to chat_id=%s role=%s", chat_id, getattr(user, "role", None))


async def render(update: Update, text: str, reply_markup=None):
    """Show a screen: edit the message behind a button press, otherwise reply."""
    query = getattr(update, "callback_query", None)
    if query is not None:
        await query.edit_message_text(text, reply_markup=reply_markup)
    else:
        await update.effective_message.reply_text(text, reply_markup=reply_markup)


async def send_alert(context: ContextTypes.DEFAULT_TYPE, chat_id: int, text: str, *, error: bool = False):
    prefix = "⚠️" if error else "✅"
    await context.bot.send_message(chat_id=chat_id, text=f"{prefix} {text}", reply_markup=alert_keyboard())


def error_message(exc: Exception, fallback: str) -> str:
    if isinstance(exc, ApiError) and exc.message and exc.message != DEFAULT_ERROR_MESSAGE:
        return exc.message
    return fallback


async def report_failure(context: ContextTypes.DEFAULT_TYPE, chat_id: int, exc: Exception, fallback: str):
    """Turn a failed call into a dismissible alert."""
    if isinstance(exc, (AuthenticationError, AuthorizationError)):
        # The API client already moved the chat to the login or forbidden screen.
        return
    logger.warning("Action failed chat_id=%s: %s", chat_id, exc)
    await send_alert(context, chat_id, error_message(exc, fallback), error=True)


class ChatNavigator:
    """Moves a chat to the login or forbidden screen on behalf of the API client."""

    def __init__(self, bot):
        self.bot = bot

    async def to_login(self, session, redirect: Optional[str] = None):
        session.enter(LOGIN_SCREEN)
        session.redirect_to = redirect
        text = LOGIN_REQUIRED_TEXT if redirect else SESSION_EXPIRED_TEXT
        await self.bot.send_message(chat_id=session.chat_id, text=text, reply_markup=login_keyboard())
        logger.info("Redirected chat_id=%s to login (redirect=%s)", session.chat_id, redirect)

    async def to_forbidden(self, session):
        session.enter(FORBIDDEN_SCREEN)
        user = session.user if session.is_authenticated else None
        await self.bot.send_message(
            chat_id=session.chat_id, text=FORBIDDEN_TEXT, reply_markup=build_main_keyboard(user)
        )
        logger.info("Redirected chat_id=%s to forbidden screen", session.chat_id)
