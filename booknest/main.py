from __future__ import annotations

import logging

from telegram.ext import Application, ApplicationBuilder

from .api.client import ApiClient
from .api.session import SessionStore
from .config import load_config
from .handlers import admin as admin_handlers
from .handlers import auth as auth_handlers
from .handlers import events as events_handlers
from .handlers import menu as menu_handlers
from .handlers import profile as profile_handlers
from .handlers import reservations as reservation_handlers
from .handlers import start as start_handlers
from .logging_config import setup_logging
from .services.auth import AuthService
from .services.events import EventService
from .services.messaging import FORBIDDEN_TEXT, ChatNavigator
from .services.reservations import ReservationService
from .services.users import UserService
from .storage.db import Database
from .storage.session_storage import SessionStorage
from .utils.errors import PermissionDenied

logger = logging.getLogger(__name__)


async def on_startup(app: Application):
    logger.info("Bootstrapping BookNest bot...")
    db: Database = app.bot_data["db"]
    try:
        await db.init_db()
        logger.info("Session storage initialized at %s", db.path)
    except Exception:
        logger.exception("Failed to initialize session storage")
        raise


async def on_shutdown(app: Application):
    api_client: ApiClient = app.bot_data.get("api_client")
    if api_client:
        await api_client.close()
        logger.info("API client closed")
    db: Database = app.bot_data.get("db")
    if db:
        await db.close()
        logger.info("Database connection closed")
    logger.info("Bot shutdown complete")


async def on_error(update, context):
    err = context.error
    chat_id = getattr(getattr(update, "effective_chat", None), "id", None)
    if isinstance(err, PermissionDenied):
        logger.info("Forbidden screen for chat_id=%s: %s", chat_id, err)
    else:
        logger.exception("Handler error (chat_id=%s): %s", chat_id, err)
    if update and update.effective_message:
        try:
            if isinstance(err, PermissionDenied):
                await update.effective_message.reply_text(FORBIDDEN_TEXT)
            else:
                await update.effective_message.reply_text(
                    "⚠️ Une erreur est survenue. Elle a été enregistrée, réessayez dans un instant."
                )
        except Exception:
            logger.exception("Failed to send error message to chat_id=%s", chat_id)


def build_application() -> Application:
    config = load_config()
    setup_logging(
        config.log_level,
        log_file=config.log_file,
        max_bytes=config.log_max_bytes,
        backup_count=config.log_backup_count,
    )
    db = Database(config.session_db_path)
    session_store = SessionStore(SessionStorage(db))

    app = (
        ApplicationBuilder()
        .token(config.bot_token)
        .post_init(on_startup)
        .post_shutdown(on_shutdown)
        .concurrent_updates(True)
        .build()
    )

    navigator = ChatNavigator(app.bot)
    api_client = ApiClient(
        config.api_base_url,
        session_store,
        navigator=navigator,
        timeout=config.api_timeout,
        log_requests=config.api_log_requests,
    )

    app.bot_data["config"] = config
    app.bot_data["db"] = db
    app.bot_data["session_store"] = session_store
    app.bot_data["navigator"] = navigator
    app.bot_data["api_client"] = api_client
    app.bot_data["auth_service"] = AuthService(api_client, session_store)
    app.bot_data["event_service"] = EventService(api_client)
    app.bot_data["reservation_service"] = ReservationService(api_client)
    app.bot_data["user_service"] = UserService(api_client)

    start_handlers.setup_handlers(app)
    auth_handlers.setup_handlers(app)
    profile_handlers.setup_handlers(app)
    events_handlers.setup_handlers(app)
    reservation_handlers.setup_handlers(app)
    admin_handlers.setup_handlers(app)
    menu_handlers.setup_handlers(app)
    app.add_error_handler(on_error)
    logger.info(
        "Bot initialized (log_level=%s, api=%s, sessions=%s)",
        config.log_level,
        config.api_base_url,
        config.session_db_path,
    )
    return app


def main():
    application = build_application()
    logger.info("Starting polling...")
    application.run_polling()


if __name__ == "__main__":
    main()
