from __future__ import annotations

from types import SimpleNamespace

import pytest
from telegram.ext import ConversationHandler

from booknest.constants import Conversation
from booknest.handlers import auth as auth_handlers
from booknest.handlers import events as events_handlers
from booknest.handlers import menu as menu_handlers
from booknest.handlers import profile as profile_handlers
from booknest.handlers import start as start_handlers
from booknest.main import on_error
from booknest.services.messaging import (
    FORBIDDEN_TEXT,
    MENU_LABEL_EVENTS,
    MENU_LABEL_LOGIN,
    SESSION_EXPIRED_TEXT,
)
from booknest.utils.errors import PermissionDenied
from tests.conftest import (
    ANONYMOUS_CHAT,
    PARTICIPANT_CHAT,
    button_callbacks,
    make_callback_update,
    make_message_update,
)


def _keyboard_labels(markup) -> list[str]:
    return [b.text for row in markup.keyboard for b in row]


async def _login(context, chat_id: int, email: str, password: str):
    start = make_message_update(chat_id, text="/login")
    assert await auth_handlers.login_start(start, context) == Conversation.LOGIN_EMAIL
    typed_email = make_message_update(chat_id, text=email)
    assert await auth_handlers.login_email(typed_email, context) == Conversation.LOGIN_PASSWORD
    typed_password = make_message_update(chat_id, text=password)
    state = await auth_handlers.login_password(typed_password, context)
    return state, typed_password


@pytest.mark.asyncio
async def test_start_greets_returning_user(context, fake_bot, participant):
    update = make_message_update(PARTICIPANT_CHAT, text="/start")
    await start_handlers.start(update, context)
    message = fake_bot.sent_messages[-1]
    assert message["text"] == "Bon retour Ana !"
    assert MENU_LABEL_LOGIN not in _keyboard_labels(message["reply_markup"])


@pytest.mark.asyncio
async def test_start_anonymous_gets_login_buttons(context, fake_bot):
    update = make_message_update(ANONYMOUS_CHAT, text="/start")
    await start_handlers.start(update, context)
    assert MENU_LABEL_LOGIN in _keyboard_labels(fake_bot.sent_messages[-1]["reply_markup"])


@pytest.mark.asyncio
async def test_login_resumes_remembered_screen(context, backend, fake_bot, session_store):
    backend.add_user("bob@example.com", password="hunter22", first_name="Bob")
    event = backend.add_event(title="Jazz au parc")

    reserve = make_callback_update(ANONYMOUS_CHAT, f"event_reserve_{event['_id']}")
    await events_handlers.start_reservation(reserve, context)

    state, typed_password = await _login(context, ANONYMOUS_CHAT, "bob@example.com", "hunter22")

    assert state == ConversationHandler.END
    assert typed_password.message.deleted == 1
    session = await session_store.get(ANONYMOUS_CHAT)
    assert session.is_authenticated
    assert session.redirect_to is None
    texts = fake_bot.texts(ANONYMOUS_CHAT)
    assert "✅ Bienvenue Bob !" in texts
    assert texts[-1].startswith("📅 Jazz au parc")
    assert f"event_reserve_{event['_id']}" in button_callbacks(fake_bot.sent_messages[-1]["reply_markup"])


@pytest.mark.asyncio
async def test_login_without_redirect_opens_dashboard(context, backend):
    backend.add_user("bob@example.com", password="hunter22", first_name="Bob")
    state, typed_password = await _login(context, ANONYMOUS_CHAT, "bob@example.com", "hunter22")
    assert state == ConversationHandler.END
    assert typed_password.message.replies[-1]["text"].startswith("👋 Bonjour Bob")


@pytest.mark.asyncio
async def test_wrong_password_stays_on_login(context, backend, fake_bot):
    backend.add_user("bob@example.com", password="hunter22")
    state, typed_password = await _login(context, ANONYMOUS_CHAT, "bob@example.com", "wrong")

    assert state == Conversation.LOGIN_EMAIL
    assert typed_password.effective_chat.sent[-1]["text"].startswith("⚠️ Email ou mot de passe incorrect")
    assert SESSION_EXPIRED_TEXT not in fake_bot.texts(ANONYMOUS_CHAT)


@pytest.mark.asyncio
async def test_register_flow(context, backend, session_store):
    start = make_message_update(ANONYMOUS_CHAT, text="/register")
    assert await auth_handlers.register_start(start, context) == Conversation.REGISTER_FIRST_NAME
    assert await auth_handlers.register_first_name(
        make_message_update(ANONYMOUS_CHAT, text="Chloé"), context
    ) == Conversation.REGISTER_LAST_NAME
    assert await auth_handlers.register_last_name(
        make_message_update(ANONYMOUS_CHAT, text="Durand"), context
    ) == Conversation.REGISTER_EMAIL
    assert await auth_handlers.register_email(
        make_message_update(ANONYMOUS_CHAT, text="chloe@example.com"), context
    ) == Conversation.REGISTER_PASSWORD

    short = make_message_update(ANONYMOUS_CHAT, text="123")
    assert await auth_handlers.register_password(short, context) == Conversation.REGISTER_PASSWORD

    ok = make_message_update(ANONYMOUS_CHAT, text="secret12")
    assert await auth_handlers.register_password(ok, context) == ConversationHandler.END

    session = await session_store.get(ANONYMOUS_CHAT)
    assert session.is_authenticated
    assert session.user.email == "chloe@example.com"
    assert any(u["email"] == "chloe@example.com" for u in backend.users.values())


@pytest.mark.asyncio
async def test_logout_clears_session(context, fake_bot, session_store, participant):
    update = make_message_update(PARTICIPANT_CHAT, text="/logout")
    await auth_handlers.logout(update, context)

    session = await session_store.get(PARTICIPANT_CHAT)
    assert not session.is_authenticated
    assert await session_store.storage.get_item(PARTICIPANT_CHAT, "access_token") is None
    assert fake_bot.sent_messages[-1]["text"] == "👋 Vous êtes déconnecté."


@pytest.mark.asyncio
async def test_profile_edit_validates_and_saves(context, backend, fake_bot, session_store, participant):
    show = make_message_update(PARTICIPANT_CHAT, text="/profile")
    await profile_handlers.show_profile(show, context)
    assert "Email : ana@example.com" in show.message.replies[-1]["text"]

    ask = make_callback_update(PARTICIPANT_CHAT, "profile_edit_email")
    assert await profile_handlers.ask_field(ask, context) == Conversation.PROFILE_EMAIL

    bad = make_message_update(PARTICIPANT_CHAT, text="pas-un-email")
    assert await profile_handlers.save_field(bad, context) == Conversation.PROFILE_EMAIL
    assert bad.message.replies[-1]["text"] == "⚠️ Adresse email invalide."

    good = make_message_update(PARTICIPANT_CHAT, text="ana.martin@example.com")
    assert await profile_handlers.save_field(good, context) == ConversationHandler.END
    assert good.message.replies[-1]["text"] == "✅ Profil mis à jour avec succès"
    assert backend.users[participant["_id"]]["email"] == "ana.martin@example.com"
    assert (await session_store.get(PARTICIPANT_CHAT)).user.email == "ana.martin@example.com"


@pytest.mark.asyncio
async def test_anonymous_profile_goes_to_login(context, session_store):
    update = make_message_update(ANONYMOUS_CHAT, text="/profile")
    await profile_handlers.show_profile(update, context)
    session = await session_store.get(ANONYMOUS_CHAT)
    assert session.redirect_to == "/profile"


@pytest.mark.asyncio
async def test_menu_router(context, backend, fake_bot):
    backend.add_event(title="Jazz")
    update = make_message_update(ANONYMOUS_CHAT, text=MENU_LABEL_EVENTS)
    await menu_handlers.main_menu_router(update, context)
    assert update.message.replies[-1]["text"].startswith("Événements (1)")

    unknown = make_message_update(ANONYMOUS_CHAT, text="bonjour")
    await menu_handlers.main_menu_router(unknown, context)
    assert fake_bot.sent_messages[-1]["text"] == "Je n'ai pas compris, voici le menu :"


@pytest.mark.asyncio
async def test_error_handler_answers_forbidden():
    update = make_message_update(PARTICIPANT_CHAT, text="/admin")
    await on_error(update, SimpleNamespace(error=PermissionDenied("nope")))
    assert update.message.replies[-1]["text"] == FORBIDDEN_TEXT


@pytest.mark.asyncio
async def test_error_handler_generic_message():
    update = make_message_update(PARTICIPANT_CHAT, text="/events")
    await on_error(update, SimpleNamespace(error=RuntimeError("boom")))
    assert update.message.replies[-1]["text"].startswith("⚠️ Une erreur est survenue")
