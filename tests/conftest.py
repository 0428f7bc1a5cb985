from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any, Optional

import httpx
import pytest

from booknest.api.client import ApiClient
from booknest.api.session import SessionStore
from booknest.config import Config
from booknest.models import User
from booknest.services.auth import AuthService
from booknest.services.events import EventService
from booknest.services.messaging import ChatNavigator
from booknest.services.reservations import ReservationService
from booknest.services.users import UserService
from booknest.storage.db import Database
from booknest.storage.session_storage import SessionStorage
from tests.fake_api import FakeBackend

API_URL = "http://api.test"
PARTICIPANT_CHAT = 1
ADMIN_CHAT = 2
ANONYMOUS_CHAT = 3


@dataclass
class FakeUser:
    id: int
    username: str = ""
    full_name: str = ""


@dataclass
class FakeChat:
    id: int
    sent: list[dict[str, Any]] = field(default_factory=list)

    async def send_message(self, text: str, reply_markup: Any = None, **kwargs: Any):
        self.sent.append({"text": text, "reply_markup": reply_markup, "kwargs": kwargs})


@dataclass
class FakeMessage:
    chat_id: int
    text: str = ""
    chat: FakeChat = field(init=False)
    replies: list[dict[str, Any]] = field(default_factory=list)
    deleted: int = 0

    def __post_init__(self):
        self.chat = FakeChat(self.chat_id)

    async def reply_text(self, text: str, reply_markup: Any = None, **kwargs: Any):
        self.replies.append(
            {"text": text, "reply_markup": reply_markup, "kwargs": kwargs}
        )

    async def delete(self, **kwargs: Any):
        self.deleted += 1


@dataclass
class FakeCallbackQuery:
    data: str
    from_user: FakeUser
    message: FakeMessage
    answered: int = 0
    edits: list[dict[str, Any]] = field(default_factory=list)
    deleted: int = 0

    async def answer(self, **kwargs: Any):
        self.answered += 1

    async def edit_message_text(self, text: str, reply_markup: Any = None, **kwargs: Any):
        self.edits.append(
            {"text": text, "reply_markup": reply_markup, "kwargs": kwargs, "kind": "text"}
        )

    async def edit_message_reply_markup(self, reply_markup: Any = None, **kwargs: Any):
        self.edits.append(
            {"reply_markup": reply_markup, "kwargs": kwargs, "kind": "markup"}
        )

    async def delete_message(self, **kwargs: Any):
        self.deleted += 1


@dataclass
class FakeUpdate:
    effective_user: FakeUser
    effective_chat: FakeChat
    message: Optional[FakeMessage] = None
    callback_query: Optional[FakeCallbackQuery] = None

    @property
    def effective_message(self) -> Optional[FakeMessage]:
        if self.message is not None:
            return self.message
        if self.callback_query is not None:
            return self.callback_query.message
        return None


class FakeBot:
    def __init__(self):
        self.sent_messages: list[dict[str, Any]] = []
        self.sent_documents: list[dict[str, Any]] = []

    async def send_message(self, chat_id: int, text: str, reply_markup: Any = None, **kwargs: Any):
        payload = {"chat_id": chat_id, "text": text, "reply_markup": reply_markup, "kwargs": kwargs}
        self.sent_messages.append(payload)
        return SimpleNamespace(message_id=len(self.sent_messages), chat=SimpleNamespace(id=chat_id))

    async def send_document(self, chat_id: int, document: Any, filename: str = "", caption: str = "", **kwargs: Any):
        payload = {
            "chat_id": chat_id,
            "document": document,
            "filename": filename,
            "caption": caption,
            "kwargs": kwargs,
        }
        self.sent_documents.append(payload)
        return SimpleNamespace(message_id=len(self.sent_documents), chat=SimpleNamespace(id=chat_id))

    def texts(self, chat_id: Optional[int] = None) -> list[str]:
        return [m["text"] for m in self.sent_messages if chat_id is None or m["chat_id"] == chat_id]


class FakeApplication:
    def __init__(self, bot_data: dict[str, Any]):
        self.bot_data = bot_data
        self.tasks: list[asyncio.Task] = []

    def create_task(self, coroutine, update=None, *, name=None) -> asyncio.Task:
        task = asyncio.create_task(coroutine, name=name)
        self.tasks.append(task)
        return task

    async def wait_tasks(self) -> None:
        tasks, self.tasks = self.tasks, []
        await asyncio.gather(*tasks)


@dataclass
class FakeContext:
    application: FakeApplication
    bot: FakeBot
    user_data: dict[str, Any] = field(default_factory=dict)
    args: list[str] = field(default_factory=list)


def make_message_update(user_id: int, chat_id: Optional[int] = None, text: str = "", username: str = "", full_name: str = "") -> FakeUpdate:
    chat_id = chat_id if chat_id is not None else user_id
    user = FakeUser(id=user_id, username=username, full_name=full_name)
    chat = FakeChat(id=chat_id)
    msg = FakeMessage(chat_id=chat_id, text=text)
    return FakeUpdate(effective_user=user, effective_chat=chat, message=msg, callback_query=None)


def make_callback_update(
    user_id: int,
    data: str,
    chat_id: Optional[int] = None,
    username: str = "",
    full_name: str = "",
) -> FakeUpdate:
    chat_id = chat_id if chat_id is not None else user_id
    user = FakeUser(id=user_id, username=username, full_name=full_name)
    chat = FakeChat(id=chat_id)
    msg = FakeMessage(chat_id=chat_id, text="")
    cq = FakeCallbackQuery(data=data, from_user=user, message=msg)
    return FakeUpdate(effective_user=user, effective_chat=chat, message=None, callback_query=cq)


def button_callbacks(markup) -> list[str]:
    if markup is None:
        return []
    return [button.callback_data for row in markup.inline_keyboard for button in row]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        bot_token="TEST_TOKEN",
        api_base_url=API_URL,
        session_db_path=str(tmp_path / "sessions.db"),
        log_file="",
        redirect_delay=0.0,
    )


@pytest.fixture
async def db(config: Config) -> Database:
    database = Database(config.session_db_path)
    await database.init_db()
    try:
        yield database
    finally:
        await database.close()


@pytest.fixture
async def session_store(db: Database) -> SessionStore:
    return SessionStore(SessionStorage(db))


@pytest.fixture
def fake_bot() -> FakeBot:
    return FakeBot()


@pytest.fixture
def navigator(fake_bot: FakeBot) -> ChatNavigator:
    return ChatNavigator(fake_bot)


@pytest.fixture
async def api_client(backend: FakeBackend, session_store: SessionStore, navigator: ChatNavigator) -> ApiClient:
    client = ApiClient(
        API_URL,
        session_store,
        navigator=navigator,
        transport=httpx.MockTransport(backend.handle),
    )
    try:
        yield client
    finally:
        await client.close()


@pytest.fixture
async def services(api_client: ApiClient, session_store: SessionStore):
    return SimpleNamespace(
        auth=AuthService(api_client, session_store),
        event=EventService(api_client),
        reservation=ReservationService(api_client),
        user=UserService(api_client),
    )


@pytest.fixture
async def bot_data(config, db, session_store, navigator, api_client, services):
    return {
        "config": config,
        "db": db,
        "session_store": session_store,
        "navigator": navigator,
        "api_client": api_client,
        "auth_service": services.auth,
        "event_service": services.event,
        "reservation_service": services.reservation,
        "user_service": services.user,
    }


@pytest.fixture
async def context(bot_data, fake_bot: FakeBot):
    ctx = FakeContext(application=FakeApplication(bot_data), bot=fake_bot, user_data={})
    yield ctx
    for task in ctx.application.tasks:
        task.cancel()
    await asyncio.gather(*ctx.application.tasks, return_exceptions=True)


@pytest.fixture
async def participant(backend: FakeBackend, session_store: SessionStore) -> dict:
    # Logged-in participant on chat PARTICIPANT_CHAT
    user = backend.add_user("ana@example.com", first_name="Ana", last_name="Martin")
    token = backend.issue_token(user["_id"])
    await session_store.establish(PARTICIPANT_CHAT, token, User.from_api(user))
    return user


@pytest.fixture
async def admin(backend: FakeBackend, session_store: SessionStore) -> dict:
    user = backend.add_user("admin@example.com", role="ADMIN", first_name="Alice", last_name="Admin")
    token = backend.issue_token(user["_id"])
    await session_store.establish(ADMIN_CHAT, token, User.from_api(user))
    return user


@pytest.fixture
def low_event(backend: FakeBackend) -> dict:
    # maxParticipants=10, availableSeats=2, published, in the future
    return backend.add_event(title="Jazz au parc", max_participants=10, available_seats=2)
