from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from ..constants import ACCESS_TOKEN_KEY, HOME_SCREEN, USER_KEY
from ..models import User
from ..storage.session_storage import SessionStorage
from ..utils.errors import ApiError

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Authentication state and current screen of one chat."""

    chat_id: int
    token: Optional[str] = None
    user: Optional[User] = None
    screen: str = HOME_SCREEN
    screen_ticket: int = 0
    redirect_to: Optional[str] = None
    initialized: bool = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.user is not None

    def enter(self, screen: str) -> int:
        """Mark ``screen`` as displayed and return a ticket for stale-response checks."""
        self.screen = screen
        self.screen_ticket += 1
        return self.screen_ticket

    def is_current(self, ticket: int) -> bool:
        return ticket == self.screen_ticket


class SessionStore:
    """
    Owns every chat session.

    Lifecycle: ``init`` validates a persisted token against the profile endpoint,
    ``establish`` stores a fresh login, ``clear`` tears the session down on
    logout or on a 401 from the API.
    """

    def __init__(self, storage: SessionStorage):
        self.storage = storage
        self._sessions: Dict[int, Session] = {}

    async def get(self, chat_id: int) -> Session:
        session = self._sessions.get(chat_id)
        if session is None:
            session = Session(chat_id=chat_id)
            session.token = await self.storage.get_item(chat_id, ACCESS_TOKEN_KEY)
            raw_user = await self.storage.get_item(chat_id, USER_KEY)
            if raw_user:
                try:
                    session.user = User.from_api(json.loads(raw_user))
                except (ValueError, TypeError):
                    logger.warning("Dropping unreadable stored user for chat_id=%s", chat_id)
                    await self.storage.remove_item(chat_id, USER_KEY)
            self._sessions[chat_id] = session
        return session

    async def init(self, chat_id: int, auth_service) -> Session:
        session = await self.get(chat_id)
        if not session.token:
            session.user = None
            session.initialized = True
            return session
        try:
            await auth_service.get_profile(session)
        except ApiError as exc:
            logger.info("Stored token rejected for chat_id=%s (status=%s)", chat_id, exc.status)
            await self.clear(chat_id)
        session.initialized = True
        return session

    async def establish(self, chat_id: int, token: str, user: User) -> Session:
        session = await self.get(chat_id)
        session.token = token
        session.user = user
        session.initialized = True
        await self.storage.set_item(chat_id, ACCESS_TOKEN_KEY, token)
        await self.storage.set_item(chat_id, USER_KEY, json.dumps(user.to_api()))
        logger.info("Session established chat_id=%s user_id=%s role=%s", chat_id, user.user_id, user.role.value)
        return session

    async def update_user(self, chat_id: int, user: User) -> Session:
        session = await self.get(chat_id)
        session.user = user
        await self.storage.set_item(chat_id, USER_KEY, json.dumps(user.to_api()))
        return session

    async def clear(self, chat_id: int) -> Session:
        session = await self.get(chat_id)
        session.token = None
        session.user = None
        await self.storage.clear(chat_id)
        logger.info("Session cleared chat_id=%s", chat_id)
        return session
