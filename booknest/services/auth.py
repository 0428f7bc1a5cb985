from __future__ import annotations

from typing import Optional

from ..constants import Role
from ..logging_config import logger
from ..models import AuthResponse, User
from ..utils.errors import ValidationError
from ..utils.validators import is_valid_email

REGISTER_PATH = "/auth/register"
LOGIN_PATH = "/auth/login"
PROFILE_PATH = "/auth/profile"

PROFILE_FIELDS = {"first_name": "firstName", "last_name": "lastName", "email": "email"}


class AuthService:
    def __init__(self, client, session_store):
        self.client = client
        self.session_store = session_store

    async def register(
        self,
        session,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        role: Role = Role.PARTICIPANT,
    ) -> AuthResponse:
        payload = {
            "firstName": first_name.strip(),
            "lastName": last_name.strip(),
            "email": email.strip(),
            "password": password,
            "role": role.value,
        }
        auth = AuthResponse.from_api(await self.client.post(session, REGISTER_PATH, json=payload))
        await self._establish(session, auth)
        logger.info("Registered user_id=%s chat_id=%s", auth.user.user_id, session.chat_id)
        return auth

    async def login(self, session, email: str, password: str) -> AuthResponse:
        payload = {"email": email.strip(), "password": password}
        auth = AuthResponse.from_api(await self.client.post(session, LOGIN_PATH, json=payload))
        await self._establish(session, auth)
        logger.info("Logged in user_id=%s chat_id=%s", auth.user.user_id, session.chat_id)
        return auth

    async def get_profile(self, session) -> User:
        user = User.from_api(await self.client.get(session, PROFILE_PATH))
        await self.session_store.update_user(session.chat_id, user)
        return user

    async def update_profile(self, session, **changes: Optional[str]) -> User:
        payload = {}
        for key, api_key in PROFILE_FIELDS.items():
            value = changes.get(key)
            if value is None:
                continue
            value = value.strip()
            if key == "email" and not is_valid_email(value):
                raise ValidationError("Adresse email invalide.")
            if key != "email" and len(value) < 2:
                raise ValidationError("Le nom doit contenir au moins 2 caractères.")
            payload[api_key] = value
        user = User.from_api(await self.client.patch(session, PROFILE_PATH, json=payload))
        await self.session_store.update_user(session.chat_id, user)
        logger.info("Profile updated chat_id=%s fields=%s", session.chat_id, sorted(payload))
        return user

    async def logout(self, session):
        await self.session_store.clear(session.chat_id)

    async def _establish(self, session, auth: AuthResponse):
        if not auth.access_token:
            raise ValidationError("Réponse d'authentification invalide.")
        await self.session_store.establish(session.chat_id, auth.access_token, auth.user)
