from __future__ import annotations

from typing import List

from ..models import User

USERS_PATH = "/users"


class UserService:
    def __init__(self, client):
        self.client = client

    async def list_users(self, session) -> List[User]:
        data = await self.client.get(session, USERS_PATH)
        return [User.from_api(row) for row in data or []]

    async def get_user(self, session, user_id: str) -> User:
        return User.from_api(await self.client.get(session, f"{USERS_PATH}/{user_id}"))
