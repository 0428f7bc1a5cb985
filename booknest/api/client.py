from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..constants import LOGIN_SCREEN
from .session import Session, SessionStore
from ..utils.errors import NetworkError, error_from_response

logger = logging.getLogger(__name__)


class ApiClient:
    """
    Single point of outbound HTTP to the BookNest API.

    Every call takes the caller's ``Session``: its token becomes the bearer
    header, and on 401/403 the client itself tears the session down and moves
    the chat to the login or forbidden screen before raising. Callers must
    expect that handoff to have happened by the time they see the exception.
    """

    def __init__(
        self,
        base_url: str,
        session_store: SessionStore,
        navigator=None,
        timeout: float = 15.0,
        log_requests: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session_store = session_store
        self.navigator = navigator
        self.log_requests = log_requests
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def request(
        self,
        session: Optional[Session],
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        binary: bool = False,
    ) -> Any:
        headers = {}
        if session is not None and session.token:
            headers["Authorization"] = f"Bearer {session.token}"
        if self.log_requests:
            logger.debug("API request %s %s params=%s", method, path, params)

        try:
            response = await self._http.request(
                method, path, params=params or None, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.error("API transport error %s %s: %s", method, path, exc)
            raise NetworkError(None, "Impossible de joindre le serveur BookNest", None) from exc

        if self.log_requests:
            logger.debug("API response %s %s", response.status_code, path)

        if response.is_success:
            if binary:
                return response.content
            if not response.content:
                return None
            return response.json()

        logger.error("API error response %s %s %s", response.status_code, method, path)
        data = self._decode_body(response)
        if response.status_code == 401:
            await self._on_unauthorized(session)
        elif response.status_code == 403:
            await self._on_forbidden(session)
        elif response.status_code >= 500:
            logger.error("Server error on %s %s: %s", method, path, data)
        raise error_from_response(response.status_code, data)

    async def get(self, session: Optional[Session], path: str, **kwargs: Any) -> Any:
        return await self.request(session, "GET", path, **kwargs)

    async def post(self, session: Optional[Session], path: str, **kwargs: Any) -> Any:
        return await self.request(session, "POST", path, **kwargs)

    async def patch(self, session: Optional[Session], path: str, **kwargs: Any) -> Any:
        return await self.request(session, "PATCH", path, **kwargs)

    async def delete(self, session: Optional[Session], path: str, **kwargs: Any) -> Any:
        return await self.request(session, "DELETE", path, **kwargs)

    async def close(self) -> None:
        await self._http.aclose()

    @staticmethod
    def _decode_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def _on_unauthorized(self, session: Optional[Session]):
        if session is None:
            return
        await self.session_store.clear(session.chat_id)
        if session.screen == LOGIN_SCREEN:
            return
        if self.navigator is not None:
            await self.navigator.to_login(session)

    async def _on_forbidden(self, session: Optional[Session]):
        logger.warning("Access forbidden for chat_id=%s", getattr(session, "chat_id", None))
        if session is not None and self.navigator is not None:
            await self.navigator.to_forbidden(session)
