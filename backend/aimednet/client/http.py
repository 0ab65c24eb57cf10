"""HTTP adapter implementing every store protocol against the AIMedNet API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from aimednet.core.config import settings
from aimednet.core.exceptions import BackendError
from aimednet.core.logger import get_logger
from aimednet.schemas.auth import SessionUser
from aimednet.schemas.connections import ConnectionRead
from aimednet.schemas.messages import ConversationRead, DirectMessageRead
from aimednet.schemas.notifications import NotificationRead
from aimednet.schemas.profiles import ProfileKeys


class ApiBackend:
    """
    Authenticated client for the reference backend.

    Satisfies AuthGateway, ProfileStore, MessageStore, CountsBackend and
    NotificationDispatcher. The session cookie lives in the httpx cookie jar;
    the CSRF token from login is sent on every state-changing request.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ):
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL
        )
        self._prefix = settings.API_V1_STR
        self._log = get_logger("http", logger)
        self._csrf_token: str | None = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = kwargs.pop("headers", {})
        if method != "GET" and self._csrf_token:
            headers["X-CSRF-Token"] = self._csrf_token

        try:
            response = await self._client.request(
                method, f"{self._prefix}{path}", headers=headers, **kwargs
            )
        except httpx.HTTPError as exc:
            self._log.error(f"{method} {path} failed: {exc}")
            raise BackendError(f"Could not reach the server: {exc}") from exc

        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            self._log.warning(f"{method} {path} -> {response.status_code}: {detail}")
            raise BackendError(str(detail), status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            self._log.error(f"{method} {path} returned a non-JSON body")
            raise BackendError(
                "Unexpected response from the server", status_code=response.status_code
            ) from exc

    # --- auth ---

    async def sign_up(self, email: str, full_name: str, password: str) -> dict:
        return await self._request(
            "POST",
            "/auth/signup",
            json={"email": email, "full_name": full_name, "password": password},
        )

    async def sign_in(self, email: str, password: str) -> SessionUser:
        data = await self._request(
            "POST", "/auth/login", json={"email": email, "password": password}
        )
        user = SessionUser.model_validate(data)
        self._csrf_token = user.csrf_token
        return user

    async def current_user(self) -> SessionUser | None:
        try:
            data = await self._request("GET", "/auth/me")
        except BackendError as exc:
            if exc.status_code == 401:
                return None
            raise
        return SessionUser.model_validate(data)

    async def update_password(self, new_password: str) -> None:
        await self._request(
            "POST", "/auth/password", json={"new_password": new_password}
        )

    async def sign_out(self) -> None:
        await self._request("POST", "/auth/logout")
        self._csrf_token = None
        self._client.cookies.clear()

    # --- profile keys ---

    async def get_profile_keys(self) -> ProfileKeys:
        return ProfileKeys.model_validate(
            await self._request("GET", "/profiles/me/keys")
        )

    async def create_encrypted_master_key(self, encrypted_master_key: str) -> None:
        """First write only; the server answers 409 if a key already exists."""
        await self._request(
            "POST",
            "/profiles/me/master-key",
            json={"encrypted_user_master_key": encrypted_master_key},
        )

    async def save_encrypted_master_key(self, encrypted_master_key: str) -> None:
        await self._request(
            "PUT",
            "/profiles/me/master-key",
            json={"encrypted_user_master_key": encrypted_master_key},
        )

    # --- messages ---

    async def start_conversation(self, recipient_id: int) -> ConversationRead:
        data = await self._request(
            "POST", "/conversations", json={"recipient_id": recipient_id}
        )
        return ConversationRead.model_validate(data)

    async def list_conversations(self) -> list[ConversationRead]:
        data = await self._request("GET", "/conversations")
        return [ConversationRead.model_validate(item) for item in data]

    async def list_messages(self, conversation_id: int) -> list[DirectMessageRead]:
        data = await self._request("GET", f"/conversations/{conversation_id}/messages")
        return [DirectMessageRead.model_validate(item) for item in data]

    async def post_message(
        self,
        conversation_id: int,
        content: str,
        parent_message_id: int | None = None,
    ) -> DirectMessageRead:
        data = await self._request(
            "POST",
            f"/conversations/{conversation_id}/messages",
            json={"content": content, "parent_message_id": parent_message_id},
        )
        return DirectMessageRead.model_validate(data)

    async def edit_message(self, message_id: int, content: str) -> DirectMessageRead:
        data = await self._request(
            "PATCH", f"/messages/{message_id}", json={"content": content}
        )
        return DirectMessageRead.model_validate(data)

    async def mark_conversation_read(self, conversation_id: int) -> None:
        await self._request("POST", f"/conversations/{conversation_id}/read")

    # --- counts ---

    async def _count(self, path: str) -> int:
        data = await self._request("GET", path)
        try:
            return int(data["count"])
        except (KeyError, TypeError, ValueError) as exc:
            self._log.error(f"GET {path} returned no count: {data!r}")
            raise BackendError("Unexpected count response from the server") from exc

    async def count_pending_requests(self) -> int:
        return await self._count("/connections/pending/count")

    async def count_unread_messages(self) -> int:
        return await self._count("/messages/unread-count")

    async def count_unread_notifications(self) -> int:
        return await self._count("/notifications/unread-count")

    # --- notifications and connections ---

    async def list_notifications(self) -> list[NotificationRead]:
        data = await self._request("GET", "/notifications")
        return [NotificationRead.model_validate(item) for item in data]

    async def mark_notification_read(self, notification_id: int) -> None:
        await self._request("POST", f"/notifications/{notification_id}/read")

    async def dispatch(self, kind: str, payload: dict[str, Any]) -> None:
        await self._request(
            "POST", "/notifications/dispatch", json={"type": kind, "payload": payload}
        )

    async def request_connection(self, addressee_id: int) -> ConnectionRead:
        data = await self._request(
            "POST", "/connections", json={"addressee_id": addressee_id}
        )
        return ConnectionRead.model_validate(data)
