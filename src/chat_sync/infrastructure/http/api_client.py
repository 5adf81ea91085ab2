"""httpx client for the chat REST API."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from chat_sync.application.dto.message import CreateMessageRequest, MessagePage
from chat_sync.application.exceptions import RequestError

logger = logging.getLogger(__name__)

_CONNECTION_ERROR_TYPES = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.RemoteProtocolError,
)


class HttpChatApi:
    """Implements the message, conversation and profile gateways over HTTP.

    Every transport or HTTP failure is raised as ``RequestError``; callers in
    the sync core never see httpx exceptions.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_messages(
        self,
        conversation_id: str,
        *,
        limit: int,
        next_token: str | None = None,
    ) -> MessagePage:
        params: dict[str, Any] = {"limit": limit}
        if next_token:
            params["next_token"] = next_token
        data = await self._request(
            "GET", f"/api/v1/chat/conversations/{conversation_id}/messages", params=params,
        )
        items = data.get("items") or []
        if not isinstance(items, list):
            raise RequestError("Malformed message page: items is not a list")
        return MessagePage(items=items, next_token=data.get("next_token"))

    async def send_message(self, request: CreateMessageRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "msg_id": request.msg_id,
            "type": str(request.type),
            "body": request.body,
        }
        if request.media_key:
            body["media_key"] = request.media_key
        return await self._request(
            "POST", f"/api/v1/chat/conversations/{request.conversation_id}/messages", json=body,
        )

    async def list_conversations(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/api/v1/chat/conversations")
        if not isinstance(data, list):
            raise RequestError("Malformed conversation list")
        return data

    async def create_conversation(
        self, member_ids: list[str], title: str | None = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST", "/api/v1/chat/conversations", json={"member_ids": member_ids, "title": title},
        )

    async def create_profile(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", "/api/v1/chat/profiles/me", json=data)

    async def get_profile(self, user_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/v1/chat/profiles/{user_id}")

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except _CONNECTION_ERROR_TYPES as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise RequestError(f"{method} {url} failed: {exc}") from exc

        if response.is_error:
            detail = _error_detail(response)
            logger.warning("%s %s -> %d: %s", method, url, response.status_code, detail)
            raise RequestError(detail, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise RequestError(
                f"{method} {url} returned invalid JSON", status_code=response.status_code,
            ) from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    if isinstance(detail, str) and detail:
        return detail
    return f"HTTP {response.status_code}"
