# tempchat/services/rooms_client.py

from __future__ import annotations

import logging
from typing import Optional

import httpx

from tempchat.core.config import settings
from tempchat.core.errors import RoomError, StoreUnavailable, UploadFailed, error_for_code
from tempchat.models.models import (
    CreateRoomRequest,
    Message,
    PostMessageRequest,
    Room,
    RoomDetail,
    UploadResponse,
)

logger = logging.getLogger(__name__)


class RoomsApiClient:
    """
    Async client for the tempchat HTTP API.

    Error responses are turned back into the exceptions the server raised
    (RoomFull, NameTaken, NotFound, ...) using the ``code`` in the error body.
    Network failures and timeouts surface as StoreUnavailable so callers have
    one transient error to handle.

    Usage:
        async with RoomsApiClient("http://localhost:8000") as api:
            room = await api.create_room(CreateRoomRequest(name="Team", creator="alice"))
            detail = await api.get_room(room.id)
    """

    def __init__(
        self,
        base_url: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "RoomsApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise StoreUnavailable(f"Request to {url} failed") from e

        if response.is_error:
            raise self._error_from(response)
        return response

    @staticmethod
    def _error_from(response: httpx.Response) -> RoomError:
        code, message = None, response.reason_phrase
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = None
        if isinstance(detail, dict):
            code = detail.get("code")
            message = detail.get("message", message)
        elif isinstance(detail, str):
            message = detail
        return error_for_code(code, response.status_code)(message)

    async def create_room(self, request: CreateRoomRequest) -> Room:
        response = await self._request("POST", "/rooms", json=request.model_dump(exclude_none=True))
        return Room(**response.json())

    async def list_rooms(self) -> list[Room]:
        response = await self._request("GET", "/rooms")
        return [Room(**r) for r in response.json()]

    async def get_room(self, room_id: str) -> RoomDetail:
        response = await self._request("GET", f"/rooms/{room_id}")
        return RoomDetail(**response.json())

    async def join_room(self, room_id: str, name: str) -> Room:
        response = await self._request("POST", f"/rooms/{room_id}/join", json={"name": name})
        return Room(**response.json())

    async def delete_room(self, room_id: str, requester_name: str) -> None:
        await self._request("DELETE", f"/rooms/{room_id}", params={"requester": requester_name})

    async def post_message(self, room_id: str, request: PostMessageRequest) -> Message:
        response = await self._request(
            "POST", f"/rooms/{room_id}/messages", json=request.model_dump(exclude_none=True)
        )
        return Message(**response.json())

    async def upload(self, filename: str, data: bytes, content_type: Optional[str] = None) -> UploadResponse:
        headers = {"content-type": content_type} if content_type else {}
        try:
            response = await self._request(
                "POST", "/upload", params={"filename": filename}, content=data, headers=headers
            )
        except StoreUnavailable as e:
            raise UploadFailed(f"Failed to upload {filename}") from e
        return UploadResponse(**response.json())
