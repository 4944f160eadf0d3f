# tempchat/core/errors.py
"""
Error taxonomy shared by the services, the HTTP layer and the API client.

Every error carries a stable ``code`` (sent over the wire) and the HTTP
``status_code`` the routers answer with. Nothing here is process-fatal: each
error is scoped to the request that raised it.
"""

from __future__ import annotations

from typing import Dict, Type


class RoomError(Exception):
    code: str = "room_error"
    status_code: int = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFound(RoomError):
    """Room or message is absent, or the room has expired."""

    code = "not_found"
    status_code = 404


class RoomNotFound(NotFound):
    code = "room_not_found"


class DuplicateId(RoomError):
    code = "duplicate_id"
    status_code = 409


class RoomFull(RoomError):
    code = "room_full"
    status_code = 409


class NameTaken(RoomError):
    code = "name_taken"
    status_code = 409


class VersionConflict(RoomError):
    """The member list changed between read and write."""

    code = "version_conflict"
    status_code = 409


class NotCreator(RoomError):
    code = "not_creator"
    status_code = 403


class NotMember(RoomError):
    code = "not_member"
    status_code = 403


class StoreUnavailable(RoomError):
    """Transient I/O failure against the store or the blob provider."""

    code = "store_unavailable"
    status_code = 503


class UploadFailed(RoomError):
    code = "upload_failed"
    status_code = 502


_ERRORS_BY_CODE: Dict[str, Type[RoomError]] = {
    cls.code: cls
    for cls in (
        NotFound,
        RoomNotFound,
        DuplicateId,
        RoomFull,
        NameTaken,
        VersionConflict,
        NotCreator,
        NotMember,
        StoreUnavailable,
        UploadFailed,
    )
}


def error_for_code(code: str | None, status_code: int = 400) -> Type[RoomError]:
    """
    Map a wire error code back to its exception class.

    Unknown codes fall back on the HTTP status: 404 -> NotFound,
    5xx -> StoreUnavailable, anything else -> RoomError.
    """
    if code and code in _ERRORS_BY_CODE:
        return _ERRORS_BY_CODE[code]
    if status_code == 404:
        return NotFound
    if status_code >= 500:
        return StoreUnavailable
    return RoomError
