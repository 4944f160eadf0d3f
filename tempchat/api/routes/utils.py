# tempchat/api/routes/utils.py

from __future__ import annotations

from fastapi import HTTPException

from tempchat.core.errors import RoomError


def to_http_error(error: RoomError) -> HTTPException:
    """
    Translate a service error into the HTTPException the routers raise.

    The detail carries the stable error code so clients can tell RoomFull
    from NameTaken even though both answer 409:

        {"detail": {"code": "room_full", "message": "..."}}
    """
    return HTTPException(
        status_code=error.status_code,
        detail={"code": error.code, "message": error.message},
    )
