# tempchat/services/lifecycle.py
"""
Room lifecycle policy: expiry, admission and delete authority.

Pure functions over ``Room`` values; no I/O. A room moves
Active -> Expired -> Deleted, or Active -> Deleted on the creator's request,
and never comes back. Expired and deleted rooms both look like "not found".
"""

from tempchat.core.clock import HOUR_MS
from tempchat.core.errors import NameTaken, RoomFull
from tempchat.models.models import Room


def compute_expires_at(created_at: int, time_limit_hours: int) -> int:
    return created_at + time_limit_hours * HOUR_MS


def is_expired(room: Room, now: int) -> bool:
    return now >= room.expires_at


def can_admit(room: Room, candidate_name: str) -> Room:
    """
    Check whether ``candidate_name`` may join ``room``.

    Args:
        room: Current room state, read fresh from the store
        candidate_name: Display name asking to join (case-sensitive)

    Returns:
        Room: A copy of the room with the name appended to ``members``

    Raises:
        RoomFull: The roster already holds ``member_limit`` names
        NameTaken: The exact name is already on the roster
    """
    if len(room.members) >= room.member_limit:
        raise RoomFull(f"Room {room.id} has reached its member limit of {room.member_limit}")
    if candidate_name in room.members:
        raise NameTaken(f"The name '{candidate_name}' is already in use in this room")
    return room.model_copy(update={"members": [*room.members, candidate_name]})


def can_delete(room: Room, requester_name: str) -> bool:
    return requester_name == room.creator


def time_remaining(room: Room, now: int) -> int:
    return max(0, room.expires_at - now)


def format_time_left(remaining_ms: int) -> str:
    """Render a countdown as ``"{hours}h {minutes}m"``."""
    hours = remaining_ms // HOUR_MS
    minutes = (remaining_ms % HOUR_MS) // (60 * 1000)
    return f"{hours}h {minutes}m"
