# tempchat/core/ids.py

import secrets


def generate_id() -> str:
    """Random URL-safe token used for room and message ids."""
    return secrets.token_urlsafe(9)
