"""User-related data models."""

from dataclasses import dataclass
from enum import Enum


class UserType(str, Enum):
    USER = "User"
    BOT = "Bot"
    ORGANIZATION = "Organization"


@dataclass(frozen=True)
class User:
    """A backend account projected into the canonical shape."""

    login: str
    id: int
    avatar_url: str = ""
    html_url: str = ""
    type: UserType = UserType.USER


def identity_hash(value: str) -> int:
    """
    Project a UUID/GUID identity onto a stable integer id.

    Uses the 31-multiplier string hash wrapped to a signed 32-bit integer,
    then takes the absolute value. The result is stable across runs and
    platforms but not collision-free, so it must only be used to compare
    identities, never to authorize anything.

    Args:
        value: Backend identity string (e.g. "{0f9c...}" or a GUID)

    Returns:
        Non-negative integer in [0, 2**31]
    """
    h = 0
    for char in value:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)
