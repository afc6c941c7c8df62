# portal/core/display.py

from collections.abc import Mapping
from typing import Any

AVATAR_PALETTE_SIZE = 8


def _get(user: Any, *keys: str) -> Any:
    for key in keys:
        value = user.get(key) if isinstance(user, Mapping) else getattr(user, key, None)
        if value:
            return value
    return None


def display_name(user: Any, fallback: bool = True) -> str:
    """
    "First Last" for a user record (ORM row, schema or JSON dict).
    With fallback, an unnamed user shows as username, then email.
    """
    if user is None:
        return ""
    first = _get(user, "first_name", "firstName") or ""
    last = _get(user, "last_name", "lastName") or ""
    name = f"{first} {last}".strip()
    if name or not fallback:
        return name
    return _get(user, "username") or _get(user, "email") or ""


def initials(user: Any) -> str:
    if user is None:
        return "U"
    first = _get(user, "first_name", "firstName") or ""
    last = _get(user, "last_name", "lastName") or ""
    email = _get(user, "email") or ""

    if first and last:
        return f"{first[0]}{last[0]}".upper()
    if first:
        return first[0].upper()
    if last:
        return last[0].upper()
    if email:
        return email[0].upper()
    return "U"


def avatar_url(user: Any, base_url: str = "") -> str | None:
    """Absolute URLs and data URIs pass through; storage paths get the base URL."""
    if user is None:
        return None
    avatar = _get(user, "avatar", "profile_picture", "profilePicture")
    if not avatar:
        return None
    if avatar.startswith("http") or avatar.startswith("data:"):
        return avatar
    sep = "" if avatar.startswith("/") else "/"
    return f"{base_url.rstrip('/')}{sep}{avatar}"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def avatar_color_index(user: Any, palette_size: int = AVATAR_PALETTE_SIZE) -> int:
    """
    Stable palette slot for a user's initials badge.

    Same string hash the browser uses (hash = c + (hash << 5) - hash over
    UTF-16 code units, shift on a 32-bit int) so both sides agree on colours.
    """
    user_id = None if user is None else (
        user.get("id") if isinstance(user, Mapping) else getattr(user, "id", None)
    )
    if user_id is not None:
        source = str(user_id)
    else:
        source = display_name(user, fallback=False) or "user"

    units = source.encode("utf-16-le")
    h = 0
    for i in range(0, len(units), 2):
        code = units[i] | (units[i + 1] << 8)
        h = code + (_to_int32(_to_int32(h) << 5) - h)
    return abs(h) % palette_size
