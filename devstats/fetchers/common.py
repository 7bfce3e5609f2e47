import re
from datetime import datetime, timezone
from typing import Callable, Optional

from ..errors import InvalidInput

USERNAME_RE = re.compile(r"^[A-Za-z0-9_.\-]{1,64}$")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clean_username(username: Optional[str], platform: str) -> str:
    """Strip and validate a platform username before it reaches an upstream URL."""
    value = (username or "").strip()
    if not value:
        raise InvalidInput(f"{platform} username is required")
    if not USERNAME_RE.match(value):
        raise InvalidInput(f"{platform} username is malformed")
    return value
