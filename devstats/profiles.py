"""Linked platform accounts per user, kept in process memory."""
import threading
from typing import Dict, Optional

from pydantic import BaseModel, field_validator


class LinkedAccounts(BaseModel):
    github: Optional[str] = None
    leetcode: Optional[str] = None
    codeforces: Optional[str] = None
    hackerrank: Optional[str] = None

    @field_validator("github", "leetcode", "codeforces", "hackerrank", mode="before")
    @classmethod
    def _blank_is_unlinked(cls, value: Optional[str]) -> Optional[str]:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def linked(self) -> Dict[str, str]:
        return {platform: name for platform, name in self.model_dump().items() if name}


class ProfileStore:
    def __init__(self) -> None:
        self._profiles: Dict[str, LinkedAccounts] = {}
        self._lock = threading.Lock()

    def get_profile(self, user_id: str) -> Optional[LinkedAccounts]:
        with self._lock:
            profile = self._profiles.get(user_id)
            return profile.model_copy() if profile is not None else None

    def update_links(self, user_id: str, accounts: LinkedAccounts) -> LinkedAccounts:
        """Merge the fields the caller set; an explicit blank unlinks the platform."""
        changes = accounts.model_dump(exclude_unset=True)
        with self._lock:
            current = self._profiles.get(user_id) or LinkedAccounts()
            merged = current.model_copy(update=changes)
            self._profiles[user_id] = merged
            return merged.model_copy()

    def delete_profile(self, user_id: str) -> bool:
        with self._lock:
            return self._profiles.pop(user_id, None) is not None
