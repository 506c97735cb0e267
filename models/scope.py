from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional


ScopeKind = Literal["shared", "user"]


@dataclass(frozen=True)
class Scope:
    """Which corpus an operation reads and writes: the shared one or a user's."""

    kind: ScopeKind
    user_id: Optional[str] = None
    user_email: Optional[str] = None

    @classmethod
    def shared(cls) -> "Scope":
        return cls("shared")

    @classmethod
    def user(cls, user_id, user_email: Optional[str] = None) -> "Scope":
        uid = str(user_id).strip() if user_id is not None else ""
        if not uid:
            raise ValueError("user scope requires a user id")
        return cls("user", uid, user_email)

    @property
    def is_user(self) -> bool:
        return self.kind == "user"

    @property
    def key(self) -> str:
        return f"user:{self.user_id}" if self.is_user else "shared"
