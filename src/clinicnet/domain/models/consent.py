from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class TokenState(str, Enum):
    ISSUED = "ISSUED"
    CONSUMED = "CONSUMED"
    EXPIRED = "EXPIRED"


class ConsentToken(BaseModel):
    id: int
    global_entry_id: str
    code: str
    issued_at: datetime
    expires_at: datetime
    used: bool = False
    used_at: Optional[datetime] = None

    def state_at(self, now: datetime) -> TokenState:
        # EXPIRED is derived from the clock, never stored.
        if self.used:
            return TokenState.CONSUMED
        if now > self.expires_at:
            return TokenState.EXPIRED
        return TokenState.ISSUED


class IssuedToken(BaseModel):
    token_id: int
    code: str
    expires_at: datetime
