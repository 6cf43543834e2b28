"""Authenticated session handle passed explicitly into the workflow."""

from __future__ import annotations

import uuid
from typing import Dict, Optional

from pydantic import BaseModel, Field


class Session(BaseModel):
    """Carries the caller's credentials for backend calls.

    The session is supplied by whoever owns authentication; the workflow only
    reads it. A session without a token is treated as unauthenticated.
    """

    token: Optional[str] = Field(default=None, description="Bearer token")
    user_id: Optional[str] = Field(default=None, description="Acting user")
    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def headers(self) -> Dict[str, str]:
        headers = {"X-Correlation-ID": self.correlation_id}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.user_id:
            headers["X-User-ID"] = self.user_id
        return headers
