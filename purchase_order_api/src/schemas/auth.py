from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class CurrentUser(BaseModel):
    """Identity resolved from a bearer token issued by the identity provider."""
    username: str = Field(..., description="Token subject")
    roles: List[str] = Field(default_factory=list, description="Role / permission codes")

    def has_any(self, *required: str) -> bool:
        return not set(self.roles).isdisjoint(required)
