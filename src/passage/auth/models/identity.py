"""Normalized user identity returned by every provider variant."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NormalizedIdentity(BaseModel):
    """Provider-independent identity record.

    ``user_id`` is the stable identifier chosen by the provider variant,
    ``raw_claims`` the full user info payload for downstream use.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    provider: str
    raw_claims: dict[str, Any] = Field(default_factory=dict)

    def summary(self) -> dict[str, str]:
        """Public view of the identity, without raw claims."""
        return {"user_id": self.user_id, "provider": self.provider}
