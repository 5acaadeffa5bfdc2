"""SDK public types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pt_tracker.errors import TrackerResponseError


@dataclass(frozen=True)
class TokenInfo:
    """Identity the tracker reports for an API token."""

    api_token: str
    id: int
    name: str
    username: str

    @classmethod
    def from_payload(cls, payload: Any, *, fallback_token: str) -> TokenInfo:
        if not isinstance(payload, dict):
            raise TrackerResponseError("identity response must be a JSON object")

        raw_id = payload.get("id")
        # bool is an int subclass; a JSON true is not an account id.
        if not isinstance(raw_id, int) or isinstance(raw_id, bool):
            raise TrackerResponseError("identity response is missing an integer id")

        name = payload.get("name")
        username = payload.get("username")
        if not isinstance(name, str) or not isinstance(username, str):
            raise TrackerResponseError("identity response must contain name and username")

        api_token = payload.get("apiToken", payload.get("api_token"))
        if not isinstance(api_token, str) or not api_token.strip():
            api_token = fallback_token

        return cls(api_token=api_token, id=raw_id, name=name, username=username)


__all__ = ["TokenInfo"]
