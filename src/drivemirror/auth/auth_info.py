"""Authentication information for the Google Drive gateway."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

_REQUIRED_KEYS: dict[str, tuple[str, ...]] = {
    "oauth": ("client_secrets_file", "token_file"),
    "refresh_token": ("client_id", "client_secret", "refresh_token"),
}


@dataclass(slots=True, frozen=True)
class AuthInfo:
    """
    Authentication information.

    Supported kinds:
        kind = "oauth" (interactive installed-app flow, token cached on disk)
            data: client_secrets_file, token_file
        kind = "refresh_token" (server-side, long-lived refresh token)
            data: client_id, client_secret, refresh_token
            optional: token_uri
    """

    kind: str
    data: dict[str, Any]

    def __post_init__(self) -> None:
        if self.kind not in _REQUIRED_KEYS:
            raise ValueError(f"AuthInfo.kind must be one of {sorted(_REQUIRED_KEYS)}")

        if not isinstance(self.data, dict):
            raise TypeError("AuthInfo.data must be a dict")

        for key in _REQUIRED_KEYS[self.kind]:
            value = self.data.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"AuthInfo.data['{key}'] must be a non-empty string")

    @classmethod
    def from_refresh_token(
        cls,
        client_id: str,
        client_secret: str,
        refresh_token: str,
    ) -> AuthInfo:
        return cls(
            kind="refresh_token",
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
            },
        )

    @property
    def client_secrets_file(self) -> str:
        """Path to OAuth client secrets JSON (kind='oauth')."""
        return str(self.data["client_secrets_file"])

    @property
    def token_file(self) -> str:
        """Path to OAuth token JSON (kind='oauth')."""
        return str(self.data["token_file"])
