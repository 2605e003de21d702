"""Credential acquisition for GoogleDriveGateway."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional, Sequence

from drivemirror.errors import InvalidArgumentError, RemoteUnavailable

from .auth_info import AuthInfo

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URI: str = "https://oauth2.googleapis.com/token"


class OAuthClient:
    """
    Turn an AuthInfo into google-auth credentials and a Drive v3 service.

    Every failure to obtain usable credentials surfaces as RemoteUnavailable:
    the mirror cannot reach the remote store, whatever the underlying reason.
    """

    def __init__(self, auth_info: AuthInfo) -> None:
        self._auth_info = auth_info

    def get_credentials(self, scopes: Sequence[str], ensure_valid: bool = True):
        """
        Return google.oauth2.credentials.Credentials for `scopes`.

        With ensure_valid=False nothing touches the network: a cached token
        (or the bare refresh token) is returned as-is.
        """
        if not scopes or not all(isinstance(s, str) and s.strip() for s in scopes):
            raise InvalidArgumentError("scopes must be a non-empty sequence of strings")

        wanted = list(scopes)
        if self._auth_info.kind == "refresh_token":
            return self._from_refresh_token(wanted, ensure_valid)
        return self._from_token_file(wanted, ensure_valid)

    def build_drive_service(self, scopes: Sequence[str], ensure_valid: bool = True):
        from googleapiclient.discovery import build

        creds = self.get_credentials(scopes=scopes, ensure_valid=ensure_valid)
        try:
            return build("drive", "v3", credentials=creds, cache_discovery=False)
        except Exception as exc:
            raise RemoteUnavailable("Failed to build Drive service", cause=exc) from exc

    # ----------------------------
    # Internals
    # ----------------------------
    def _from_refresh_token(self, scopes: list[str], ensure_valid: bool):
        from google.oauth2.credentials import Credentials

        data = self._auth_info.data
        creds = Credentials(
            token=None,
            refresh_token=data["refresh_token"],
            token_uri=data.get("token_uri") or DEFAULT_TOKEN_URI,
            client_id=data["client_id"],
            client_secret=data["client_secret"],
            scopes=scopes,
        )
        if ensure_valid:
            self._refresh(creds, "Failed to obtain access token from refresh token", token_uri=creds.token_uri)
        return creds

    def _from_token_file(self, scopes: list[str], ensure_valid: bool):
        token_file = self._auth_info.token_file
        creds = self._load_cached(token_file, scopes)

        if creds is not None:
            if not ensure_valid:
                return creds
            if not creds.valid and creds.refresh_token:
                self._refresh(creds, "Failed to refresh OAuth credentials", token_file=token_file)
                self._save(creds)
            if creds.valid:
                return creds

        creds = self._run_consent_flow(scopes)
        self._save(creds)
        return creds

    @staticmethod
    def _load_cached(token_file: str, scopes: list[str]) -> Optional[Any]:
        from google.oauth2.credentials import Credentials

        if not os.path.exists(token_file):
            return None
        try:
            return Credentials.from_authorized_user_file(token_file, scopes=scopes)
        except Exception as exc:
            raise RemoteUnavailable(
                "Failed to load token_file",
                details={"token_file": token_file},
                cause=exc,
            ) from exc

    @staticmethod
    def _refresh(creds: Any, message: str, **details: Any) -> None:
        from google.auth.transport.requests import Request

        try:
            creds.refresh(Request())
        except Exception as exc:
            raise RemoteUnavailable(message, details=details, cause=exc) from exc

    def _run_consent_flow(self, scopes: list[str]):
        from google_auth_oauthlib.flow import InstalledAppFlow

        secrets = self._auth_info.client_secrets_file
        logger.info("No usable cached token; starting OAuth consent flow with %s", secrets)
        try:
            flow = InstalledAppFlow.from_client_secrets_file(secrets, scopes=scopes)
            return flow.run_local_server(port=0)
        except Exception as exc:
            raise RemoteUnavailable(
                "OAuth authorization flow failed",
                details={"client_secrets_file": secrets, "token_file": self._auth_info.token_file},
                cause=exc,
            ) from exc

    def _save(self, creds: Any) -> None:
        path = Path(self._auth_info.token_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(creds.to_json(), encoding="utf-8")
        except OSError as exc:
            raise RemoteUnavailable(
                "Failed to save OAuth token file",
                details={"token_file": str(path)},
                cause=exc,
            ) from exc
