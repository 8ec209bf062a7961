"""
HubSpot OAuth token refresh: keep a stored credential's access token valid.

Used on demand before every CRM call (ensure_valid_token) and by the scheduled
proactive scan (refresh_credential). A refreshed token is persisted to the
credential store before it is handed back to the caller.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import requests
from fastapi import Depends

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    MissingRefreshTokenError,
    ReauthRequiredError,
    RefreshTransportError,
)
from app.models.credential import UserCredential, UserCredentialUpdate, ensure_utc
from app.services.credential_store import CredentialStore, get_credential_store

logger = logging.getLogger(__name__)

# HubSpot access tokens live 30 minutes; used when the token response omits expires_in.
DEFAULT_EXPIRES_IN_SEC = 1800
# Token endpoint answers these when the refresh token is invalid, revoked or already rotated.
REAUTH_STATUS_CODES = (400, 401, 403)


class TokenRefresher:
    """Validates and refreshes HubSpot credentials against the OAuth token endpoint."""

    def __init__(self, store: CredentialStore, settings: Optional[Settings] = None) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._margin = timedelta(seconds=self._settings.hubspot_refresh_margin_seconds)

    def needs_refresh(self, credential: UserCredential, now: Optional[datetime] = None) -> bool:
        """True when the token expires within the safety margin (or has no expiry recorded)."""
        expires_at = ensure_utc(credential.expires_at)
        if expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return expires_at <= now + self._margin

    async def ensure_valid_token(self, credential: UserCredential) -> UserCredential:
        """
        Return a credential whose access token is good for at least the safety margin.
        Unchanged (no network) when already valid; otherwise refreshed and persisted.
        Raises ReauthRequiredError or RefreshTransportError; never retries.
        """
        if not self.needs_refresh(credential):
            return credential
        return await self.refresh_credential(credential)

    async def refresh_credential(self, credential: UserCredential) -> UserCredential:
        """Refresh unconditionally, write the new token pair to the store, return the stored copy."""
        if not credential.refresh_token:
            logger.error("HubSpot credential for user %s has no refresh token", credential.user_id)
            raise MissingRefreshTokenError()

        update = await asyncio.to_thread(self._request_new_tokens, credential.refresh_token)
        refreshed = credential.with_tokens(update)
        saved = await self._store.save_credential(refreshed)
        logger.info(
            "Refreshed HubSpot token for user %s (expires %s)",
            credential.user_id,
            update.expires_at.isoformat(),
        )
        return saved

    def _request_new_tokens(self, refresh_token: str) -> UserCredentialUpdate:
        """POST grant_type=refresh_token to the token endpoint and parse the response."""
        settings = self._settings
        data = {
            "grant_type": "refresh_token",
            "client_id": settings.hubspot_client_id,
            "client_secret": settings.hubspot_client_secret,
            "refresh_token": refresh_token,
        }
        if settings.hubspot_redirect_uri:
            data["redirect_uri"] = settings.hubspot_redirect_uri

        try:
            resp = requests.post(
                settings.hubspot_token_url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=settings.hubspot_request_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning("HubSpot token refresh transport error: %s", e)
            raise RefreshTransportError(str(e)) from e

        if resp.status_code in REAUTH_STATUS_CODES:
            body = _safe_body(resp)
            logger.error("HubSpot token refresh rejected: %s - %s", resp.status_code, body)
            raise ReauthRequiredError(detail=body)

        if not resp.ok:
            logger.warning("HubSpot token refresh failed: %s - %s", resp.status_code, _safe_body(resp))
            raise RefreshTransportError(f"HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as e:
            logger.warning("HubSpot token refresh returned non-JSON body")
            raise RefreshTransportError("invalid JSON in token response") from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            logger.error("HubSpot token refresh response has no access_token: %s", payload)
            raise ReauthRequiredError(detail=payload)

        try:
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN_SEC)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN_SEC

        return UserCredentialUpdate(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )


def _safe_body(resp: requests.Response):
    try:
        return resp.json()
    except ValueError:
        return resp.text or None


def get_token_refresher(store: CredentialStore = Depends(get_credential_store)) -> TokenRefresher:
    """Dependency: return a TokenRefresher over the Supabase credential store."""
    return TokenRefresher(store)
