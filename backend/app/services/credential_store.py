"""
Supabase-backed credential store for OAuth tokens (user_credentials table).
The only shared mutable state of the HubSpot integration; written only by the token refresher.
supabase-py is synchronous, so every query executes in a worker thread.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client, create_client

from app.core.config import get_settings
from app.core.exceptions import CredentialStoreError
from app.models.credential import HUBSPOT_PROVIDER, UserCredential

logger = logging.getLogger(__name__)

CREDENTIALS_TABLE = "user_credentials"
CREDENTIAL_COLUMNS = "id, user_id, provider, uid, email, access_token, refresh_token, expires_at, created_at, updated_at"


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class CredentialStore:
    def __init__(self, client: Optional[Client] = None) -> None:
        if client is None:
            settings = get_settings()
            client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
        self.client: Client = client

    async def get_credential(self, user_id: str, provider: str = HUBSPOT_PROVIDER) -> Optional[UserCredential]:
        """Return the user's credential for provider, or None if not connected."""
        try:
            query = (
                self.client.table(CREDENTIALS_TABLE)
                .select(CREDENTIAL_COLUMNS)
                .eq("user_id", user_id)
                .eq("provider", provider)
                .limit(1)
            )
            response = await asyncio.to_thread(query.execute)
        except Exception as e:
            logger.error("Get credential error (user %s, %s): %s", user_id, provider, e)
            raise CredentialStoreError("Failed to load credential", cause=e) from e
        if response.data and len(response.data) > 0:
            return UserCredential.model_validate(response.data[0])
        return None

    async def save_credential(self, credential: UserCredential) -> UserCredential:
        """
        Upsert the credential on (user_id, provider). access_token, refresh_token and
        expires_at go out in the same row write, never separately.
        """
        row: Dict[str, Any] = {
            "user_id": credential.user_id,
            "provider": credential.provider,
            "access_token": credential.access_token,
            "refresh_token": credential.refresh_token,
            "expires_at": _iso(credential.expires_at) if credential.expires_at else None,
            "updated_at": _iso(datetime.now(timezone.utc)),
        }
        if credential.uid is not None:
            row["uid"] = credential.uid
        if credential.email is not None:
            row["email"] = credential.email
        try:
            query = self.client.table(CREDENTIALS_TABLE).upsert(row, on_conflict="user_id,provider")
            response = await asyncio.to_thread(query.execute)
        except Exception as e:
            logger.error("Save credential error (user %s, %s): %s", credential.user_id, credential.provider, e)
            raise CredentialStoreError("Failed to save credential", cause=e) from e
        if response.data and len(response.data) > 0:
            return UserCredential.model_validate(response.data[0])
        return credential

    async def list_expiring_credentials(
        self,
        before: datetime,
        provider: str = HUBSPOT_PROVIDER,
    ) -> list[UserCredential]:
        """Credentials for provider whose access token expires before the cutoff or has no expiry recorded."""
        try:
            query = (
                self.client.table(CREDENTIALS_TABLE)
                .select(CREDENTIAL_COLUMNS)
                .eq("provider", provider)
                .or_(f'expires_at.is.null,expires_at.lt."{_iso(before)}"')
            )
            response = await asyncio.to_thread(query.execute)
        except Exception as e:
            logger.error("List expiring credentials error (%s): %s", provider, e)
            raise CredentialStoreError("Failed to list expiring credentials", cause=e) from e
        return [UserCredential.model_validate(row) for row in response.data or []]


def get_credential_store() -> CredentialStore:
    """Dependency for FastAPI."""
    return CredentialStore()
