"""
Pydantic models for public.user_credentials (Supabase).
One row per (user_id, provider); the HubSpot row holds the OAuth token pair.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_validator

HUBSPOT_PROVIDER = "hubspot"


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Return dt as an aware UTC datetime; naive values are assumed to be UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class UserCredentialBase(BaseModel):
    user_id: str
    provider: str = HUBSPOT_PROVIDER
    uid: str | None = None
    email: str | None = None
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    @field_validator("expires_at", mode="after")
    @classmethod
    def expires_at_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class UserCredentialUpdate(BaseModel):
    """Token fields written by a refresh. Always written together."""
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime

    @field_validator("expires_at", mode="after")
    @classmethod
    def expires_at_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class UserCredentialInDB(UserCredentialBase):
    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserCredential(UserCredentialInDB):
    def with_tokens(self, update: UserCredentialUpdate) -> "UserCredential":
        """Copy of this credential carrying the refreshed token pair."""
        return self.model_copy(
            update={
                "access_token": update.access_token,
                "refresh_token": update.refresh_token or self.refresh_token,
                "expires_at": update.expires_at,
            }
        )
