# Domain models: Supabase DB rows used by the HubSpot integration

from app.models.credential import (
    HUBSPOT_PROVIDER,
    UserCredential,
    UserCredentialInDB,
    UserCredentialUpdate,
    ensure_utc,
)

__all__ = [
    "HUBSPOT_PROVIDER",
    "UserCredential",
    "UserCredentialInDB",
    "UserCredentialUpdate",
    "ensure_utc",
]
