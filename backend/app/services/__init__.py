# Services: HubSpot CRM client, token refresh (on demand + scheduled), Supabase credential store

from app.services.credential_store import CredentialStore, get_credential_store
from app.services.hubspot_service import (
    NO_UPDATES,
    HubSpotService,
    NoUpdates,
    format_contact,
    get_hubspot_service,
)
from app.services.token_refresh_scheduler import (
    RefreshScanResult,
    TokenRefreshScheduler,
    refresh_expiring_credentials,
)
from app.services.token_refresher import TokenRefresher, get_token_refresher

__all__ = [
    "CredentialStore",
    "get_credential_store",
    "HubSpotService",
    "NoUpdates",
    "NO_UPDATES",
    "format_contact",
    "get_hubspot_service",
    "RefreshScanResult",
    "TokenRefreshScheduler",
    "refresh_expiring_credentials",
    "TokenRefresher",
    "get_token_refresher",
]
