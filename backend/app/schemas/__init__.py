# Pydantic request/response schemas (API contract). Kept in sync with frontend types.

from app.schemas.common import HubSpotStatusResponse
from app.schemas.contact import (
    CONTACT_PROPERTIES,
    CONTACT_PROPERTY_MAP,
    ContactSearchResponse,
    ContactUpdateRequest,
    HubSpotContact,
    Unrepresentable,
)
from app.schemas.suggestion import ApplyUpdatesRequest, ApplyUpdatesResponse, ContactSuggestion

__all__ = [
    "HubSpotStatusResponse",
    "CONTACT_PROPERTIES",
    "CONTACT_PROPERTY_MAP",
    "ContactSearchResponse",
    "ContactUpdateRequest",
    "HubSpotContact",
    "Unrepresentable",
    "ContactSuggestion",
    "ApplyUpdatesRequest",
    "ApplyUpdatesResponse",
]
