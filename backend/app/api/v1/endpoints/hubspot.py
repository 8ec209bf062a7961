"""
HubSpot contact endpoints: connection status, search, get, update, apply suggested updates.
The user's credential is re-read from the store on every request.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.exceptions import (
    CredentialStoreError,
    HubSpotApiError,
    HubSpotHttpError,
    HubSpotNotFoundError,
    HubSpotServiceError,
    ReauthRequiredError,
    RefreshTransportError,
)
from app.core.security import get_current_user_id
from app.models.credential import UserCredential
from app.schemas.common import HubSpotStatusResponse
from app.schemas.contact import ContactSearchResponse, ContactUpdateRequest, HubSpotContact, Unrepresentable
from app.schemas.suggestion import ApplyUpdatesRequest, ApplyUpdatesResponse
from app.services.credential_store import CredentialStore, get_credential_store
from app.services.hubspot_service import HubSpotService, NoUpdates, build_updates_map, get_hubspot_service
from app.services.token_refresher import TokenRefresher, get_token_refresher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hubspot", tags=["hubspot"])


async def _load_credential(store: CredentialStore, user_id: str) -> UserCredential:
    try:
        credential = await store.get_credential(user_id)
    except CredentialStoreError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
    if credential is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="HubSpot not connected")
    return credential


def _to_http_exception(e: Exception) -> HTTPException:
    """Map integration errors onto HTTP responses. Reauth is distinguishable by its code."""
    if isinstance(e, ReauthRequiredError):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "reauth_required", "message": e.message},
        )
    if isinstance(e, HubSpotNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    if isinstance(e, (HubSpotHttpError, RefreshTransportError)):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    if isinstance(e, HubSpotApiError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message or "HubSpot error")
    if isinstance(e, CredentialStoreError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
    if isinstance(e, HubSpotServiceError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message or "HubSpot error")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


def _require_contact(contact: HubSpotContact | Unrepresentable) -> HubSpotContact:
    if isinstance(contact, Unrepresentable):
        logger.error("HubSpot returned an unrepresentable contact: %s", contact.raw)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Unexpected contact response from HubSpot")
    return contact


@router.get("/status", response_model=HubSpotStatusResponse, summary="HubSpot connection status")
async def hubspot_status(
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_credential_store),
    refresher: TokenRefresher = Depends(get_token_refresher),
) -> HubSpotStatusResponse:
    """Whether HubSpot is connected and when the current access token expires. No network call."""
    try:
        credential = await store.get_credential(user_id)
    except CredentialStoreError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
    if credential is None:
        return HubSpotStatusResponse(connected=False)
    return HubSpotStatusResponse(
        connected=True,
        expires_at=credential.expires_at,
        needs_refresh=refresher.needs_refresh(credential),
    )


@router.get("/contacts/search", response_model=ContactSearchResponse, summary="Search HubSpot contacts")
async def search_contacts(
    q: str = Query(..., description="Search query (contact name or email)"),
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_credential_store),
    hubspot: HubSpotService = Depends(get_hubspot_service),
) -> ContactSearchResponse:
    """GET /api/v1/hubspot/contacts/search?q= — up to 10 matching contacts."""
    credential = await _load_credential(store, user_id)
    try:
        contacts = await hubspot.search_contacts(credential, q)
    except (HubSpotServiceError, CredentialStoreError) as e:
        raise _to_http_exception(e)
    return ContactSearchResponse(contacts=contacts)


@router.get("/contacts/{contact_id}", response_model=HubSpotContact, summary="Get HubSpot contact")
async def get_contact(
    contact_id: str,
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_credential_store),
    hubspot: HubSpotService = Depends(get_hubspot_service),
) -> HubSpotContact:
    credential = await _load_credential(store, user_id)
    try:
        contact = await hubspot.get_contact(credential, contact_id)
    except (HubSpotServiceError, CredentialStoreError) as e:
        raise _to_http_exception(e)
    return _require_contact(contact)


@router.patch("/contacts/{contact_id}", response_model=HubSpotContact, summary="Update HubSpot contact")
async def update_contact(
    contact_id: str,
    body: ContactUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_credential_store),
    hubspot: HubSpotService = Depends(get_hubspot_service),
) -> HubSpotContact:
    """PATCH /api/v1/hubspot/contacts/{contact_id} — only the given properties are sent."""
    if not body.properties:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No properties to update")
    credential = await _load_credential(store, user_id)
    try:
        contact = await hubspot.update_contact(credential, contact_id, body.properties)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (HubSpotServiceError, CredentialStoreError) as e:
        raise _to_http_exception(e)
    return _require_contact(contact)


@router.post(
    "/contacts/{contact_id}/apply-updates",
    response_model=ApplyUpdatesResponse,
    summary="Apply selected suggestions to a HubSpot contact",
)
async def apply_updates(
    contact_id: str,
    body: ApplyUpdatesRequest,
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_credential_store),
    hubspot: HubSpotService = Depends(get_hubspot_service),
) -> ApplyUpdatesResponse:
    """Send every suggestion with apply=true in one update. Nothing selected -> updated=false, no HubSpot call."""
    try:
        updated_fields = list(build_updates_map(body.suggestions).keys())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    credential = await _load_credential(store, user_id)
    try:
        result = await hubspot.apply_updates(credential, contact_id, body.suggestions)
    except (HubSpotServiceError, CredentialStoreError) as e:
        raise _to_http_exception(e)
    if isinstance(result, NoUpdates):
        return ApplyUpdatesResponse(updated=False)
    return ApplyUpdatesResponse(
        updated=True,
        contact=_require_contact(result),
        updated_fields=updated_fields,
        updated_at=datetime.now(timezone.utc),
    )
