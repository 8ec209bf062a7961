"""
HubSpot CRM API v3 client for contacts: search, get, update, apply suggested updates.
Bearer token auth via requests; each request runs in a worker thread so the event
loop stays free. Every call first asks the token refresher for a valid credential;
a refresh failure fails the call before any CRM request is made.
"""

import asyncio
import logging
from typing import Any, Iterable

import requests
from fastapi import Depends

from app.core.config import Settings, get_settings
from app.core.exceptions import HubSpotApiError, HubSpotHttpError, HubSpotNotFoundError
from app.models.credential import UserCredential
from app.schemas.contact import (
    CONTACT_PROPERTIES,
    CONTACT_PROPERTY_MAP,
    HubSpotContact,
    Unrepresentable,
    hubspot_property_name,
)
from app.schemas.suggestion import ContactSuggestion
from app.services.token_refresher import TokenRefresher, get_token_refresher

logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = 10


class NoUpdates:
    """Result of apply_updates when no suggestion was selected; nothing was sent to HubSpot."""

    _instance = None

    def __new__(cls) -> "NoUpdates":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_UPDATES"


NO_UPDATES = NoUpdates()


def format_display_name(properties: dict[str, Any]) -> str:
    """'First Last' trimmed; falls back to email, then empty string."""
    firstname = properties.get("firstname") or ""
    lastname = properties.get("lastname") or ""
    name = f"{firstname} {lastname}".strip()
    if name:
        return name
    return properties.get("email") or ""


def format_contact(raw: Any) -> HubSpotContact | Unrepresentable:
    """Normalize a HubSpot contact object ({id, properties}) into HubSpotContact."""
    if not isinstance(raw, dict):
        return Unrepresentable(raw=raw)
    cid = raw.get("id")
    props = raw.get("properties")
    if cid is None or cid == "" or not isinstance(props, dict):
        return Unrepresentable(raw=raw)
    values = {
        out_name: (str(props[prop]) if props.get(prop) is not None else None)
        for out_name, prop in CONTACT_PROPERTY_MAP.items()
    }
    return HubSpotContact(id=str(cid), display_name=format_display_name(props), **values)


def build_updates_map(suggestions: Iterable[ContactSuggestion]) -> dict[str, str | None]:
    """
    HubSpot property -> new value for every suggestion with apply=True.
    A field selected twice keeps the later suggestion's value.
    """
    updates: dict[str, str | None] = {}
    for suggestion in suggestions:
        if suggestion.apply is not True:
            continue
        updates[hubspot_property_name(suggestion.field)] = suggestion.new_value
    return updates


class HubSpotService:
    """
    HubSpot contacts client. Single attempt per call: the token is validated (and
    refreshed if close to expiry) before the request, never after a failed one.
    """

    def __init__(self, refresher: TokenRefresher, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._refresher = refresher
        self._base_url = settings.hubspot_api_base_url
        self._timeout = settings.hubspot_request_timeout_seconds

    def _get_headers(self, access_token: str) -> dict[str, str]:
        """Build request headers with Bearer token."""
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        operation: str,
        credential: UserCredential,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        not_found_error: bool = False,
    ) -> Any:
        """
        Execute one HTTP request. Returns the decoded JSON body on 2xx.
        Raises HubSpotNotFoundError (404, when not_found_error), HubSpotApiError
        (other non-2xx) or HubSpotHttpError (transport).
        """
        url = f"{self._base_url.rstrip('/')}/{path.lstrip('/')}"
        try:
            resp = requests.request(
                method=method,
                url=url,
                headers=self._get_headers(credential.access_token),
                params=params,
                json=json,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error("HubSpot %s HTTP error: %s", operation, e)
            raise HubSpotHttpError(str(e)) from e

        if resp.ok:
            if resp.status_code == 204 or not resp.content:
                return {}
            try:
                return resp.json()
            except ValueError:
                return resp.text

        body = _safe_body(resp)
        if resp.status_code == 404 and not_found_error:
            logger.warning("HubSpot %s: not found (%s)", operation, path)
            raise HubSpotNotFoundError(detail=body)
        logger.error("HubSpot %s failed: %s - %s", operation, resp.status_code, body)
        raise HubSpotApiError(resp.status_code, body)

    # -------------------------------------------------------------------------
    # Contacts
    # -------------------------------------------------------------------------

    async def search_contacts(self, credential: UserCredential, query: str) -> list[HubSpotContact]:
        """
        Search contacts by name/email (HubSpot default text search), capped at 10 results.
        Empty list when nothing matches or the query is blank.
        """
        query = (query or "").strip()
        if not query:
            return []
        credential = await self._refresher.ensure_valid_token(credential)
        body: dict[str, Any] = {
            "query": query,
            "limit": SEARCH_RESULT_LIMIT,
            "properties": CONTACT_PROPERTIES,
        }
        data = await asyncio.to_thread(
            self._request,
            "search_contacts",
            credential,
            "POST",
            "/crm/v3/objects/contacts/search",
            json=body,
        )
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            logger.error("HubSpot search_contacts failed: unexpected body %s", data)
            raise HubSpotApiError(200, data)

        contacts: list[HubSpotContact] = []
        for raw in results[:SEARCH_RESULT_LIMIT]:
            contact = format_contact(raw)
            if isinstance(contact, Unrepresentable):
                logger.warning("Skipping unrepresentable HubSpot search result: %s", raw)
                continue
            contacts.append(contact)
        return contacts

    async def get_contact(
        self,
        credential: UserCredential,
        contact_id: str,
    ) -> HubSpotContact | Unrepresentable:
        """Fetch a single contact by ID with the full known property set."""
        credential = await self._refresher.ensure_valid_token(credential)
        data = await asyncio.to_thread(
            self._request,
            "get_contact",
            credential,
            "GET",
            f"/crm/v3/objects/contacts/{contact_id}",
            params={"properties": ",".join(CONTACT_PROPERTIES)},
            not_found_error=True,
        )
        return format_contact(data)

    async def update_contact(
        self,
        credential: UserCredential,
        contact_id: str,
        updates: dict[str, Any],
    ) -> HubSpotContact | Unrepresentable:
        """
        Partially update a contact. Keys may be output field names (linkedin_url)
        or HubSpot property names (hs_linkedin_url); only those properties are sent.
        """
        properties = {hubspot_property_name(field): value for field, value in updates.items()}
        credential = await self._refresher.ensure_valid_token(credential)
        data = await asyncio.to_thread(
            self._request,
            "update_contact",
            credential,
            "PATCH",
            f"/crm/v3/objects/contacts/{contact_id}",
            json={"properties": properties},
            not_found_error=True,
        )
        return format_contact(data)

    async def apply_updates(
        self,
        credential: UserCredential,
        contact_id: str,
        suggestions: Iterable[ContactSuggestion],
    ) -> HubSpotContact | Unrepresentable | NoUpdates:
        """
        Send every selected suggestion in one update. Returns NO_UPDATES without
        touching the network when nothing is selected.
        """
        updates = build_updates_map(suggestions)
        if not updates:
            return NO_UPDATES
        return await self.update_contact(credential, contact_id, updates)


def _safe_body(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text or None


def get_hubspot_service(refresher: TokenRefresher = Depends(get_token_refresher)) -> HubSpotService:
    """Dependency: return a HubSpotService instance."""
    return HubSpotService(refresher)
