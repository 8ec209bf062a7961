"""
Server-side state for the "Update HubSpot contact" modal.

Flow: pick a contact (debounced search), review AI-suggested field changes, tick the
ones to keep, submit them to HubSpot in one batch. Event handlers mutate the component;
the UI layer renders from its attributes.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from app.core.exceptions import CredentialStoreError, HubSpotServiceError, ReauthRequiredError
from app.models.credential import UserCredential
from app.schemas.contact import HubSpotContact, Unrepresentable, output_field_name
from app.schemas.suggestion import ContactSuggestion
from app.services.credential_store import CredentialStore
from app.services.hubspot_service import HubSpotService, NoUpdates

logger = logging.getLogger(__name__)

SEARCH_DEBOUNCE_SEC = 0.15

SearchFn = Callable[[str], Awaitable[list[HubSpotContact]]]
GetContactFn = Callable[[str], Awaitable[HubSpotContact | Unrepresentable]]
SuggestFn = Callable[[HubSpotContact], Awaitable[list[ContactSuggestion]]]
ApplyFn = Callable[[str, list[ContactSuggestion]], Awaitable[HubSpotContact | Unrepresentable | NoUpdates]]


class UpdateState(str, Enum):
    NO_CONTACT_SELECTED = "no_contact_selected"
    SEARCHING = "searching"
    SUGGESTIONS_LOADING = "suggestions_loading"
    SUGGESTIONS_READY = "suggestions_ready"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILURE = "failure"


class ContactUpdateComponent:
    def __init__(
        self,
        search: SearchFn,
        get_contact: GetContactFn,
        generate_suggestions: SuggestFn,
        apply_updates: ApplyFn,
        debounce_seconds: float = SEARCH_DEBOUNCE_SEC,
    ) -> None:
        self._search = search
        self._get_contact = get_contact
        self._generate_suggestions = generate_suggestions
        self._apply_updates = apply_updates
        self._debounce = debounce_seconds

        self.state = UpdateState.NO_CONTACT_SELECTED
        self.query = ""
        self.contacts: list[HubSpotContact] = []
        self.loading = False
        self.dropdown_open = False
        self.selected_contact: Optional[HubSpotContact] = None
        self.suggestions: list[ContactSuggestion] = []
        self.error: Optional[str] = None
        self.reauth_required = False
        self.updated_fields: list[str] = []
        self.updated_at: Optional[datetime] = None

        self._search_seq = 0
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def for_user(
        cls,
        service: HubSpotService,
        store: CredentialStore,
        user_id: str,
        generate_suggestions: SuggestFn,
        debounce_seconds: float = SEARCH_DEBOUNCE_SEC,
    ) -> "ContactUpdateComponent":
        """Bind the component to a user's HubSpot account. The credential is re-read for every call."""

        async def load_credential() -> UserCredential:
            credential = await store.get_credential(user_id)
            if credential is None:
                raise ReauthRequiredError("HubSpot is not connected")
            return credential

        async def search(query: str) -> list[HubSpotContact]:
            return await service.search_contacts(await load_credential(), query)

        async def get_contact(contact_id: str) -> HubSpotContact | Unrepresentable:
            return await service.get_contact(await load_credential(), contact_id)

        async def apply_updates(contact_id: str, suggestions: list[ContactSuggestion]):
            return await service.apply_updates(await load_credential(), contact_id, suggestions)

        return cls(search, get_contact, generate_suggestions, apply_updates, debounce_seconds)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def search_changed(self, query: str) -> None:
        """
        Typing in the search box. The search runs after the debounce delay; older searches
        are superseded. The search box is only shown while no contact is selected.
        """
        if self.selected_contact is not None:
            return
        self.query = query
        self.dropdown_open = True
        self._search_seq += 1
        if not query.strip():
            self.contacts = []
            self.loading = False
            self.state = UpdateState.NO_CONTACT_SELECTED
            return
        self.loading = True
        self.error = None
        self.state = UpdateState.SEARCHING
        self._spawn(self._debounced_search(self._search_seq, query.strip()))

    async def _debounced_search(self, seq: int, query: str) -> None:
        await asyncio.sleep(self._debounce)
        if seq != self._search_seq:
            return
        try:
            results = await self._search(query)
        except (HubSpotServiceError, CredentialStoreError) as e:
            if seq != self._search_seq:
                return
            logger.warning("Contact search failed for %r: %s", query, e)
            self.contacts = []
            self.loading = False
            self.state = UpdateState.NO_CONTACT_SELECTED
            self._set_error(e)
            return
        if seq != self._search_seq:
            logger.debug("Discarding stale search results for %r", query)
            return
        self.contacts = results
        self.loading = False
        self.state = UpdateState.NO_CONTACT_SELECTED

    def open_dropdown(self) -> None:
        self.dropdown_open = True

    def toggle_dropdown(self) -> None:
        self.dropdown_open = not self.dropdown_open

    def dismiss_dropdown(self) -> None:
        """Click-away: close the dropdown and leave everything else as it is."""
        self.dropdown_open = False

    # -------------------------------------------------------------------------
    # Contact selection and suggestions
    # -------------------------------------------------------------------------

    async def select_contact(self, contact_id: str) -> None:
        contact: HubSpotContact | Unrepresentable | None = next(
            (c for c in self.contacts if c.id == contact_id), None
        )
        self._clear_search()
        self.error = None
        self.reauth_required = False
        if contact is None:
            try:
                contact = await self._get_contact(contact_id)
            except (HubSpotServiceError, CredentialStoreError) as e:
                logger.warning("Could not load HubSpot contact %s: %s", contact_id, e)
                self._set_error(e)
                self.state = UpdateState.NO_CONTACT_SELECTED
                return
        if isinstance(contact, Unrepresentable):
            self.error = "HubSpot returned a contact this app cannot display"
            self.state = UpdateState.NO_CONTACT_SELECTED
            return

        self.selected_contact = contact
        self.suggestions = []
        self.updated_fields = []
        self.updated_at = None
        self.state = UpdateState.SUGGESTIONS_LOADING
        try:
            raw = await self._generate_suggestions(contact)
        except Exception as e:
            logger.exception("Suggestion generation failed for contact %s: %s", contact.id, e)
            self.error = "Could not generate suggestions for this contact"
            raw = []
        self.suggestions = _merge_with_contact(raw, contact)
        self.state = UpdateState.SUGGESTIONS_READY

    def clear_selection(self) -> None:
        """Go back to picking a contact."""
        self._clear_search()
        self.selected_contact = None
        self.suggestions = []
        self.error = None
        self.reauth_required = False
        self.state = UpdateState.NO_CONTACT_SELECTED

    def toggle_suggestion(self, field: str) -> None:
        if self.state == UpdateState.SUBMITTING:
            return
        self.suggestions = [
            s.model_copy(update={"apply": not s.apply}) if s.field == field else s
            for s in self.suggestions
        ]

    @property
    def selected_suggestions(self) -> list[ContactSuggestion]:
        return [s for s in self.suggestions if s.apply]

    @property
    def can_submit(self) -> bool:
        return (
            self.selected_contact is not None
            and self.state in (UpdateState.SUGGESTIONS_READY, UpdateState.FAILURE)
            and len(self.selected_suggestions) > 0
        )

    # -------------------------------------------------------------------------
    # Submit
    # -------------------------------------------------------------------------

    async def submit(self) -> None:
        if not self.can_submit:
            return
        selected = self.selected_suggestions
        self.state = UpdateState.SUBMITTING
        self.error = None
        self.reauth_required = False
        try:
            result = await self._apply_updates(self.selected_contact.id, list(self.suggestions))
        except (HubSpotServiceError, CredentialStoreError) as e:
            logger.warning("Applying HubSpot updates to %s failed: %s", self.selected_contact.id, e)
            self._set_error(e)
            self.state = UpdateState.FAILURE
            return

        if isinstance(result, HubSpotContact):
            self.selected_contact = result
        self.updated_fields = [] if isinstance(result, NoUpdates) else [s.label or s.field for s in selected]
        self.updated_at = datetime.now(timezone.utc)
        self.suggestions = []
        self.state = UpdateState.SUCCESS

    # -------------------------------------------------------------------------
    # Rendering helpers
    # -------------------------------------------------------------------------

    @property
    def dropdown_visible(self) -> bool:
        return self.dropdown_open and (bool(self.contacts) or self.loading or self.query != "")

    @property
    def show_no_results(self) -> bool:
        return not self.loading and not self.contacts and self.query != ""

    @property
    def success_message(self) -> str:
        return success_summary(self.updated_fields)

    # -------------------------------------------------------------------------

    async def settle(self) -> None:
        """Wait for pending searches to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Modal closed: cancel pending searches; their results are dropped."""
        self._search_seq += 1
        for task in list(self._tasks):
            task.cancel()

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _clear_search(self) -> None:
        self._search_seq += 1
        self.query = ""
        self.contacts = []
        self.loading = False
        self.dropdown_open = False

    def _set_error(self, e: Exception) -> None:
        self.reauth_required = isinstance(e, ReauthRequiredError)
        if self.reauth_required:
            self.error = "Your HubSpot connection has expired. Reconnect HubSpot and try again."
        else:
            self.error = getattr(e, "message", None) or str(e)


def _merge_with_contact(raw: list[ContactSuggestion], contact: HubSpotContact) -> list[ContactSuggestion]:
    """Fill current values from the contact; drop unknown fields and no-op suggestions."""
    out: list[ContactSuggestion] = []
    for suggestion in raw:
        if output_field_name(suggestion.field) is None:
            logger.warning("Dropping suggestion for unknown HubSpot field %r", suggestion.field)
            continue
        current = contact.value_of(suggestion.field)
        if suggestion.new_value == current:
            continue
        out.append(
            suggestion.model_copy(
                update={"current_value": current, "label": suggestion.label or suggestion.field}
            )
        )
    return out


def avatar_initials(firstname: Optional[str], lastname: Optional[str]) -> str:
    return f"{(firstname or '')[:1]}{(lastname or '')[:1]}"


def selected_count_label(count: int) -> str:
    return f"{count} update selected" if count == 1 else f"{count} updates selected"


def success_summary(updated_fields: list[str]) -> str:
    if not updated_fields:
        return "No changes were sent to HubSpot."
    noun = "field" if len(updated_fields) == 1 else "fields"
    return f"Updated {len(updated_fields)} {noun} in HubSpot: {', '.join(updated_fields)}"
