"""
Live tests against a real HubSpot account connected through the app.

How to run:
-----------
1. From the backend directory, ensure .env is configured (see backend/.env.example).
   Required: SUPABASE_URL, SUPABASE_SERVICE_KEY, HUBSPOT_CLIENT_ID, HUBSPOT_CLIENT_SECRET.

2. Set HUBSPOT_TEST_USER_ID to the id of a user who has connected HubSpot
   (a row in user_credentials with provider = 'hubspot').

3. Run with pytest from the backend directory:
   cd backend
   pytest tests/test_hubspot_live.py -v -s

   Or directly:
   python -m tests.test_hubspot_live

Skipped when HUBSPOT_TEST_USER_ID or SUPABASE_URL is not set.
"""

import asyncio
import os
import sys

import pytest
from dotenv import load_dotenv

_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if __name__ == "__main__":
    sys.path.insert(0, _BACKEND_DIR)

# Load .env before app config is read
load_dotenv(os.path.join(_BACKEND_DIR, ".env"))

from app.core.exceptions import HubSpotServiceError  # noqa: E402
from app.services.credential_store import CredentialStore  # noqa: E402
from app.services.hubspot_service import HubSpotService  # noqa: E402
from app.services.token_refresher import TokenRefresher  # noqa: E402

TEST_USER_ID = os.getenv("HUBSPOT_TEST_USER_ID", "")

pytestmark = pytest.mark.skipif(
    not (TEST_USER_ID and os.getenv("SUPABASE_URL")),
    reason="HUBSPOT_TEST_USER_ID and SUPABASE_URL are required for live HubSpot tests",
)


def _services():
    store = CredentialStore()
    refresher = TokenRefresher(store)
    return store, refresher, HubSpotService(refresher)


async def test_credential_is_valid_after_ensure() -> None:
    """1. Load the stored credential and make sure its token is usable (refreshing if needed)."""
    print("\n--- 1. Checking stored HubSpot credential ---")
    store, refresher, _ = _services()
    credential = await store.get_credential(TEST_USER_ID)
    assert credential is not None, "No HubSpot credential stored for HUBSPOT_TEST_USER_ID"
    credential = await refresher.ensure_valid_token(credential)
    assert not refresher.needs_refresh(credential)
    print(f"   OK: token valid until {credential.expires_at}")


async def test_search_and_get_contact() -> None:
    """2. Search for contacts and read the first match back by id."""
    print("\n--- 2. Searching contacts ---")
    store, _, hubspot = _services()
    credential = await store.get_credential(TEST_USER_ID)
    query = os.getenv("HUBSPOT_TEST_QUERY", "a")
    try:
        contacts = await hubspot.search_contacts(credential, query)
    except HubSpotServiceError as e:
        print(f"   FAIL: {e.message}")
        raise
    for i, c in enumerate(contacts, 1):
        print(f"   {i}. {c.display_name or '(no name)'} | {c.email or '-'} | id={c.id}")
    if not contacts:
        print("   (No matching contacts)")
        return

    contact = await hubspot.get_contact(credential, contacts[0].id)
    assert contact.id == contacts[0].id
    print(f"   OK: fetched contact {contact.id}")


async def _main() -> None:
    await test_credential_is_valid_after_ensure()
    await test_search_and_get_contact()


if __name__ == "__main__":
    if not TEST_USER_ID:
        print("Set HUBSPOT_TEST_USER_ID to run live HubSpot tests.")
        sys.exit(1)
    asyncio.run(_main())
    print("\nDone.")
