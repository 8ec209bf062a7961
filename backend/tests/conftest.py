"""Shared fixtures: settings, in-memory credential store, and requests doubles for HubSpot."""

import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import pytest

# Must be set before app.core.config.get_settings() is first called
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("HUBSPOT_SCHEDULER_ENABLED", "false")

import requests  # noqa: E402

from app.core.config import Settings  # noqa: E402
from app.core.exceptions import CredentialStoreError  # noqa: E402
from app.models.credential import UserCredential  # noqa: E402
from app.services.hubspot_service import HubSpotService  # noqa: E402
from app.services.token_refresher import TokenRefresher  # noqa: E402

TOKEN_URL = "https://api.hubapi.com/oauth/v1/token"


class DummyResponse:
    def __init__(self, status_code: int = 200, json_data: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._json = json_data
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        self.text = text
        self.content = text.encode()
        self.reason = "OK" if status_code < 400 else "Error"
        self.headers: dict[str, str] = {}

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class FakeHttp:
    """Stands in for requests.request / requests.post. Records calls, replays queued responses."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.responses: list[Any] = []
        self.handler: Optional[Callable[..., Any]] = None

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    def __call__(self, *args: Any, **kwargs: Any) -> DummyResponse:
        call = dict(kwargs)
        if args:
            call["url"] = args[0]
        self.calls.append(call)
        if self.handler is not None:
            result = self.handler(**call)
        elif self.responses:
            result = self.responses.pop(0)
        else:
            raise AssertionError(f"Unexpected HTTP call: {call}")
        if isinstance(result, Exception):
            raise result
        return result


class FakeCredentialStore:
    """In-memory replacement for the Supabase credential store."""

    def __init__(self, *credentials: UserCredential) -> None:
        self.rows: dict[tuple[str, str], UserCredential] = {
            (c.user_id, c.provider): c for c in credentials
        }
        self.saved: list[UserCredential] = []
        self.fail_save = False
        self.fail_list = False

    async def get_credential(self, user_id: str, provider: str = "hubspot") -> Optional[UserCredential]:
        return self.rows.get((user_id, provider))

    async def save_credential(self, credential: UserCredential) -> UserCredential:
        if self.fail_save:
            raise CredentialStoreError("Failed to save credential")
        self.saved.append(credential)
        self.rows[(credential.user_id, credential.provider)] = credential
        return credential

    async def list_expiring_credentials(self, before: datetime, provider: str = "hubspot") -> list[UserCredential]:
        if self.fail_list:
            raise CredentialStoreError("Failed to list expiring credentials")
        return [
            c for c in self.rows.values()
            if c.provider == provider and (c.expires_at is None or c.expires_at < before)
        ]


def make_credential(
    user_id: str = "user-1",
    expires_in: Optional[timedelta] = timedelta(hours=1),
    access_token: str = "access-old",
    refresh_token: Optional[str] = "refresh-old",
) -> UserCredential:
    return UserCredential(
        user_id=user_id,
        provider="hubspot",
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=(datetime.now(timezone.utc) + expires_in) if expires_in is not None else None,
    )


def token_response(access_token: str = "access-new", refresh_token: Optional[str] = "refresh-new", expires_in: int = 1800) -> DummyResponse:
    body: dict[str, Any] = {"access_token": access_token, "expires_in": expires_in, "token_type": "bearer"}
    if refresh_token is not None:
        body["refresh_token"] = refresh_token
    return DummyResponse(200, body)


def hubspot_contact(cid: str = "101", **properties: Any) -> dict[str, Any]:
    return {"id": cid, "properties": properties, "archived": False}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        HUBSPOT_CLIENT_ID="client-id",
        HUBSPOT_CLIENT_SECRET="client-secret",
        HUBSPOT_REDIRECT_URI="http://localhost:4000/auth/hubspot/callback",
        HUBSPOT_TOKEN_URL=TOKEN_URL,
        HUBSPOT_API_BASE_URL="https://api.hubapi.com",
    )


@pytest.fixture
def token_http(monkeypatch) -> FakeHttp:
    fake = FakeHttp()
    monkeypatch.setattr(requests, "post", fake)
    return fake


@pytest.fixture
def hubspot_http(monkeypatch) -> FakeHttp:
    fake = FakeHttp()
    monkeypatch.setattr(requests, "request", fake)
    return fake


@pytest.fixture
def credential() -> UserCredential:
    return make_credential()


@pytest.fixture
def store(credential) -> FakeCredentialStore:
    return FakeCredentialStore(credential)


@pytest.fixture
def refresher(store, settings) -> TokenRefresher:
    return TokenRefresher(store, settings)


@pytest.fixture
def hubspot(refresher, settings) -> HubSpotService:
    return HubSpotService(refresher, settings)
