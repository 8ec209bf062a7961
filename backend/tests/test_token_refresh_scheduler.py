"""Unit tests for the proactive token refresh scan and its scheduler."""

import asyncio
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.services.token_refresh_scheduler import (
    REFRESH_JOB_ID,
    TokenRefreshScheduler,
    refresh_expiring_credentials,
)
from app.services.token_refresher import TokenRefresher
from conftest import DummyResponse, FakeCredentialStore, make_credential, token_response

LOOKAHEAD = timedelta(minutes=10)


async def test_scan_refreshes_only_expiring_credentials(settings, token_http):
    soon = make_credential("soon", expires_in=timedelta(minutes=4), refresh_token="r-soon")
    later = make_credential("later", expires_in=timedelta(hours=2), refresh_token="r-later")
    store = FakeCredentialStore(soon, later)
    token_http.queue(token_response(access_token="new-soon"))

    result = await refresh_expiring_credentials(store, TokenRefresher(store, settings), LOOKAHEAD)

    assert result.scanned == 1
    assert result.refreshed == 1
    assert result.failed == []
    assert [c.user_id for c in store.saved] == ["soon"]
    assert token_http.calls[0]["data"]["refresh_token"] == "r-soon"


async def test_scan_continues_after_one_failure(settings, token_http):
    creds = [
        make_credential(f"user-{i}", expires_in=timedelta(minutes=i), refresh_token=f"r-{i}")
        for i in range(1, 5)
    ]
    store = FakeCredentialStore(*creds)

    def handler(**call):
        if call["data"]["refresh_token"] == "r-2":
            return DummyResponse(400, {"status": "BAD_REFRESH_TOKEN"})
        return token_response(access_token=f"new-{call['data']['refresh_token']}")

    token_http.handler = handler

    result = await refresh_expiring_credentials(store, TokenRefresher(store, settings), LOOKAHEAD)

    assert len(token_http.calls) == 4
    assert result.scanned == 4
    assert result.refreshed == 3
    assert result.failed == ["user-2"]
    assert sorted(c.user_id for c in store.saved) == ["user-1", "user-3", "user-4"]


async def test_scan_isolates_unexpected_errors(settings):
    creds = [make_credential(f"user-{i}", expires_in=timedelta(minutes=1)) for i in range(3)]
    store = FakeCredentialStore(*creds)

    class FlakyRefresher:
        def __init__(self):
            self.seen = []

        async def refresh_credential(self, credential):
            self.seen.append(credential.user_id)
            if credential.user_id == "user-0":
                raise RuntimeError("boom")
            return credential

    refresher = FlakyRefresher()
    result = await refresh_expiring_credentials(store, refresher, LOOKAHEAD)

    assert refresher.seen == ["user-0", "user-1", "user-2"]
    assert result.refreshed == 2
    assert result.failed == ["user-0"]


async def test_scan_with_store_failure_returns_empty_result(settings, token_http):
    store = FakeCredentialStore(make_credential(expires_in=timedelta(minutes=1)))
    store.fail_list = True

    result = await refresh_expiring_credentials(store, TokenRefresher(store, settings), LOOKAHEAD)

    assert result.scanned == 0
    assert token_http.calls == []


async def test_scheduler_start_and_shutdown(settings):
    store = FakeCredentialStore()
    aps = AsyncIOScheduler()
    scheduler = TokenRefreshScheduler(store, settings=settings, scheduler=aps)

    scheduler.start()
    try:
        assert scheduler.running
        job = aps.get_job(REFRESH_JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(seconds=settings.hubspot_refresh_interval_seconds)
        assert job.max_instances == 1
    finally:
        await scheduler.shutdown()

    assert not scheduler.running


async def test_scheduler_can_restart_after_shutdown(settings):
    aps = AsyncIOScheduler()
    scheduler = TokenRefreshScheduler(FakeCredentialStore(), settings=settings, scheduler=aps)

    scheduler.start()
    await scheduler.shutdown()
    scheduler.start()
    await asyncio.sleep(0)
    try:
        assert scheduler.running
        assert aps.get_job(REFRESH_JOB_ID) is not None
    finally:
        await scheduler.shutdown()


async def test_scheduler_run_once_uses_lookahead(settings, token_http):
    soon = make_credential("soon", expires_in=timedelta(minutes=9))
    store = FakeCredentialStore(soon)
    token_http.queue(token_response())

    result = await TokenRefreshScheduler(store, settings=settings).run_once()

    assert result.refreshed == 1
