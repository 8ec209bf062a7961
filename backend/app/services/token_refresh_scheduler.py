"""
Proactive HubSpot token refresh: every few minutes, refresh credentials that expire soon.
Runs on an APScheduler AsyncIOScheduler started and stopped by the app lifespan.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.core.config import Settings, get_settings
from app.core.exceptions import CredentialStoreError, ReauthRequiredError
from app.models.credential import HUBSPOT_PROVIDER
from app.services.credential_store import CredentialStore
from app.services.token_refresher import TokenRefresher

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "hubspot_token_refresh"


@dataclass
class RefreshScanResult:
    scanned: int = 0
    refreshed: int = 0
    failed: list[str] = field(default_factory=list)


async def refresh_expiring_credentials(
    store: CredentialStore,
    refresher: TokenRefresher,
    lookahead: timedelta,
    now: Optional[datetime] = None,
) -> RefreshScanResult:
    """
    Refresh every HubSpot credential expiring within lookahead. Each credential is
    refreshed on its own; a failure is logged and the scan moves on to the next one.
    """
    result = RefreshScanResult()
    cutoff = (now or datetime.now(timezone.utc)) + lookahead
    try:
        credentials = await store.list_expiring_credentials(cutoff, provider=HUBSPOT_PROVIDER)
    except CredentialStoreError as e:
        logger.error("HubSpot token refresh scan could not list credentials: %s", e.message)
        return result

    for credential in credentials:
        result.scanned += 1
        try:
            await refresher.refresh_credential(credential)
            result.refreshed += 1
        except ReauthRequiredError as e:
            logger.error("HubSpot token for user %s needs reauthorization: %s", credential.user_id, e.message)
            result.failed.append(credential.user_id)
        except Exception as e:
            logger.exception("HubSpot token refresh failed for user %s: %s", credential.user_id, e)
            result.failed.append(credential.user_id)

    logger.info(
        "HubSpot token refresh scan: scanned=%d refreshed=%d failed=%d",
        result.scanned,
        result.refreshed,
        len(result.failed),
    )
    return result


class TokenRefreshScheduler:
    """Owns the periodic refresh job. start() / shutdown() are called from the app lifespan."""

    def __init__(
        self,
        store: CredentialStore,
        refresher: Optional[TokenRefresher] = None,
        settings: Optional[Settings] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._refresher = refresher or TokenRefresher(store, self._settings)
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._interval = self._settings.hubspot_refresh_interval_seconds
        self._lookahead = timedelta(seconds=self._settings.hubspot_refresh_lookahead_seconds)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    async def run_once(self) -> RefreshScanResult:
        return await refresh_expiring_credentials(self._store, self._refresher, self._lookahead)

    def start(self) -> None:
        if self._scheduler.running:
            return
        self._scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self._interval,
            id=REFRESH_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(
            "HubSpot token refresh scheduler started (every %ds, lookahead %ds)",
            self._interval,
            int(self._lookahead.total_seconds()),
        )

    async def shutdown(self) -> None:
        """Stop the job. AsyncIOScheduler stops on the next loop turn, so wait for it."""
        if not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=False)
        await asyncio.sleep(0)
        logger.info("HubSpot token refresh scheduler stopped")
