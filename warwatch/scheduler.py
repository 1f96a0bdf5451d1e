"""APScheduler-based job scheduler for warwatch."""

from __future__ import annotations

import asyncio
import logging
import signal

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from warwatch.api.esi_auth import EsiTokenProvider
from warwatch.api.esi_client import EsiClient
from warwatch.config import (
    DISCORD_WEBHOOK_URLS,
    HEALTH_CHECK_PORT,
    WAR_SYNC_INTERVAL,
)
from warwatch.errors import FatalCycleError
from warwatch.jobs.war_sync import WarSyncContext, WarSyncReport, run_war_sync
from warwatch.notifier.discord import DiscordNotifier
from warwatch.organizations import load_organizations
from warwatch.store import WarStore

logger = logging.getLogger(__name__)


class WarwatchScheduler:
    """Runs the war sync on an interval and serves a health endpoint."""

    def __init__(self, store: WarStore) -> None:
        self._scheduler = AsyncIOScheduler()
        self._store = store
        self._esi = EsiClient(EsiTokenProvider())
        self._notifier = DiscordNotifier()
        self._context = WarSyncContext(
            esi=self._esi,
            store=store,
            notifier=self._notifier,
            channels=list(DISCORD_WEBHOOK_URLS),
            organizations=load_organizations(),
        )
        self._last_report: WarSyncReport | None = None
        self._last_error: str | None = None
        self._shutdown_event = asyncio.Event()
        self._health_runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Register jobs, start the scheduler, and block until shutdown."""
        if not self._context.channels:
            logger.warning("no_discord_channels_configured")

        logger.info("initial_war_sync")
        await self._job_war_sync()

        # One cycle at a time: a slow cycle delays the next instead of overlapping
        self._scheduler.add_job(
            self._job_war_sync,
            "interval",
            seconds=WAR_SYNC_INTERVAL,
            id="war_sync",
            name="War Sync",
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(
            "scheduler_started",
            extra={
                "organizations": len(self._context.organizations),
                "channels": len(self._context.channels),
                "interval": WAR_SYNC_INTERVAL,
            },
        )

        await self._start_health_server()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler)

        await self._shutdown_event.wait()
        await self._stop()

    async def _stop(self) -> None:
        logger.info("scheduler_stopping")
        self._scheduler.shutdown(wait=False)

        await self._esi.close()
        await self._notifier.close()

        if self._health_runner:
            await self._health_runner.cleanup()

        logger.info("scheduler_stopped")

    def _signal_handler(self) -> None:
        logger.info("shutdown_signal_received")
        self._shutdown_event.set()

    # ------------------------------------------------------------------
    # Job wrapper (catch exceptions so scheduler keeps running)
    # ------------------------------------------------------------------

    async def _job_war_sync(self) -> None:
        try:
            self._last_report = await run_war_sync(self._context)
            self._last_error = None
        except FatalCycleError as exc:
            self._last_error = str(exc)
            logger.error("war_sync_aborted", extra={"error": str(exc)})
        except Exception as exc:
            self._last_error = str(exc)
            logger.error("war_sync_error", exc_info=True)

    # ------------------------------------------------------------------
    # Health check
    # ------------------------------------------------------------------

    async def _start_health_server(self) -> None:
        app = web.Application()
        app.router.add_get("/health", self._health_handler)

        self._health_runner = web.AppRunner(app)
        await self._health_runner.setup()
        site = web.TCPSite(self._health_runner, "0.0.0.0", HEALTH_CHECK_PORT)
        await site.start()
        logger.info("health_server_started", extra={"port": HEALTH_CHECK_PORT})

    async def _health_handler(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok" if self._last_error is None else "degraded",
            "scheduler_running": self._scheduler.running,
            "organizations": len(self._context.organizations),
            "last_sync": self._last_report.as_dict() if self._last_report else None,
            "last_error": self._last_error,
        })
