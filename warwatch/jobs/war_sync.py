"""Job: sync ESI wars for the tracked organizations and notify on changes.

Each cycle is a full reconciliation pass:

1. Fetch the candidate war ids visible to the tracked character. A failure
   here aborts the cycle (FatalCycleError) before anything is persisted.
2. Prune global war records whose id is no longer a candidate.
3. For every candidate without a global record: fetch the detail (paced to
   avoid ESI gateway errors), and for each war-eligible organization that is
   involved and has no ledger entry yet, notify NEW (or FINISHED). The ledger
   entry is written for every involved organization. The global record is
   saved once all organizations were handled, so a war whose handling failed
   is picked up again next cycle.
4. For every war-eligible organization, re-fetch each unfinished candidate war
   in its ledger and notify UPDATED (or FINISHED) when it changed.

Failures of one war or one organization/war pair are logged and skipped.
Cycles must not overlap; the scheduler runs this job with max_instances=1.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from warwatch.config import WAR_DETAIL_PACING
from warwatch.errors import FatalCycleError, ItemError
from warwatch.wars.changes import has_changed
from warwatch.wars.involvement import is_involved
from warwatch.wars.models import MessageKind, NotificationPayload, Organization, War
from warwatch.wars.notification import NameResolver, compile_notification

logger = logging.getLogger(__name__)


class WarSource(Protocol):
    async def fetch_war_ids(self) -> list[int]: ...

    async def fetch_war(self, war_id: int) -> War: ...

    async def fetch_alliance(self, alliance_id: int) -> dict[str, Any]: ...

    async def fetch_corporation(self, corporation_id: int) -> dict[str, Any]: ...


class WarLedger(Protocol):
    async def saved_war_ids(self) -> set[int]: ...

    async def save_global_record(self, war: War) -> None: ...

    async def prune_global_records(self, keep: set[int]) -> None: ...

    async def get_entry(self, organization_id: int, war_id: int) -> War | None: ...

    async def list_entries(self, organization_id: int) -> list[War]: ...

    async def upsert_entry(self, organization_id: int, war: War) -> None: ...


class Notifier(Protocol):
    async def dispatch(self, channels: list[str], payload: NotificationPayload) -> Any: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class WarSyncContext:
    """Everything one sync cycle needs; built once by the scheduler."""

    esi: WarSource
    store: WarLedger
    notifier: Notifier
    channels: list[str]
    organizations: list[Organization]   # priority order
    pacing: float = WAR_DETAIL_PACING
    clock: Callable[[], datetime] = _utcnow

    @property
    def eligible_organizations(self) -> list[Organization]:
        return [org for org in self.organizations if org.war_eligible]


@dataclass
class WarSyncReport:
    candidates: int = 0
    new_wars: int = 0
    checked_wars: int = 0
    notifications: int = 0
    errors: list[ItemError] = field(default_factory=list)
    finished_at: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "candidates": self.candidates,
            "new_wars": self.new_wars,
            "checked_wars": self.checked_wars,
            "notifications": self.notifications,
            "errors": len(self.errors),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


async def run_war_sync(ctx: WarSyncContext) -> WarSyncReport:
    """Run one full sync cycle. Raises FatalCycleError only if the candidate fetch fails."""
    report = WarSyncReport()

    try:
        war_ids = await ctx.esi.fetch_war_ids()
    except Exception as exc:
        logger.error("war_candidates_fetch_failed", exc_info=True)
        raise FatalCycleError(f"could not fetch candidate war ids: {exc}") from exc

    # dict.fromkeys keeps ESI order (newest first) while dropping duplicates
    candidates = list(dict.fromkeys(war_ids))
    keep = set(candidates)
    report.candidates = len(candidates)
    resolver = NameResolver(ctx.esi)

    try:
        await ctx.store.prune_global_records(keep)
    except Exception:
        logger.error("war_prune_failed", exc_info=True)

    await _reconcile_new(ctx, resolver, candidates, report)
    await _reconcile_existing(ctx, resolver, keep, report)

    report.finished_at = ctx.clock()
    logger.info("war_sync_complete", extra=report.as_dict())
    return report


# ------------------------------------------------------------------
# New wars
# ------------------------------------------------------------------


async def _reconcile_new(
    ctx: WarSyncContext,
    resolver: NameResolver,
    candidates: list[int],
    report: WarSyncReport,
) -> None:
    try:
        saved = await ctx.store.saved_war_ids()
    except Exception as exc:
        _record(report, ItemError(f"could not list saved wars: {exc}"))
        return

    for war_id in candidates:
        if war_id in saved:
            continue
        try:
            # Slow down to stay clear of ESI gateway errors
            await asyncio.sleep(ctx.pacing)
            war = await ctx.esi.fetch_war(war_id)
        except Exception as exc:
            _record(report, ItemError(f"war detail fetch failed: {exc}", war_id=war_id))
            continue
        report.new_wars += 1

        failed = False
        for org in ctx.eligible_organizations:
            try:
                await _handle_new_war(ctx, resolver, war, org, report)
            except Exception as exc:
                failed = True
                _record(report, ItemError(
                    f"new war handling failed: {exc}",
                    war_id=war_id,
                    organization_id=org.organization_id,
                ))

        if failed:
            continue
        try:
            await ctx.store.save_global_record(war)
        except Exception as exc:
            _record(report, ItemError(f"global record save failed: {exc}", war_id=war_id))


async def _handle_new_war(
    ctx: WarSyncContext,
    resolver: NameResolver,
    war: War,
    org: Organization,
    report: WarSyncReport,
) -> None:
    if not is_involved(war, org):
        return

    known = await ctx.store.get_entry(org.organization_id, war.id)
    if known is None:
        kind = MessageKind.FINISHED if war.is_finished(ctx.clock()) else MessageKind.NEW
        payload = await compile_notification(war, org, kind, resolver)
        await ctx.notifier.dispatch(ctx.channels, payload)
        report.notifications += 1
        logger.info(
            "war_notified",
            extra={"war_id": war.id, "organization_id": org.organization_id, "kind": kind.value},
        )

    await ctx.store.upsert_entry(org.organization_id, war)


# ------------------------------------------------------------------
# Known wars
# ------------------------------------------------------------------


async def _reconcile_existing(
    ctx: WarSyncContext,
    resolver: NameResolver,
    keep: set[int],
    report: WarSyncReport,
) -> None:
    now = ctx.clock()
    for org in ctx.eligible_organizations:
        try:
            entries = await ctx.store.list_entries(org.organization_id)
        except Exception as exc:
            _record(report, ItemError(
                f"ledger read failed: {exc}", organization_id=org.organization_id,
            ))
            continue

        for previous in entries:
            # Pruned wars are not fetched again; finished wars cannot change
            if previous.id not in keep or previous.is_finished(now):
                continue
            try:
                await _handle_known_war(ctx, resolver, previous, org, report)
            except Exception as exc:
                _record(report, ItemError(
                    f"known war check failed: {exc}",
                    war_id=previous.id,
                    organization_id=org.organization_id,
                ))


async def _handle_known_war(
    ctx: WarSyncContext,
    resolver: NameResolver,
    previous: War,
    org: Organization,
    report: WarSyncReport,
) -> None:
    war = await ctx.esi.fetch_war(previous.id)
    report.checked_wars += 1

    now = ctx.clock()
    finished = war.is_finished(now)
    if not has_changed(previous, war) and not finished:
        return

    kind = MessageKind.FINISHED if finished else MessageKind.UPDATED
    payload = await compile_notification(war, org, kind, resolver, previous=previous)
    await ctx.notifier.dispatch(ctx.channels, payload)
    report.notifications += 1
    logger.info(
        "war_notified",
        extra={"war_id": war.id, "organization_id": org.organization_id, "kind": kind.value},
    )

    await ctx.store.upsert_entry(org.organization_id, war)


def _record(report: WarSyncReport, error: ItemError) -> None:
    """Log an item failure; must be called from inside the except block."""
    report.errors.append(error)
    logger.error(
        "war_sync_item_error",
        extra={
            "war_id": error.war_id,
            "organization_id": error.organization_id,
            "error": str(error),
        },
        exc_info=True,
    )
