"""ClickHouse-backed war record store and per-organization war ledger.

Both tables are ReplacingMergeTree keyed on the war (and organization) id, so
an upsert is a plain insert and reads use FINAL to see the latest version.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

import clickhouse_connect
from clickhouse_connect.driver.client import Client

from warwatch.config import (
    CLICKHOUSE_DATABASE,
    CLICKHOUSE_HOST,
    CLICKHOUSE_PASSWORD,
    CLICKHOUSE_PORT,
    CLICKHOUSE_SECURE,
    CLICKHOUSE_USER,
    WRITER_BASE_BACKOFF,
    WRITER_MAX_RETRIES,
)
from warwatch.wars.models import War

logger = logging.getLogger(__name__)

WARS_TABLE = "wars"
LEDGER_TABLE = "organization_wars"

TABLE_COLUMNS: dict[str, list[str]] = {
    WARS_TABLE: ["war_id", "snapshot", "updated_at"],
    LEDGER_TABLE: ["organization_id", "war_id", "snapshot", "updated_at"],
}


def _snapshot(war: War) -> str:
    return json.dumps(war.to_esi(), sort_keys=True)


def _war_from_snapshot(raw: str) -> War:
    return War.from_esi(json.loads(raw))


class WarStore:
    """Global war records plus the per-organization war ledger."""

    def __init__(self, client: Client | None = None) -> None:
        self._client = client

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = clickhouse_connect.get_client(
                host=CLICKHOUSE_HOST,
                port=CLICKHOUSE_PORT,
                username=CLICKHOUSE_USER,
                password=CLICKHOUSE_PASSWORD,
                database=CLICKHOUSE_DATABASE,
                secure=CLICKHOUSE_SECURE,
                connect_timeout=30,
                send_receive_timeout=300,
            )
        return self._client

    # ------------------------------------------------------------------
    # Global war records
    # ------------------------------------------------------------------

    async def has_global_record(self, war_id: int) -> bool:
        rows = await self._query(
            f"SELECT count() FROM {WARS_TABLE} FINAL WHERE war_id = {{war_id:UInt64}}",
            {"war_id": war_id},
        )
        return bool(rows and rows[0][0])

    async def saved_war_ids(self) -> set[int]:
        rows = await self._query(f"SELECT war_id FROM {WARS_TABLE} FINAL")
        return {int(r[0]) for r in rows}

    async def save_global_record(self, war: War) -> None:
        await self._insert(WARS_TABLE, [[war.id, _snapshot(war), _now()]])

    async def prune_global_records(self, keep: set[int]) -> None:
        """Delete every global record whose id is not in *keep*."""
        if keep:
            await self._command(
                f"DELETE FROM {WARS_TABLE} WHERE war_id NOT IN {{keep:Array(UInt64)}}",
                {"keep": sorted(keep)},
            )
        else:
            await self._command(f"DELETE FROM {WARS_TABLE} WHERE 1 = 1")
        logger.info("global_records_pruned", extra={"kept": len(keep)})

    async def wipe_global_records(self) -> None:
        await self._command(f"TRUNCATE TABLE IF EXISTS {WARS_TABLE}")
        logger.info("global_records_wiped")

    # ------------------------------------------------------------------
    # Organization war ledger
    # ------------------------------------------------------------------

    async def get_entry(self, organization_id: int, war_id: int) -> War | None:
        rows = await self._query(
            f"SELECT snapshot FROM {LEDGER_TABLE} FINAL "
            "WHERE organization_id = {org:UInt64} AND war_id = {war_id:UInt64}",
            {"org": organization_id, "war_id": war_id},
        )
        if not rows:
            return None
        return _war_from_snapshot(rows[0][0])

    async def list_entries(self, organization_id: int) -> list[War]:
        rows = await self._query(
            f"SELECT snapshot FROM {LEDGER_TABLE} FINAL "
            "WHERE organization_id = {org:UInt64} ORDER BY war_id",
            {"org": organization_id},
        )
        return [_war_from_snapshot(r[0]) for r in rows]

    async def upsert_entry(self, organization_id: int, war: War) -> None:
        await self._insert(
            LEDGER_TABLE, [[organization_id, war.id, _snapshot(war), _now()]],
        )

    async def wipe_entries(self, organization_id: int) -> None:
        await self._command(
            f"DELETE FROM {LEDGER_TABLE} WHERE organization_id = {{org:UInt64}}",
            {"org": organization_id},
        )
        logger.info("ledger_wiped", extra={"organization_id": organization_id})

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _query(
        self, sql: str, parameters: dict[str, Any] | None = None,
    ) -> list[tuple]:
        client = self._get_client()
        result = await asyncio.to_thread(client.query, sql, parameters=parameters)
        return list(result.result_rows)

    async def _command(
        self, sql: str, parameters: dict[str, Any] | None = None,
    ) -> None:
        client = self._get_client()
        await asyncio.to_thread(client.command, sql, parameters=parameters)

    async def _insert(self, table: str, rows: list[list[Any]]) -> None:
        """Insert with exponential backoff; raises after the last attempt."""
        client = self._get_client()
        columns = TABLE_COLUMNS[table]
        backoff = WRITER_BASE_BACKOFF

        for attempt in range(1, WRITER_MAX_RETRIES + 1):
            try:
                await asyncio.to_thread(
                    client.insert, table, rows, column_names=columns,
                )
                return
            except Exception:
                logger.warning(
                    "insert_retry",
                    extra={
                        "table": table,
                        "attempt": attempt,
                        "backoff": backoff,
                        "rows": len(rows),
                    },
                    exc_info=True,
                )
                if attempt == WRITER_MAX_RETRIES:
                    logger.error(
                        "insert_failed",
                        extra={"table": table, "rows": len(rows)},
                    )
                    raise
                await asyncio.sleep(backoff)
                backoff *= 2

    def run_migration(self, sql: str) -> None:
        """Execute raw SQL (for schema migration)."""
        client = self._get_client()
        for statement in sql.split(";"):
            statement = statement.strip()
            if statement:
                client.command(statement)
        logger.info("migration_complete")


def _now() -> datetime:
    return datetime.now(timezone.utc)
