"""Wipe stored war state so the next sync starts from scratch.

Usage:
    python -m warwatch.wipe --all
    python -m warwatch.wipe --organization 98000001 --organization 98000002
    python -m warwatch.wipe --global

--all wipes every tracked organization's ledger and the global war records.
Do not run while the notifier is syncing; wiped wars are announced again as
new on the next cycle.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from warwatch.config import setup_logging
from warwatch.organizations import load_organizations
from warwatch.store import WarStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Wipe warwatch ledger and war records")
    parser.add_argument(
        "--organization", type=int, action="append", default=[],
        help="Organization (corporation) id whose ledger to wipe; repeatable",
    )
    parser.add_argument(
        "--global", dest="wipe_global", action="store_true",
        help="Wipe the global war records",
    )
    parser.add_argument(
        "--all", dest="wipe_all", action="store_true",
        help="Wipe every tracked organization's ledger and the global records",
    )
    return parser


async def wipe(store: WarStore, organization_ids: list[int], wipe_global: bool) -> None:
    for organization_id in organization_ids:
        await store.wipe_entries(organization_id)
    if wipe_global:
        await store.wipe_global_records()
    logger.info(
        "wipe_complete",
        extra={"organizations": len(organization_ids), "global": wipe_global},
    )


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging()

    organization_ids = list(args.organization)
    wipe_global = args.wipe_global
    if args.wipe_all:
        organization_ids = [o.organization_id for o in load_organizations()]
        wipe_global = True
    if not organization_ids and not wipe_global:
        parser.error("nothing to wipe: pass --organization, --global or --all")

    asyncio.run(wipe(WarStore(), organization_ids, wipe_global))


if __name__ == "__main__":
    main()
