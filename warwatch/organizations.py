"""Load the tracked organizations, in notification priority order."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from warwatch.config import ORGANIZATIONS_FILE
from warwatch.wars.models import Organization

logger = logging.getLogger(__name__)


def load_organizations(path: str | Path = ORGANIZATIONS_FILE) -> list[Organization]:
    """Read a JSON list of organizations; file order is priority order.

    Each entry: {"organization_id": int, "name": str,
    "alliance_id": int | null, "war_eligible": bool}.
    """
    raw = json.loads(Path(path).read_text())
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of organizations")

    organizations = [Organization.from_dict(entry) for entry in raw]
    seen: set[int] = set()
    for org in organizations:
        if org.organization_id in seen:
            raise ValueError(f"{path}: duplicate organization_id {org.organization_id}")
        seen.add(org.organization_id)

    logger.info(
        "organizations_loaded",
        extra={
            "count": len(organizations),
            "war_eligible": sum(1 for o in organizations if o.war_eligible),
        },
    )
    return organizations
