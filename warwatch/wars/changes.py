"""Change detection between a stored war snapshot and a fresh one."""

from __future__ import annotations

from warwatch.wars.models import War

# Fields whose change warrants an update notification, in reporting order.
TRACKED_FIELDS = ("open_for_allies", "retracted", "started")


def changed_fields(previous: War, current: War) -> list[str]:
    return [
        name for name in TRACKED_FIELDS
        if getattr(previous, name) != getattr(current, name)
    ]


def has_changed(previous: War, current: War) -> bool:
    """True if open_for_allies, retracted or started differ between snapshots."""
    return bool(changed_fields(previous, current))
