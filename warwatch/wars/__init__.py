"""War domain: models, involvement and change detection.

These modules are pure. The notification compiler lives in
``warwatch.wars.notification`` and resolves names through an injected lookup.
"""

from .changes import changed_fields, has_changed
from .involvement import is_aggressor, is_involved, side
from .models import (
    AllianceParty,
    MessageKind,
    NotificationColor,
    NotificationPayload,
    Organization,
    OrganizationParty,
    Side,
    War,
)

__all__ = [
    "AllianceParty",
    "MessageKind",
    "NotificationColor",
    "NotificationPayload",
    "Organization",
    "OrganizationParty",
    "Side",
    "War",
    "changed_fields",
    "has_changed",
    "is_aggressor",
    "is_involved",
    "side",
]
