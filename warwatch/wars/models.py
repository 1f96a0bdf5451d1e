"""War, organization and notification data models.

A war party is a tagged union: either an alliance or a bare corporation
(organization). ESI reports a participant with an ``alliance_id`` when the
party is an alliance and a ``corporation_id`` otherwise, so every party
resolves to exactly one variant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union


@dataclass(frozen=True)
class AllianceParty:
    alliance_id: int

    def to_esi(self) -> dict[str, int]:
        return {"alliance_id": self.alliance_id}


@dataclass(frozen=True)
class OrganizationParty:
    organization_id: int

    def to_esi(self) -> dict[str, int]:
        return {"corporation_id": self.organization_id}


Party = Union[AllianceParty, OrganizationParty]


def parse_party(raw: dict[str, Any]) -> Party:
    """Build a party from an ESI participant dict (aggressor, defender or ally)."""
    alliance_id = raw.get("alliance_id")
    if alliance_id:
        return AllianceParty(int(alliance_id))
    corporation_id = raw.get("corporation_id")
    if corporation_id:
        return OrganizationParty(int(corporation_id))
    raise ValueError(f"war participant has neither alliance_id nor corporation_id: {raw!r}")


def _parse_dt(raw: str | None) -> datetime | None:
    if not raw:
        return None
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


def _format_dt(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class War:
    """Snapshot of an ESI war record."""

    id: int
    aggressor: Party
    defender: Party
    declared: datetime
    allies: tuple[Party, ...] = ()
    started: datetime | None = None
    retracted: datetime | None = None
    finished: datetime | None = None
    open_for_allies: bool = False
    mutual: bool = False

    def is_finished(self, now: datetime | None = None) -> bool:
        """True when ``finished`` is set and already in the past."""
        if self.finished is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.finished <= now

    @classmethod
    def from_esi(cls, raw: dict[str, Any]) -> War:
        """Parse a GET /wars/{war_id}/ payload."""
        declared = _parse_dt(raw.get("declared"))
        if declared is None:
            raise ValueError(f"war {raw.get('id')} has no declared date")
        return cls(
            id=int(raw["id"]),
            aggressor=parse_party(raw["aggressor"]),
            defender=parse_party(raw["defender"]),
            declared=declared,
            allies=tuple(parse_party(a) for a in raw.get("allies") or []),
            started=_parse_dt(raw.get("started")),
            retracted=_parse_dt(raw.get("retracted")),
            finished=_parse_dt(raw.get("finished")),
            open_for_allies=bool(raw.get("open_for_allies", False)),
            mutual=bool(raw.get("mutual", False)),
        )

    def to_esi(self) -> dict[str, Any]:
        """Inverse of :meth:`from_esi`; unset timestamps are omitted."""
        raw: dict[str, Any] = {
            "id": self.id,
            "aggressor": self.aggressor.to_esi(),
            "defender": self.defender.to_esi(),
            "allies": [a.to_esi() for a in self.allies],
            "declared": _format_dt(self.declared),
            "open_for_allies": self.open_for_allies,
            "mutual": self.mutual,
        }
        for name in ("started", "retracted", "finished"):
            value = _format_dt(getattr(self, name))
            if value is not None:
                raw[name] = value
        return raw


@dataclass(frozen=True)
class Organization:
    """A tracked corporation."""

    organization_id: int
    name: str
    alliance_id: int | None = None
    war_eligible: bool = True

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Organization:
        alliance_id = raw.get("alliance_id")
        return cls(
            organization_id=int(raw["organization_id"]),
            name=str(raw.get("name", "")),
            alliance_id=int(alliance_id) if alliance_id else None,
            war_eligible=bool(raw.get("war_eligible", True)),
        )


class Side(str, Enum):
    AGGRESSOR = "aggressor"
    DEFENDER = "defender"
    NOT_INVOLVED = "not_involved"


class MessageKind(str, Enum):
    NEW = "new"
    UPDATED = "updated"
    FINISHED = "finished"


class NotificationColor(str, Enum):
    AGGRESSIVE = "aggressive"   # we declared
    DANGER = "danger"           # declared against us
    CAUTION = "caution"         # war updated
    SUCCESS = "success"         # war over


@dataclass(frozen=True)
class NotificationField:
    label: str
    value: str


@dataclass(frozen=True)
class NotificationAuthor:
    name: str
    icon_url: str


@dataclass
class NotificationPayload:
    """Transport-neutral notification, rendered by the notifier."""

    title: str
    description: str
    color: NotificationColor
    thumbnail: str
    timestamp: datetime
    author: NotificationAuthor
    fields: list[NotificationField] = field(default_factory=list)
    footer: str = "Declared:"
