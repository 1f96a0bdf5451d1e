"""Compile war notifications (new / updated / finished) for one organization."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Protocol

from warwatch.errors import ResolutionError
from warwatch.images import (
    corporation_icon_url,
    party_dotlan_url,
    party_icon_url,
    war_dotlan_url,
)
from warwatch.wars.changes import changed_fields
from warwatch.wars.involvement import is_aggressor
from warwatch.wars.models import (
    AllianceParty,
    MessageKind,
    NotificationAuthor,
    NotificationColor,
    NotificationField,
    NotificationPayload,
    Organization,
    Party,
    War,
)

ZERO_WIDTH_SPACE = "\u200b"
UNSET = "unset"


class NameLookup(Protocol):
    async def fetch_alliance(self, alliance_id: int) -> dict[str, Any]: ...

    async def fetch_corporation(self, corporation_id: int) -> dict[str, Any]: ...


class NameResolver:
    """Resolve party display names through ESI, caching per id.

    One resolver is meant to live for a single sync cycle so renamed
    alliances and corporations are picked up on the next run.
    """

    def __init__(self, lookup: NameLookup) -> None:
        self._lookup = lookup
        self._cache: dict[Party, str] = {}

    async def name(self, party: Party) -> str:
        cached = self._cache.get(party)
        if cached is not None:
            return cached
        try:
            if isinstance(party, AllianceParty):
                info = await self._lookup.fetch_alliance(party.alliance_id)
            else:
                info = await self._lookup.fetch_corporation(party.organization_id)
            name = str(info["name"])
        except Exception as exc:
            raise ResolutionError(f"could not resolve name for {party}", party=party) from exc
        self._cache[party] = name
        return name

    async def link(self, party: Party) -> str:
        """Bold Markdown link to the party's dotlan page."""
        return f"**[{await self.name(party)}]({party_dotlan_url(party)})**"


def format_date(value: datetime | None) -> str:
    """Render as e.g. 'Monday, January 2, 2006'."""
    if value is None:
        return UNSET
    return f"{value:%A, %B} {value.day}, {value.year}"


def _opponent_icon(war: War, organization: Organization) -> str:
    if is_aggressor(war, organization):
        return party_icon_url(war.defender)
    return party_icon_url(war.aggressor)


def _update_fields(previous: War | None, war: War) -> list[NotificationField]:
    if previous is None:
        return []
    fields = []
    for name in changed_fields(previous, war):
        if name == "open_for_allies":
            fields.append(NotificationField(
                "Open for Allies now:", "Yes" if war.open_for_allies else "No",
            ))
        elif name == "retracted":
            fields.append(NotificationField(
                "War retracted changed:",
                f"Was: {format_date(previous.retracted)}, now: {format_date(war.retracted)}",
            ))
        elif name == "started":
            fields.append(NotificationField("War has started:", format_date(war.started)))
    return fields


async def compile_notification(
    war: War,
    organization: Organization,
    kind: MessageKind,
    resolver: NameResolver,
    previous: War | None = None,
) -> NotificationPayload:
    """Build the payload for *war* as seen by *organization*.

    *previous* is the ledger snapshot and is only consulted for
    ``MessageKind.UPDATED``. Raises ResolutionError if any name lookup fails.
    """
    aggressor = await resolver.link(war.aggressor)
    defender = await resolver.link(war.defender)
    fields: list[NotificationField] = []

    if kind is MessageKind.NEW:
        description = f"{aggressor} have declared war to {defender}."
        if war.started is not None:
            fields.append(NotificationField("Starts at:", format_date(war.started)))
        if is_aggressor(war, organization):
            title = "WAR CONFIRMED!"
            color = NotificationColor.AGGRESSIVE
        else:
            title = "WAR DEC'ed!"
            color = NotificationColor.DANGER
    elif kind is MessageKind.FINISHED:
        title = "WAR IS OVER!"
        color = NotificationColor.SUCCESS
        description = (
            f"The war between {aggressor} and {defender} has ended. "
            f"Finished at: {format_date(war.finished)}"
        )
    else:
        title = "WAR UPDATE!"
        color = NotificationColor.CAUTION
        description = f"The war between {aggressor} and {defender} has been updated."
        fields.extend(_update_fields(previous, war))

    if war.allies:
        ally_names = await asyncio.gather(*(resolver.name(ally) for ally in war.allies))
        fields.append(NotificationField(f"Allies with {defender}:", ZERO_WIDTH_SPACE))
        for index, ally_name in enumerate(ally_names, start=1):
            fields.append(NotificationField(f"Ally {index}", ally_name))

    fields.append(NotificationField("Dotlan:", war_dotlan_url(war.id)))

    return NotificationPayload(
        title=title,
        description=description,
        color=color,
        thumbnail=_opponent_icon(war, organization),
        timestamp=war.declared,
        author=NotificationAuthor(
            name=organization.name,
            icon_url=corporation_icon_url(organization.organization_id),
        ),
        fields=fields,
    )
