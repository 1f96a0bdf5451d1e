"""Shared fixtures and in-memory fakes for the war sync tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from warwatch.errors import NotFound, UpstreamError
from warwatch.wars.models import (
    AllianceParty,
    Organization,
    OrganizationParty,
    War,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_war(war_id=1, aggressor=None, defender=None, **kwargs) -> War:
    return War(
        id=war_id,
        aggressor=aggressor or OrganizationParty(10),
        defender=defender or OrganizationParty(20),
        declared=kwargs.pop("declared", T0),
        **kwargs,
    )


class FakeEsi:
    """Serves wars and names from dicts; records every detail fetch."""

    def __init__(self, wars=None, alliances=None, corporations=None) -> None:
        self.wars: dict[int, War] = {w.id: w for w in (wars or [])}
        self.candidates: list[int] | None = None
        self.alliances: dict[int, str] = alliances or {}
        self.corporations: dict[int, str] = corporations or {10: "Aggressor Corp", 20: "Defender Corp"}
        self.fail_candidates = False
        self.fail_wars: set[int] = set()
        self.fetched: list[int] = []

    async def fetch_war_ids(self) -> list[int]:
        if self.fail_candidates:
            raise UpstreamError("ESI down", status_code=502)
        if self.candidates is not None:
            return list(self.candidates)
        return sorted(self.wars, reverse=True)

    async def fetch_war(self, war_id: int) -> War:
        self.fetched.append(war_id)
        if war_id in self.fail_wars:
            raise UpstreamError("gateway timeout", status_code=504)
        return self.wars[war_id]

    async def fetch_alliance(self, alliance_id: int) -> dict:
        if alliance_id not in self.alliances:
            raise NotFound(f"alliance {alliance_id}")
        return {"name": self.alliances[alliance_id]}

    async def fetch_corporation(self, corporation_id: int) -> dict:
        if corporation_id not in self.corporations:
            raise NotFound(f"corporation {corporation_id}")
        return {"name": self.corporations[corporation_id]}


class FakeStore:
    def __init__(self) -> None:
        self.global_records: dict[int, War] = {}
        self.ledger: dict[tuple[int, int], War] = {}

    async def has_global_record(self, war_id: int) -> bool:
        return war_id in self.global_records

    async def saved_war_ids(self) -> set[int]:
        return set(self.global_records)

    async def save_global_record(self, war: War) -> None:
        self.global_records[war.id] = war

    async def prune_global_records(self, keep: set[int]) -> None:
        for war_id in list(self.global_records):
            if war_id not in keep:
                del self.global_records[war_id]

    async def get_entry(self, organization_id: int, war_id: int) -> War | None:
        return self.ledger.get((organization_id, war_id))

    async def list_entries(self, organization_id: int) -> list[War]:
        return [
            war for (org_id, _), war in sorted(self.ledger.items())
            if org_id == organization_id
        ]

    async def upsert_entry(self, organization_id: int, war: War) -> None:
        self.ledger[(organization_id, war.id)] = war


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[list[str], object]] = []

    async def dispatch(self, channels, payload) -> int:
        self.sent.append((list(channels), payload))
        return len(channels)

    @property
    def payloads(self):
        return [p for _, p in self.sent]


@pytest.fixture
def aggressor_org():
    return Organization(organization_id=10, name="Aggressor Corp")


@pytest.fixture
def defender_org():
    return Organization(organization_id=20, name="Defender Corp")


@pytest.fixture
def alliance_org():
    return Organization(organization_id=30, name="Member Corp", alliance_id=500)


@pytest.fixture
def alliance_war():
    return make_war(
        7,
        aggressor=AllianceParty(500),
        defender=OrganizationParty(20),
        allies=(AllianceParty(600), OrganizationParty(40)),
    )
