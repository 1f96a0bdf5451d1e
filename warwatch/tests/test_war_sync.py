"""Tests for the war sync cycle, run against in-memory collaborators."""

import asyncio
from datetime import timedelta

import pytest

from conftest import NOW, T0, FakeEsi, FakeNotifier, FakeStore, make_war
from warwatch.errors import FatalCycleError
from warwatch.images import corporation_icon_url
from warwatch.jobs.war_sync import WarSyncContext, run_war_sync
from warwatch.wars.models import (
    AllianceParty,
    NotificationColor,
    Organization,
    OrganizationParty,
)

CHANNELS = ["https://discord.test/api/webhooks/1/abc"]


@pytest.fixture
def esi():
    return FakeEsi(wars=[make_war(1)])


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def ctx(esi, store, notifier, aggressor_org):
    return WarSyncContext(
        esi=esi,
        store=store,
        notifier=notifier,
        channels=CHANNELS,
        organizations=[aggressor_org],
        pacing=0,
        clock=lambda: NOW,
    )


def _sync(ctx):
    return asyncio.run(run_war_sync(ctx))


# ------------------------------------------------------------------
# New wars
# ------------------------------------------------------------------
def test_new_war_is_notified_and_recorded(ctx, store, notifier):
    report = _sync(ctx)

    assert report.candidates == 1
    assert report.new_wars == 1
    assert report.notifications == 1
    assert not report.errors

    channels, payload = notifier.sent[0]
    assert channels == CHANNELS
    assert payload.title == "WAR CONFIRMED!"
    assert payload.color is NotificationColor.AGGRESSIVE
    assert payload.thumbnail == corporation_icon_url(20)

    assert 1 in store.global_records
    assert store.ledger[(10, 1)] == make_war(1)


def test_second_run_sends_nothing(ctx, notifier):
    _sync(ctx)
    report = _sync(ctx)

    assert report.new_wars == 0
    assert report.notifications == 0
    assert len(notifier.sent) == 1


def test_known_ledger_entry_suppresses_new_notification(ctx, store, notifier):
    asyncio.run(store.upsert_entry(10, make_war(1)))
    _sync(ctx)

    assert notifier.sent == []
    assert 1 in store.global_records


def test_already_finished_war_is_announced_as_finished(ctx, esi, notifier):
    esi.wars[1] = make_war(1, finished=NOW - timedelta(days=1))
    _sync(ctx)

    assert notifier.payloads[0].title == "WAR IS OVER!"


def test_war_finishing_in_future_is_still_new(ctx, esi, notifier):
    esi.wars[1] = make_war(1, finished=NOW + timedelta(days=1))
    _sync(ctx)

    assert notifier.payloads[0].title == "WAR CONFIRMED!"


def test_uninvolved_organization_gets_nothing(ctx, esi, store, notifier):
    esi.wars[1] = make_war(1, aggressor=OrganizationParty(70), defender=OrganizationParty(80))
    esi.corporations.update({70: "Other", 80: "Another"})
    _sync(ctx)

    assert notifier.sent == []
    assert store.ledger == {}
    assert 1 in store.global_records


def test_ineligible_organization_is_skipped(ctx, store, notifier, aggressor_org):
    ctx.organizations = [
        Organization(organization_id=10, name="Aggressor Corp", war_eligible=False),
    ]
    _sync(ctx)

    assert notifier.sent == []
    assert store.ledger == {}


def test_organizations_notified_in_priority_order(ctx, notifier, aggressor_org, defender_org):
    ctx.organizations = [defender_org, aggressor_org]
    _sync(ctx)

    assert [p.author.name for p in notifier.payloads] == ["Defender Corp", "Aggressor Corp"]


def test_new_wars_are_paced(ctx, esi, monkeypatch):
    esi.wars.update({2: make_war(2), 3: make_war(3)})
    ctx.pacing = 0.25
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("warwatch.jobs.war_sync.asyncio.sleep", fake_sleep)
    _sync(ctx)

    assert delays == [0.25, 0.25, 0.25]


# ------------------------------------------------------------------
# Pruning
# ------------------------------------------------------------------
def test_pruned_war_keeps_ledger_and_is_not_fetched(ctx, esi, store):
    _sync(ctx)
    esi.candidates = []
    esi.fetched.clear()

    _sync(ctx)

    assert store.global_records == {}
    assert (10, 1) in store.ledger
    assert esi.fetched == []


# ------------------------------------------------------------------
# Known wars
# ------------------------------------------------------------------
def test_retraction_triggers_update(ctx, esi, store, notifier):
    _sync(ctx)
    retracted = make_war(1, retracted=T0 + timedelta(days=3))
    esi.wars[1] = retracted

    report = _sync(ctx)

    assert report.notifications == 1
    payload = notifier.payloads[-1]
    assert payload.title == "WAR UPDATE!"
    assert payload.color is NotificationColor.CAUTION
    fields = {f.label: f.value for f in payload.fields}
    assert fields["War retracted changed:"].startswith("Was: unset, now: ")
    assert store.ledger[(10, 1)] == retracted


def test_unchanged_known_war_is_quiet(ctx, esi, notifier):
    _sync(ctx)
    report = _sync(ctx)

    assert report.checked_wars == 1
    assert len(notifier.sent) == 1


def test_finished_known_war_is_announced_once(ctx, esi, store, notifier, defender_org):
    ctx.organizations = [defender_org]
    _sync(ctx)
    esi.wars[1] = make_war(1, finished=NOW - timedelta(hours=1))

    _sync(ctx)
    _sync(ctx)

    finished = [p for p in notifier.payloads if p.title == "WAR IS OVER!"]
    assert len(finished) == 1
    assert finished[0].color is NotificationColor.SUCCESS
    assert "Defender Corp" in finished[0].description
    assert "Aggressor Corp" in finished[0].description


def test_ledgers_are_independent_per_organization(ctx, store, notifier, aggressor_org, defender_org):
    asyncio.run(store.upsert_entry(10, make_war(1)))
    ctx.organizations = [aggressor_org, defender_org]
    _sync(ctx)

    assert [p.author.name for p in notifier.payloads] == ["Defender Corp"]
    assert (20, 1) in store.ledger


# ------------------------------------------------------------------
# Failure handling
# ------------------------------------------------------------------
def test_candidate_fetch_failure_is_fatal(ctx, esi, store, notifier):
    esi.fail_candidates = True

    with pytest.raises(FatalCycleError):
        _sync(ctx)

    assert notifier.sent == []
    assert store.global_records == {}
    assert store.ledger == {}


def test_one_bad_war_does_not_stop_the_batch(ctx, esi, store, notifier):
    esi.wars[2] = make_war(2)
    esi.fail_wars = {1}

    report = _sync(ctx)

    assert len(report.errors) == 1
    assert report.errors[0].war_id == 1
    assert 2 in store.global_records
    assert 1 not in store.global_records
    assert len(notifier.sent) == 1


def test_resolution_failure_drops_only_that_notification(ctx, esi, store, notifier, aggressor_org):
    esi.wars[2] = make_war(2, allies=(AllianceParty(999),))
    esi.wars[3] = make_war(3)

    report = _sync(ctx)

    assert [e.war_id for e in report.errors] == [2]
    assert report.errors[0].organization_id == 10
    assert (10, 2) not in store.ledger
    assert {(10, 1), (10, 3)} <= set(store.ledger)
    assert len(notifier.sent) == 2


def test_failed_war_is_retried_next_cycle(ctx, esi, store, notifier):
    esi.wars[2] = make_war(2, allies=(AllianceParty(999),))
    _sync(ctx)
    assert 2 not in store.global_records

    esi.alliances[999] = "Late Ally"
    report = _sync(ctx)

    assert not report.errors
    assert 2 in store.global_records
    assert (10, 2) in store.ledger
    assert len(notifier.sent) == 2


def test_known_war_fetch_failure_keeps_old_snapshot(ctx, esi, store, notifier):
    _sync(ctx)
    esi.wars[1] = make_war(1, open_for_allies=True)
    esi.fail_wars = {1}

    report = _sync(ctx)

    assert report.errors and report.errors[0].war_id == 1
    assert store.ledger[(10, 1)] == make_war(1)
    assert len(notifier.sent) == 1
