"""Decide whether, and on which side, a tracked organization is in a war.

An organization that belongs to an alliance is matched by alliance id only;
an organization without an alliance is matched by corporation id only.
Matching is done on the party variant, so an alliance party never matches a
corporation lookup and an absent alliance id never matches anything.
"""

from __future__ import annotations

from warwatch.wars.models import (
    AllianceParty,
    Organization,
    OrganizationParty,
    Party,
    Side,
    War,
)


def _matches(party: Party, organization: Organization) -> bool:
    if organization.alliance_id is not None:
        return isinstance(party, AllianceParty) and party.alliance_id == organization.alliance_id
    return (
        isinstance(party, OrganizationParty)
        and party.organization_id == organization.organization_id
    )


def side(war: War, organization: Organization) -> Side:
    """Return the organization's side; allies always fight with the defender."""
    if _matches(war.aggressor, organization):
        return Side.AGGRESSOR
    if _matches(war.defender, organization):
        return Side.DEFENDER
    if any(_matches(ally, organization) for ally in war.allies):
        return Side.DEFENDER
    return Side.NOT_INVOLVED


def is_involved(war: War, organization: Organization) -> bool:
    return side(war, organization) is not Side.NOT_INVOLVED


def is_aggressor(war: War, organization: Organization) -> bool:
    return side(war, organization) is Side.AGGRESSOR
