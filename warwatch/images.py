"""Icon and permalink helpers for EVE entities."""

from __future__ import annotations

from warwatch.config import DOTLAN_URL, IMAGE_SERVER_URL
from warwatch.wars.models import AllianceParty, Party

ICON_SIZE = 128


def alliance_icon_url(alliance_id: int) -> str:
    return f"{IMAGE_SERVER_URL}/alliances/{alliance_id}/logo?size={ICON_SIZE}"


def corporation_icon_url(corporation_id: int) -> str:
    return f"{IMAGE_SERVER_URL}/corporations/{corporation_id}/logo?size={ICON_SIZE}"


def party_icon_url(party: Party) -> str:
    if isinstance(party, AllianceParty):
        return alliance_icon_url(party.alliance_id)
    return corporation_icon_url(party.organization_id)


def party_dotlan_url(party: Party) -> str:
    if isinstance(party, AllianceParty):
        return f"{DOTLAN_URL}/alliance/{party.alliance_id}"
    return f"{DOTLAN_URL}/corp/{party.organization_id}"


def war_dotlan_url(war_id: int) -> str:
    return f"{DOTLAN_URL}/war/{war_id}"
