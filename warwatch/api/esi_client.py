"""Client for the EVE Online ESI API (wars, alliances, corporations)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from warwatch.api.esi_auth import EsiTokenProvider
from warwatch.config import (
    ESI_API_URL,
    ESI_DATASOURCE,
    ESI_MAX_WAR_PAGES,
    ESI_USER_AGENT,
    HTTP_TIMEOUT,
)
from warwatch.errors import NotFound, UpstreamError
from warwatch.wars.models import War

logger = logging.getLogger(__name__)

# GET /wars/ returns at most this many ids per page, newest first.
_WARS_PAGE_SIZE = 2000


class EsiClient:
    """Async client for the ESI endpoints used by the war sync."""

    def __init__(
        self,
        token_provider: EsiTokenProvider | None = None,
        *,
        base_url: str = ESI_API_URL,
        max_war_pages: int = ESI_MAX_WAR_PAGES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._tokens = token_provider
        self._max_war_pages = max_war_pages
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=HTTP_TIMEOUT,
            headers={"User-Agent": ESI_USER_AGENT},
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()
        if self._tokens is not None:
            await self._tokens.close()

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    async def fetch_war_ids(self) -> list[int]:
        """GET /wars/ — candidate war ids, newest first.

        Pages backwards with ``max_war_id`` until a short page or the
        configured page limit.
        """
        war_ids: list[int] = []
        max_war_id: int | None = None

        for _ in range(self._max_war_pages):
            params: dict[str, Any] = {}
            if max_war_id is not None:
                params["max_war_id"] = max_war_id
            page = await self._get("/wars/", params=params)
            if not page:
                break
            war_ids.extend(int(w) for w in page)
            if len(page) < _WARS_PAGE_SIZE:
                break
            max_war_id = min(page) - 1

        logger.info("esi_war_ids_fetched", extra={"count": len(war_ids)})
        return war_ids

    async def fetch_war(self, war_id: int) -> War:
        """GET /wars/{war_id}/ parsed into a :class:`War`."""
        raw = await self._get(f"/wars/{war_id}/")
        try:
            return War.from_esi(raw)
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamError(f"malformed war payload for {war_id}: {exc}") from exc

    async def fetch_alliance(self, alliance_id: int) -> dict[str, Any]:
        """GET /alliances/{alliance_id}/ — public alliance info (name, ticker, ...)."""
        return await self._get(f"/alliances/{alliance_id}/")

    async def fetch_corporation(self, corporation_id: int) -> dict[str, Any]:
        """GET /corporations/{corporation_id}/ — public corporation info."""
        return await self._get(f"/corporations/{corporation_id}/")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        query = {"datasource": ESI_DATASOURCE, **(params or {})}
        headers = {}
        if self._tokens is not None:
            token = await self._tokens.get_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        try:
            resp = await self._client.get(path, params=query, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"GET {path} failed: {exc}") from exc

        if resp.status_code == 404:
            raise NotFound(f"GET {path}: not found")
        if resp.is_error:
            raise UpstreamError(
                f"GET {path}: HTTP {resp.status_code}", status_code=resp.status_code,
            )
        return resp.json()
