"""EVE SSO access-token provider (OAuth2 refresh-token grant)."""

from __future__ import annotations

import logging
import time

import httpx

from warwatch.config import (
    EVE_CLIENT_ID,
    EVE_CLIENT_SECRET,
    EVE_REFRESH_TOKEN,
    EVE_SSO_TOKEN_URL,
    HTTP_TIMEOUT,
    TOKEN_EXPIRY_MARGIN,
)
from warwatch.errors import UpstreamError

logger = logging.getLogger(__name__)


class EsiTokenProvider:
    """Hand out a bearer token for the tracked character, refreshing as needed.

    With no refresh token configured, :meth:`get_token` returns None and the
    ESI client falls back to unauthenticated (public) requests.
    """

    def __init__(
        self,
        *,
        client_id: str = EVE_CLIENT_ID,
        client_secret: str = EVE_CLIENT_SECRET,
        refresh_token: str = EVE_REFRESH_TOKEN,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._client = httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=transport)
        self._access_token: str | None = None
        self._expires_at = 0.0

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def enabled(self) -> bool:
        return bool(self._refresh_token)

    async def get_token(self) -> str | None:
        if not self.enabled:
            return None
        if self._access_token and time.monotonic() < self._expires_at:
            return self._access_token
        await self._refresh()
        return self._access_token

    async def _refresh(self) -> None:
        try:
            resp = await self._client.post(
                EVE_SSO_TOKEN_URL,
                data={"grant_type": "refresh_token", "refresh_token": self._refresh_token},
                auth=(self._client_id, self._client_secret),
            )
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                f"token refresh failed: HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"token refresh failed: {exc}") from exc

        self._access_token = body["access_token"]
        # SSO may rotate the refresh token
        self._refresh_token = body.get("refresh_token", self._refresh_token)
        expires_in = float(body.get("expires_in", 1200))
        self._expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
        logger.info("esi_token_refreshed", extra={"expires_in": expires_in})
