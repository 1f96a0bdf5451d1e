"""Post war notifications to Discord channels through webhooks."""

from __future__ import annotations

import logging
from datetime import timezone
from typing import Any

import httpx

from warwatch.config import DISCORD_USERNAME, HTTP_TIMEOUT
from warwatch.wars.models import NotificationColor, NotificationPayload

logger = logging.getLogger(__name__)

EMBED_COLORS: dict[NotificationColor, int] = {
    NotificationColor.AGGRESSIVE: 0x9B59B6,  # purple
    NotificationColor.DANGER: 0xE74C3C,      # red
    NotificationColor.CAUTION: 0xF1C40F,     # amber
    NotificationColor.SUCCESS: 0x2ECC71,     # green
}


def render_embed(payload: NotificationPayload) -> dict[str, Any]:
    """Render a payload as a Discord embed object."""
    return {
        "title": payload.title,
        "description": payload.description,
        "color": EMBED_COLORS[payload.color],
        "thumbnail": {"url": payload.thumbnail},
        "author": {"name": payload.author.name, "icon_url": payload.author.icon_url},
        "fields": [
            {"name": f.label, "value": f.value, "inline": False}
            for f in payload.fields
        ],
        "footer": {"text": payload.footer},
        "timestamp": payload.timestamp.astimezone(timezone.utc).isoformat(),
    }


class DiscordNotifier:
    """Fan a payload out to every subscriber webhook.

    Delivery failures are logged per channel and never raised to the caller.
    """

    def __init__(
        self,
        *,
        username: str = DISCORD_USERNAME,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._username = username
        self._client = httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def dispatch(self, channels: list[str], payload: NotificationPayload) -> int:
        """POST the payload to each webhook URL. Returns the number delivered."""
        body = {"username": self._username, "embeds": [render_embed(payload)]}
        delivered = 0
        for channel in channels:
            try:
                resp = await self._client.post(channel, json=body)
                resp.raise_for_status()
                delivered += 1
            except Exception:
                logger.warning(
                    "discord_post_error",
                    extra={"channel": _redact(channel), "title": payload.title},
                    exc_info=True,
                )
        logger.info(
            "notification_dispatched",
            extra={"title": payload.title, "channels": len(channels), "delivered": delivered},
        )
        return delivered


def _redact(webhook_url: str) -> str:
    """Drop the webhook token (last path segment) before logging."""
    return webhook_url.rsplit("/", 1)[0]
