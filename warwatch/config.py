"""Warwatch configuration loaded from environment variables."""

import logging
import os
import sys

from pythonjsonlogger import jsonlogger

# ---------------------------------------------------------------------------
# ClickHouse connection
# ---------------------------------------------------------------------------
CLICKHOUSE_HOST = os.environ.get("CLICKHOUSE_HOST", "localhost")
CLICKHOUSE_PORT = int(os.environ.get("CLICKHOUSE_PORT", "8443"))
CLICKHOUSE_USER = os.environ.get("CLICKHOUSE_USER", "default")
CLICKHOUSE_PASSWORD = os.environ.get("CLICKHOUSE_PASSWORD", "")
CLICKHOUSE_DATABASE = os.environ.get("CLICKHOUSE_DATABASE", "warwatch")
CLICKHOUSE_SECURE = os.environ.get("CLICKHOUSE_SECURE", "true").lower() == "true"

# ---------------------------------------------------------------------------
# EVE Online ESI / SSO
# ---------------------------------------------------------------------------
ESI_API_URL = os.environ.get("ESI_API_URL", "https://esi.evetech.net/latest")
ESI_DATASOURCE = os.environ.get("ESI_DATASOURCE", "tranquility")
EVE_SSO_TOKEN_URL = "https://login.eveonline.com/v2/oauth/token"
EVE_CLIENT_ID = os.environ.get("EVE_CLIENT_ID", "")
EVE_CLIENT_SECRET = os.environ.get("EVE_CLIENT_SECRET", "")
EVE_REFRESH_TOKEN = os.environ.get("EVE_REFRESH_TOKEN", "")
ESI_USER_AGENT = os.environ.get("ESI_USER_AGENT", "warwatch/0.1")
TOKEN_EXPIRY_MARGIN = 60         # Refresh access tokens this many seconds early

# ---------------------------------------------------------------------------
# Public link / image hosts
# ---------------------------------------------------------------------------
IMAGE_SERVER_URL = "https://images.evetech.net"
DOTLAN_URL = "https://evemaps.dotlan.net"

# ---------------------------------------------------------------------------
# War sync
# ---------------------------------------------------------------------------
WAR_SYNC_INTERVAL = int(os.environ.get("WAR_SYNC_INTERVAL", "600"))   # 10 minutes
WAR_DETAIL_PACING = float(os.environ.get("WAR_DETAIL_PACING", "0.06"))  # Seconds between new war fetches
ESI_MAX_WAR_PAGES = int(os.environ.get("ESI_MAX_WAR_PAGES", "1"))     # /wars/ returns 2000 ids per page
HTTP_TIMEOUT = 30.0              # httpx timeout in seconds

# ---------------------------------------------------------------------------
# Tracked organizations and subscriber channels
# ---------------------------------------------------------------------------
ORGANIZATIONS_FILE = os.environ.get("ORGANIZATIONS_FILE", "organizations.json")
DISCORD_WEBHOOK_URLS = [
    url.strip()
    for url in os.environ.get("DISCORD_WEBHOOK_URLS", "").split(",")
    if url.strip()
]
DISCORD_USERNAME = os.environ.get("DISCORD_USERNAME", "Warwatch")

# ---------------------------------------------------------------------------
# Writer settings
# ---------------------------------------------------------------------------
WRITER_MAX_RETRIES = 3
WRITER_BASE_BACKOFF = 1.0        # Seconds, doubles per retry

# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------
HEALTH_CHECK_PORT = int(os.environ.get("HEALTH_CHECK_PORT", "8080"))

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def setup_logging() -> None:
    """Configure structured JSON logging."""
    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(LOG_LEVEL)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("clickhouse_connect").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
