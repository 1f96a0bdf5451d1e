"""Exception hierarchy shared by the ESI client, store and war sync job."""

from __future__ import annotations


class WarwatchError(Exception):
    """Base class for all warwatch errors."""


class UpstreamError(WarwatchError):
    """ESI (or SSO) request failed: network error, auth failure or bad status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFound(UpstreamError):
    """ESI answered 404 for the requested entity."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404)


class FatalCycleError(WarwatchError):
    """The candidate war-id fetch failed; the sync cycle was aborted."""


class ItemError(WarwatchError):
    """Processing of one war, or one organization/war pair, failed."""

    def __init__(
        self,
        message: str,
        *,
        war_id: int | None = None,
        organization_id: int | None = None,
    ) -> None:
        super().__init__(message)
        self.war_id = war_id
        self.organization_id = organization_id


class ResolutionError(WarwatchError):
    """A name lookup failed while compiling a notification."""

    def __init__(self, message: str, party: object = None) -> None:
        super().__init__(message)
        self.party = party
