"""Upstream exception definitions."""

from __future__ import annotations


class OsuNotFoundError(Exception):
    """Raised when the upstream confirms an entity does not exist."""


class OsuServiceError(Exception):
    """Generic wrapper for transient upstream failures."""


class OsuRateLimitedError(OsuServiceError):
    """Raised when the upstream rejects a request with HTTP 429."""


__all__ = [
    "OsuNotFoundError",
    "OsuRateLimitedError",
    "OsuServiceError",
]
