from __future__ import annotations

from typing import Optional


class OpskitError(Exception):
    """Base class for errors surfaced by the opskit commands."""


class ConfigError(OpskitError):
    """Required configuration (env var or flag) is missing or conflicting."""


class InputError(OpskitError):
    """User-provided input could not be parsed or does not resolve."""


class UpstreamError(OpskitError):
    """A remote API answered with a non-2xx status or an error payload."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.method = method
        self.url = url
        self.body = body

    @property
    def not_found(self) -> bool:
        return self.status_code == 404
