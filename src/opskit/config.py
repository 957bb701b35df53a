from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from opskit.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_MACKEREL_API_BASE = "https://api.mackerelio.com"
DEFAULT_GITHUB_API_BASE = "https://api.github.com"


def _env_str(name: str) -> Optional[str]:
    """Return a stripped env var, treating empty strings as unset."""
    raw = os.getenv(name)
    if raw is None:
        return None
    val = raw.strip()
    return val or None


def _env_int(name: str, default: int) -> int:
    """Parse an int env var with a default."""
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("Ignoring non-integer %s; using default %s", name, default)
        return int(default)


def _env_float(name: str, default: float) -> float:
    """Parse a float env var with a default."""
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("Ignoring non-numeric %s; using default %s", name, default)
        return float(default)


def _clamp_int(v: int, lo: int, hi: int) -> int:
    """Clamp integer to [lo, hi]."""
    return max(lo, min(hi, int(v)))


def _clamp_float(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(v)))


# PUBLIC_INTERFACE
def mask_secret(secret: Optional[str]) -> str:
    """Mask a credential for logs, keeping only its last 4 characters."""
    if not secret:
        return "<unset>"
    if len(secret) <= 4:
        return "***"
    return "***" + secret[-4:]


@dataclass(frozen=True)
class OpskitConfig:
    """Runtime configuration loaded from env vars."""

    mackerel_api_key: Optional[str]
    github_token: Optional[str]

    mackerel_api_base: str
    github_api_base: str

    http_timeout_sec: float

    # Alert history pagination pacing and hard stop.
    mackerel_page_delay_sec: float
    mackerel_max_alert_pages: int

    # Rounding applied to MTTR minutes.
    alert_stats_fraction_digits: int

    log_level: str

    # PUBLIC_INTERFACE
    def require_mackerel_api_key(self) -> str:
        """Return the Mackerel API key or raise ConfigError."""
        if not self.mackerel_api_key:
            raise ConfigError("MACKEREL_APIKEY environment variable is not set")
        return self.mackerel_api_key

    # PUBLIC_INTERFACE
    def require_github_token(self) -> str:
        """Return the GitHub token or raise ConfigError."""
        if not self.github_token:
            raise ConfigError("GITHUB_TOKEN environment variable is not set")
        return self.github_token


# PUBLIC_INTERFACE
def load_config() -> OpskitConfig:
    """Load OpskitConfig from env vars, applying defaults and sane bounds."""
    mackerel_api_base = (_env_str("MACKEREL_API_BASE") or DEFAULT_MACKEREL_API_BASE).rstrip("/")
    github_api_base = (_env_str("GITHUB_API_BASE") or DEFAULT_GITHUB_API_BASE).rstrip("/")

    http_timeout = _env_float("HTTP_TIMEOUT_SEC", 30.0)
    page_delay = _env_float("MACKEREL_PAGE_DELAY_SEC", 1.0)
    max_pages = _env_int("MACKEREL_MAX_ALERT_PAGES", 1000)
    fraction_digits = _env_int("ALERT_STATS_FRACTION_DIGITS", 0)

    http_timeout = _clamp_float(http_timeout, 1.0, 300.0)
    # 0 disables the delay (tests); the upper bound keeps typos from stalling a run.
    page_delay = _clamp_float(page_delay, 0.0, 60.0)
    max_pages = _clamp_int(max_pages, 1, 100000)
    fraction_digits = _clamp_int(fraction_digits, 0, 6)

    log_level = (_env_str("LOG_LEVEL") or "INFO").upper()

    return OpskitConfig(
        mackerel_api_key=_env_str("MACKEREL_APIKEY"),
        github_token=_env_str("GITHUB_TOKEN"),
        mackerel_api_base=mackerel_api_base,
        github_api_base=github_api_base,
        http_timeout_sec=http_timeout,
        mackerel_page_delay_sec=page_delay,
        mackerel_max_alert_pages=max_pages,
        alert_stats_fraction_digits=fraction_digits,
        log_level=log_level,
    )
