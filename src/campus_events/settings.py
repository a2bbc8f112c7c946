"""Typed configuration for campus-events.

Reads a single ``CAMPUS_EVENTS`` dict from Django settings and exposes it as
composed, frozen dataclasses with sensible defaults.

Usage::

    from campus_events.settings import get_config

    config = get_config()
    config.razorpay.key_id
    config.rate_limit.max_attempts
    config.currency
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field

from django.conf import settings
from django.test.signals import setting_changed


@dataclass(frozen=True, slots=True)
class RazorpayConfig:
    """Razorpay payment gateway configuration."""

    key_id: str | None = None
    key_secret: str | None = None
    webhook_secret: str | None = None
    api_base_url: str = "https://api.razorpay.com/v1"
    timeout: float = 10.0


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Fixed-window throttling of registration attempts."""

    max_attempts: int = 5
    window_seconds: int = 60
    cache_alias: str = "default"


@dataclass(frozen=True, slots=True)
class FeaturesConfig:
    """Feature toggles for the registration workflow.

    All features are enabled by default. With ``payments_enabled`` off, every
    registration is confirmed synchronously regardless of the event price.
    """

    registration_enabled: bool = True
    payments_enabled: bool = True
    check_in_enabled: bool = True


@dataclass(frozen=True, slots=True)
class CampusEventsConfig:
    """Top-level campus-events configuration."""

    razorpay: RazorpayConfig = field(default_factory=RazorpayConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    features: FeaturesConfig = field(default_factory=FeaturesConfig)
    currency: str = "INR"
    entry_code_length: int = 10


_SECTIONS: tuple[str, ...] = ("razorpay", "rate_limit", "features")


@functools.lru_cache(maxsize=1)
def get_config() -> CampusEventsConfig:
    """Build and return the campus-events configuration.

    Reads ``settings.CAMPUS_EVENTS`` (a plain dict) and returns a frozen
    :class:`CampusEventsConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "CAMPUS_EVENTS", {})
    if not isinstance(raw, Mapping):
        msg = "CAMPUS_EVENTS must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    sections: dict[str, dict[str, object]] = {}
    for name in _SECTIONS:
        section = raw_data.pop(name, {})
        if not isinstance(section, Mapping):
            msg = f"CAMPUS_EVENTS['{name}'] must be a mapping (dict-like object)"
            raise TypeError(msg)
        sections[name] = dict(section)

    config = CampusEventsConfig(
        razorpay=RazorpayConfig(**sections["razorpay"]),
        rate_limit=RateLimitConfig(**sections["rate_limit"]),
        features=FeaturesConfig(**sections["features"]),
        **raw_data,
    )
    _validate_config(config)
    return config


def _validate_config(config: CampusEventsConfig) -> None:
    """Validate high-impact configuration values with clear error messages."""
    if not isinstance(config.currency, str) or not config.currency.strip():
        msg = "CAMPUS_EVENTS['currency'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.entry_code_length, int) or not 6 <= config.entry_code_length <= 32:
        msg = "CAMPUS_EVENTS['entry_code_length'] must be an integer between 6 and 32"
        raise ValueError(msg)
    if not isinstance(config.rate_limit.max_attempts, int) or config.rate_limit.max_attempts <= 0:
        msg = "CAMPUS_EVENTS['rate_limit']['max_attempts'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.rate_limit.window_seconds, int) or config.rate_limit.window_seconds <= 0:
        msg = "CAMPUS_EVENTS['rate_limit']['window_seconds'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.razorpay.timeout, (int, float)) or config.razorpay.timeout <= 0:
        msg = "CAMPUS_EVENTS['razorpay']['timeout'] must be a positive number"
        raise ValueError(msg)
    for name in ("registration_enabled", "payments_enabled", "check_in_enabled"):
        if not isinstance(getattr(config.features, name), bool):
            msg = f"CAMPUS_EVENTS['features']['{name}'] must be a boolean"
            raise TypeError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "CAMPUS_EVENTS":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="campus_events.settings.clear_config_cache")
