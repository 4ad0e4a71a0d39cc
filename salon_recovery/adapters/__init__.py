"""
Booking platform adapters and the adapter-selection boundary.
"""

from __future__ import annotations

import random
from typing import Optional

import httpx

from salon_recovery.adapters.common import BookingPlatformAdapter, PlatformSettings
from salon_recovery.adapters.mindbody import MindbodyAdapter
from salon_recovery.adapters.phorest import PhorestAdapter
from salon_recovery.adapters.sandbox import SandboxAdapter
from salon_recovery.adapters.vagaro import VagaroAdapter
from salon_recovery.errors import UnsupportedPlatformError
from salon_recovery.timeutils import Clock

ADAPTER_CLASSES = {
    "vagaro": VagaroAdapter,
    "mindbody": MindbodyAdapter,
    "phorest": PhorestAdapter,
}

SUPPORTED_PLATFORMS = tuple(ADAPTER_CLASSES) + ("sandbox",)


def settings_from_config(platform: str, config) -> PlatformSettings:
    """Build the per-platform settings object from the application config."""
    platform = platform.lower()
    common = {
        "platform_id": platform,
        "timeout_seconds": config.ADAPTER_TIMEOUT_SECONDS,
        "strict_status_mapping": config.STRICT_STATUS_MAPPING,
        "timezone": config.SALON_TIMEZONE or "UTC",
    }

    if platform == "vagaro":
        return PlatformSettings(
            base_url=config.VAGARO_BASE_URL,
            credentials={
                "client_id": config.VAGARO_CLIENT_ID,
                "client_secret": config.VAGARO_CLIENT_SECRET,
            },
            **common,
        )
    if platform == "mindbody":
        return PlatformSettings(
            base_url=config.MINDBODY_BASE_URL,
            credentials={
                "api_key": config.MINDBODY_API_KEY,
                "site_id": config.MINDBODY_SITE_ID,
                "username": config.MINDBODY_USERNAME,
                "password": config.MINDBODY_PASSWORD,
            },
            **common,
        )
    if platform == "phorest":
        return PlatformSettings(
            base_url=config.PHOREST_BASE_URL,
            credentials={
                "client_id": config.PHOREST_CLIENT_ID,
                "client_secret": config.PHOREST_CLIENT_SECRET,
                "branch_id": config.PHOREST_BRANCH_ID,
            },
            **common,
        )
    if platform == "sandbox":
        return PlatformSettings(**common)
    raise UnsupportedPlatformError(platform)


def get_adapter(
    platform: str,
    settings: Optional[PlatformSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
    rng: Optional[random.Random] = None,
    clock: Optional[Clock] = None,
) -> BookingPlatformAdapter:
    """
    Construct the adapter for a platform identifier.

    Raises:
        UnsupportedPlatformError: unknown platform identifier
        ValueError: required credentials missing from ``settings``
    """
    key = (platform or "").lower()
    if key == "sandbox":
        return SandboxAdapter(settings, rng=rng, clock=clock)

    adapter_class = ADAPTER_CLASSES.get(key)
    if adapter_class is None:
        raise UnsupportedPlatformError(platform)
    if settings is None:
        settings = PlatformSettings(platform_id=key)
    return adapter_class(settings, client)


__all__ = [
    "BookingPlatformAdapter",
    "PlatformSettings",
    "SUPPORTED_PLATFORMS",
    "VagaroAdapter",
    "MindbodyAdapter",
    "PhorestAdapter",
    "SandboxAdapter",
    "get_adapter",
    "settings_from_config",
]
