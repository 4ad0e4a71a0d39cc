"""
Explicit wiring of the services for one salon.

Nothing here is a module-level singleton: the app (and each test) builds its
own container.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import tzinfo
from typing import Mapping, Optional

import httpx

from salon_recovery.adapters import get_adapter, settings_from_config
from salon_recovery.adapters.common import BookingPlatformAdapter
from salon_recovery.delivery import LoggingMessageSender, MessageSender
from salon_recovery.errors import UnsupportedPlatformError
from salon_recovery.events import BookingEventDispatcher
from salon_recovery.followups import FollowUpScheduler
from salon_recovery.logging_config import get_logger
from salon_recovery.message_store import ScheduledMessageStore
from salon_recovery.models import Salon
from salon_recovery.rebooking import RebookingEngine
from salon_recovery.templates import TemplateCatalog
from salon_recovery.timeutils import Clock, SystemClock, resolve_timezone

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    config: object
    salon: Salon
    tz: tzinfo
    clock: Clock
    rng: random.Random
    adapters: dict[str, BookingPlatformAdapter]
    engines: dict[str, RebookingEngine]
    catalog: TemplateCatalog
    scheduler: FollowUpScheduler
    store: ScheduledMessageStore
    sender: MessageSender
    dispatcher: BookingEventDispatcher

    def engine_for(self, platform: str) -> RebookingEngine:
        return self.dispatcher.engine_for((platform or "").lower())

    async def aclose(self) -> None:
        for adapter in self.adapters.values():
            await adapter.aclose()


def build_container(
    config,
    clock: Optional[Clock] = None,
    rng: Optional[random.Random] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    adapters: Optional[Mapping[str, BookingPlatformAdapter]] = None,
    sender: Optional[MessageSender] = None,
) -> ServiceContainer:
    """
    Build every service from the application config.

    ``adapters`` replaces the configured platform adapters entirely (tests
    pass fakes here); otherwise one adapter is built per configured platform.
    """
    tz = resolve_timezone(config.SALON_TIMEZONE)
    clock = clock or SystemClock(tz)
    rng = rng or random.Random()

    if adapters is None:
        adapters = {}
        for platform in config.configured_platforms():
            try:
                adapters[platform] = get_adapter(
                    platform,
                    settings_from_config(platform, config),
                    client=http_client,
                    rng=rng,
                    clock=clock,
                )
            except (ValueError, UnsupportedPlatformError) as e:
                logger.warning("platform_adapter_skipped", platform=platform, error=str(e))
    adapters = dict(adapters)

    engines = {
        platform: RebookingEngine(
            adapter,
            clock,
            tz,
            max_suggestions=config.REBOOKING_MAX_SUGGESTIONS,
            days_ahead=config.REBOOKING_DAYS_AHEAD,
            prefer_same_provider=config.REBOOKING_PREFER_SAME_PROVIDER,
        )
        for platform, adapter in adapters.items()
    }

    salon = Salon(id=None, name=config.SALON_NAME)
    catalog = TemplateCatalog.from_file(config.MESSAGE_TEMPLATES_PATH)
    scheduler = FollowUpScheduler(
        catalog,
        clock,
        tz,
        rng=rng,
        days_since_from_send_time=config.REMINDER_DAYS_SINCE_FROM_SEND_TIME,
    )
    store = ScheduledMessageStore(tz)
    dispatcher = BookingEventDispatcher(
        engines,
        scheduler,
        store,
        salon,
        max_suggestions=config.REBOOKING_MAX_SUGGESTIONS,
    )

    logger.info("services_initialized", platforms=sorted(adapters), salon=salon.name, timezone=str(tz))
    return ServiceContainer(
        config=config,
        salon=salon,
        tz=tz,
        clock=clock,
        rng=rng,
        adapters=adapters,
        engines=engines,
        catalog=catalog,
        scheduler=scheduler,
        store=store,
        sender=sender or LoggingMessageSender(),
        dispatcher=dispatcher,
    )
