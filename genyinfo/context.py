"""Application context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from genyinfo.config import Config
    from genyinfo.core.fswatch import LocalWatchClient
    from genyinfo.core.orchestrator import GenymotionInfoService
    from genyinfo.core.watch_manager import WatchSubscriptionManager


@dataclass
class AppContext:
    """
    Central service container.

    The watch client is owned here rather than by the service so the host
    can share one watch transport between several services.
    """

    config: Config
    watch_client: LocalWatchClient
    watch_manager: WatchSubscriptionManager
    info_service: GenymotionInfoService

    async def close(self) -> None:
        await self.info_service.deactivate()
        await self.watch_manager.close()
        await self.watch_client.close()
