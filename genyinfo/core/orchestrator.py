"""Genymotion info service — wires the VirtualBox and Genymotion detectors together."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from loguru import logger

from genyinfo.core.debounce import Debouncer
from genyinfo.core.detect_engine import DetectEngine
from genyinfo.core.state_store import DiffHandler, StateStore
from genyinfo.exceptions import CommandError
from genyinfo.models.emulator import Emulator, GenymotionInstall
from genyinfo.models.state import AggregatedState
from genyinfo.models.watch import WatchAction, WatchEvent
from genyinfo.plugins.base import ProductPlugin
from genyinfo.plugins.genymotion.emulators import enumerate_emulators
from genyinfo.plugins.genymotion.plugin import GenymotionPlugin
from genyinfo.plugins.virtualbox.plugin import VirtualBox, VirtualBoxPlugin

if TYPE_CHECKING:
    from genyinfo.config import Config
    from genyinfo.core.watch_manager import WatchSubscriptionManager

GENYMOTION_HOME = "genymotion:home"


class GenymotionInfoService:
    """
    Keeps an always-current picture of Genymotion, its emulators and VirtualBox.

    Data flow:
      VirtualBox engine results  → provider handle → Genymotion rescan
      Genymotion engine results  → state + watch on ``<home>/deployed``
      deployed add/change        → debounced full emulator re-enumeration
      deployed delete            → remove that one emulator by name

    The service is the only writer of the state store; hosts subscribe to
    its diffs.
    """

    def __init__(
        self,
        config: Config,
        watch_manager: WatchSubscriptionManager,
        genymotion: GenymotionPlugin | None = None,
        virtualbox: VirtualBoxPlugin | None = None,
        store: StateStore | None = None,
    ) -> None:
        self._config = config
        self._watch_manager = watch_manager
        self._genymotion = genymotion or GenymotionPlugin()
        self._virtualbox = virtualbox or VirtualBoxPlugin()
        self._store = store or StateStore()

        self._active = False
        self._provider: VirtualBox | None = None
        self._deployed_dir: Path | None = None
        self._emulator_refresh: Debouncer | None = None
        self.vbox_engine: DetectEngine | None = None
        self.geny_engine: DetectEngine | None = None

    # ── Host access ──

    @property
    def state(self) -> AggregatedState:
        return self._store.snapshot

    @property
    def provider(self) -> VirtualBox | None:
        return self._provider

    @property
    def deployed_dir(self) -> Path | None:
        return self._deployed_dir

    def subscribe(self, handler: DiffHandler) -> Callable[[], None]:
        return self._store.subscribe(handler)

    # ── Lifecycle ──

    async def activate(self) -> None:
        """Build both engines and run their first scans, VirtualBox first."""
        self._config.validate()
        self._active = True
        self._emulator_refresh = Debouncer(self._config.emulator_debounce, self.refresh_emulators)

        self.vbox_engine = self._create_engine(self._virtualbox, self._config.virtualbox_path)
        self.geny_engine = self._create_engine(self._genymotion, self._config.genymotion_path)
        self.vbox_engine.subscribe(self._on_virtualbox_results)
        self.geny_engine.subscribe(self._on_genymotion_results)

        await self.vbox_engine.start()
        await self.geny_engine.start()
        logger.info(
            f"Genymotion info service active "
            f"(genymotion={'yes' if self.geny_engine.detected else 'no'}, "
            f"virtualbox={'yes' if self._provider else 'no'})"
        )

    async def deactivate(self) -> None:
        """Stop both engines and every watch; late results are dropped."""
        self._active = False
        if self._emulator_refresh is not None:
            self._emulator_refresh.cancel()
        if self.geny_engine is not None:
            await self.geny_engine.stop()
            self.geny_engine = None
        if self.vbox_engine is not None:
            await self.vbox_engine.stop()
            self.vbox_engine = None
        await self._unwatch_deployed()

    def _create_engine(self, plugin: ProductPlugin, override: Path | None) -> DetectEngine:
        paths: list[str | Path] = list(plugin.default_locations())
        if override is not None:
            paths.insert(0, override)
        return DetectEngine(
            name=plugin.name,
            check_dir=plugin.check_dir,
            exe=plugin.scan_executable,
            paths=paths,
            depth=int(self._config.get("detect.depth", 1)),
            multiple=False,
            redetect=True,
            refresh_interval=self._config.refresh_interval,
            watch=bool(self._config.get("detect.watch", True)),
            watch_manager=self._watch_manager,
        )

    # ── Engine results ──

    async def _on_virtualbox_results(self, vbox: VirtualBox | None) -> None:
        if not self._active:
            return
        self._provider = vbox
        self._store.update(provider=vbox)
        # Genymotion needs the current VirtualBox to enumerate its emulators
        await self.geny_engine.rescan(vbox)

    async def _on_genymotion_results(self, install: GenymotionInstall | None) -> None:
        if not self._active:
            return
        if install is None:
            await self._unwatch_deployed()
            self._store.update(
                emulators=(),
                executables={},
                home=None,
                path=None,
                version=None,
                provider=self._provider,
            )
            return

        record = install.record
        deployed = GenymotionPlugin.deployed_dir(record)
        if deployed != self._deployed_dir:
            await self._unwatch_deployed()
            await self._watch_deployed(deployed)

        self._store.update(
            emulators=install.emulators,
            executables=dict(record.executables),
            home=record.home,
            path=record.install_path,
            version=record.version,
            provider=self._provider,
        )

    # ── Deployed emulator directory ──

    async def _watch_deployed(self, deployed: Path | None) -> None:
        if deployed is None:
            return
        self._deployed_dir = deployed
        sids = await self._watch_manager.watch(
            GENYMOTION_HOME, [deployed], self._on_deployed_event, depth=1
        )
        if not sids:
            # drop the pending subscription; a late ack must not attach
            await self._unwatch_deployed()
            logger.warning(f"Not watching {deployed}; relying on periodic rescans")

    async def _unwatch_deployed(self) -> None:
        self._deployed_dir = None
        if GENYMOTION_HOME in self._watch_manager.groups:
            await self._watch_manager.unwatch(GENYMOTION_HOME)

    async def _on_deployed_event(self, event: WatchEvent) -> None:
        if not self._active:
            return
        if self._deployed_dir is None:
            logger.debug(f"Dropping {event.action} for {event.file}: deployed dir not watched")
            return
        if event.file.parent != self._deployed_dir:
            return
        if event.action in (WatchAction.ADD, WatchAction.CHANGE):
            self._emulator_refresh.schedule()
        elif event.action is WatchAction.DELETE:
            self.remove_emulator(event.filename)

    async def refresh_emulators(self) -> None:
        """Re-enumerate every emulator and replace the list wholesale.

        A failed enumeration keeps the current list.
        """
        if not self._active or self.geny_engine is None or not self.geny_engine.detected:
            return
        try:
            emulators = await enumerate_emulators(self._provider)
        except (CommandError, OSError) as e:
            logger.warning(f"Emulator refresh failed, keeping current list: {e}")
            return
        if not self._active:
            return
        self._set_emulators(emulators)

    def remove_emulator(self, name: str) -> bool:
        """Drop the first emulator called ``name``; no re-enumeration."""
        emulators = list(self._store.snapshot.emulators)
        for i, emulator in enumerate(emulators):
            if emulator.name == name:
                del emulators[i]
                self._set_emulators(tuple(emulators))
                logger.info(f"Emulator removed: {name}")
                return True
        return False

    def _set_emulators(self, emulators: tuple[Emulator, ...]) -> None:
        # the engine compares its next scan against what was published
        install = self.geny_engine.results if self.geny_engine is not None else None
        if isinstance(install, GenymotionInstall):
            self.geny_engine.replace_results(replace(install, emulators=emulators))
        self._store.update(emulators=emulators)
