"""Detection engine — scans candidate directories and reports installation changes."""

from __future__ import annotations

import asyncio
import os
from enum import StrEnum
from pathlib import Path
from typing import Any, Awaitable, Callable

from loguru import logger

from genyinfo.core.debounce import Debouncer
from genyinfo.core.path_resolver import unique_paths
from genyinfo.core.watch_manager import WatchSubscriptionManager
from genyinfo.models.watch import WatchEvent

CheckDir = Callable[[Path, Any], Awaitable[Any]]
ResultHandler = Callable[[Any], Awaitable[None]]

_UNSET: Any = object()


class EngineState(StrEnum):
    IDLE = "idle"
    SCANNING = "scanning"
    DETECTED = "detected"
    NOT_DETECTED = "not_detected"
    WATCHING = "watching"
    STOPPED = "stopped"


def find_candidates(root: Path, exe: str, depth: int) -> list[Path]:
    """
    Directories at most ``depth`` levels below ``root`` that contain ``exe``.

    Breadth-first, so shallower matches come first; unreadable directories
    are skipped.
    """
    matches: list[Path] = []
    level = [root] if root.is_dir() else []
    for current_depth in range(depth + 1):
        next_level: list[Path] = []
        for directory in level:
            if (directory / exe).is_file():
                matches.append(directory)
            if current_depth == depth:
                continue
            try:
                with os.scandir(directory) as it:
                    next_level.extend(
                        Path(entry.path)
                        for entry in sorted(it, key=lambda e: e.name)
                        if entry.is_dir(follow_symlinks=True)
                    )
            except OSError:
                continue
        level = next_level
    return matches


class DetectEngine:
    """
    Finds an installation by walking candidate paths and applying ``check_dir``.

    Scans run on ``start()``, on ``rescan()``, on a periodic timer and, when
    ``watch`` is enabled, after filesystem changes under the candidate paths.
    Subscribers hear about a result only when it differs from the last one.
    Subscribers are awaited in order before ``rescan()`` returns, so a
    handler can safely drive another engine's rescan.
    """

    def __init__(
        self,
        *,
        name: str,
        check_dir: CheckDir,
        exe: str,
        paths: list[str | Path],
        depth: int = 1,
        multiple: bool = False,
        redetect: bool = True,
        refresh_interval: float = 15.0,
        watch: bool = False,
        watch_manager: WatchSubscriptionManager | None = None,
        watch_debounce: float = 1.0,
    ) -> None:
        self.name = name
        self._check_dir = check_dir
        self._exe = exe
        self._paths = list(paths)
        self._depth = depth
        self._multiple = multiple
        self._redetect = redetect
        self._refresh_interval = refresh_interval
        self._watch = watch
        self._watch_manager = watch_manager

        self._state = EngineState.IDLE
        self._results: Any = [] if multiple else None
        self._context: Any = None
        self._handlers: list[ResultHandler] = []
        self._waiters: list[asyncio.Future[Any]] = []
        self._lock = asyncio.Lock()
        self._timer: asyncio.Task[None] | None = None
        self._watched: list[Path] = []
        self._rescan_soon = Debouncer(watch_debounce, self._rescan_from_watch)

    # ── Read-only access ──

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def results(self) -> Any:
        return self._results

    @property
    def stopped(self) -> bool:
        return self._state is EngineState.STOPPED

    @property
    def detected(self) -> bool:
        return bool(self._results)

    @property
    def _armed(self) -> bool:
        return self._timer is not None or bool(self._watched)

    @property
    def watch_group(self) -> str:
        return f"{self.name}:paths"

    # ── Result delivery ──

    def subscribe(self, handler: ResultHandler) -> Callable[[], None]:
        """Register an async result handler; returns a callable that removes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def next_result(self) -> Any:
        """Wait for the next emitted (i.e. changed) result."""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        return await future

    # ── Lifecycle ──

    async def start(self) -> Any:
        """Run the first scan, then arm the timer and path watches."""
        if self.stopped:
            raise RuntimeError(f"{self.name} engine has been stopped")
        result = await self.rescan()
        if self.stopped:
            return result
        if self._redetect and self._refresh_interval > 0:
            self._timer = asyncio.get_running_loop().create_task(self._refresh_loop())
        if self._watch and self._watch_manager is not None:
            await self._watch_paths()
        if self._armed and not self.stopped:
            self._state = EngineState.WATCHING
        return result

    async def rescan(self, context: Any = _UNSET) -> Any:
        """Scan now; ``context`` is kept and forwarded to ``check_dir`` from here on."""
        if context is not _UNSET:
            self._context = context
        async with self._lock:
            if self.stopped:
                return self._results
            await self._scan()
        return self._results

    def replace_results(self, results: Any) -> None:
        """
        Adopt ``results`` as the last known result without notifying anyone.

        For owners that patch the detected value themselves; the next scan
        is compared against the patched value and emits if it differs.
        """
        if not self.stopped:
            self._results = results

    async def stop(self) -> None:
        """Stop timers and watches; safe to call more than once."""
        if self.stopped:
            return
        self._state = EngineState.STOPPED
        self._rescan_soon.cancel()
        timer, self._timer = self._timer, None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()
            await asyncio.gather(timer, return_exceptions=True)
        if self._watch_manager is not None and self._watched:
            await self._watch_manager.unwatch(self.watch_group)
            self._watched = []
        for future in self._waiters:
            future.cancel()
        self._waiters.clear()
        logger.debug(f"{self.name}: stopped")

    # ── Scanning ──

    def candidate_paths(self) -> list[Path]:
        return unique_paths(self._paths)

    async def _scan(self) -> None:
        self._state = EngineState.SCANNING
        found: list[Any] = []

        for root in self.candidate_paths():
            dirs = await asyncio.to_thread(find_candidates, root, self._exe, self._depth)
            if self.stopped:
                return
            for directory in dirs:
                result = await self._accept(directory, self._context)
                if self.stopped:
                    return
                if result is None:
                    continue
                found.append(result)
                if not self._multiple:
                    break
            if found and not self._multiple:
                break

        results = found if self._multiple else (found[0] if found else None)
        self._state = EngineState.DETECTED if found else EngineState.NOT_DETECTED
        if self._armed:
            self._state = EngineState.WATCHING

        if results == self._results:
            logger.debug(f"{self.name}: no change")
            return
        self._results = results
        logger.info(f"{self.name}: {'detected' if found else 'not detected'}")
        await self._emit(results)

    async def _accept(self, directory: Path, context: Any) -> Any | None:
        try:
            return await self._check_dir(directory, context)
        except Exception as e:
            logger.warning(f"{self.name}: error checking {directory}: {e}")
            return None

    async def _emit(self, results: Any) -> None:
        waiters, self._waiters = self._waiters, []
        for future in waiters:
            if not future.done():
                future.set_result(results)
        for handler in list(self._handlers):
            if self.stopped:
                return
            try:
                await handler(results)
            except Exception:
                logger.exception(f"{self.name}: error in results handler")

    # ── Re-detection ──

    async def _refresh_loop(self) -> None:
        while not self.stopped:
            await asyncio.sleep(self._refresh_interval)
            try:
                await self.rescan()
            except Exception as e:
                logger.error(f"{self.name}: periodic rescan failed: {e}")

    async def _watch_paths(self) -> None:
        roots = [p for p in self.candidate_paths() if p.is_dir()]
        if not roots:
            return
        try:
            await self._watch_manager.watch(
                self.watch_group, roots, self._on_path_event, depth=self._depth
            )
        except Exception as e:
            logger.warning(f"{self.name}: unable to watch search paths: {e}")
            return
        self._watched = roots

    async def _on_path_event(self, event: WatchEvent) -> None:
        if not self.stopped:
            self._rescan_soon.schedule()

    async def _rescan_from_watch(self) -> None:
        await self.rescan()
