"""Local filesystem watch service backed by watchdog."""

from __future__ import annotations

import asyncio
import itertools
from pathlib import Path
from typing import Any, AsyncIterator

from loguru import logger
from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from genyinfo.exceptions import SubscriptionFailure

_ACTIONS = {
    "created": "add",
    "modified": "change",
    "deleted": "delete",
}

_END = object()


class _QueueHandler(FileSystemEventHandler):
    """Forwards watchdog events from the observer thread into an asyncio queue."""

    def __init__(
        self,
        root: Path,
        depth: int | None,
        queue: asyncio.Queue[Any],
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._root = root
        self._depth = depth
        self._queue = queue
        self._loop = loop

    def on_any_event(self, event: FileSystemEvent) -> None:
        if isinstance(event, FileSystemMovedEvent):
            self._emit(event.src_path, "delete")
            self._emit(event.dest_path, "add")
            return
        action = _ACTIONS.get(event.event_type)
        if action is not None:
            self._emit(event.src_path, action)

    def _emit(self, raw: str | bytes, action: str) -> None:
        file = Path(raw.decode() if isinstance(raw, bytes) else raw)
        if not self._within_depth(file):
            return
        message = {
            "type": "event",
            "message": {"file": str(file), "filename": file.name, "action": action},
        }
        self._loop.call_soon_threadsafe(self._queue.put_nowait, message)

    def _within_depth(self, file: Path) -> bool:
        try:
            rel = file.relative_to(self._root)
        except ValueError:
            return False
        if self._depth is None:
            return True
        return len(rel.parts) <= self._depth


class LocalWatchClient:
    """
    WatchClient implementation running a watchdog Observer in-process.

    The observer thread starts with the first subscription; ``close()``
    ends every stream and stops it.
    """

    def __init__(self) -> None:
        self._observer: Any = None
        self._ids = itertools.count(1)
        self._streams: dict[str, tuple[ObservedWatch, asyncio.Queue[Any]]] = {}

    async def subscribe_watch(self, request: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        root = Path(request["path"])
        if not root.is_dir():
            raise SubscriptionFailure(f"Cannot watch {root}: not a directory")

        depth = request.get("depth") if request.get("recursive") else 1
        # direct children are visible without a recursive (per-subdirectory) watch
        recursive = depth is None or depth > 1
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[Any] = asyncio.Queue()

        observer = self._ensure_observer()
        try:
            watch = observer.schedule(
                _QueueHandler(root, depth, queue, loop), str(root), recursive=recursive
            )
        except OSError as e:
            raise SubscriptionFailure(f"Cannot watch {root}: {e}") from e

        sid = str(next(self._ids))
        self._streams[sid] = (watch, queue)
        logger.debug(f"fswatch: subscribed {root} (sid={sid}, depth={depth})")

        try:
            yield {"type": "subscribe", "subscriptionId": sid}
            while True:
                message = await queue.get()
                if message is _END:
                    return
                yield message
        finally:
            self._release(sid)

    async def unsubscribe_watch(self, sid: str) -> None:
        stream = self._streams.get(sid)
        if stream is None:
            return
        stream[1].put_nowait(_END)
        self._release(sid)

    async def close(self) -> None:
        for sid in list(self._streams):
            await self.unsubscribe_watch(sid)
        if self._observer is not None:
            observer, self._observer = self._observer, None
            observer.stop()
            await asyncio.to_thread(observer.join)

    def _ensure_observer(self) -> Any:
        if self._observer is None:
            self._observer = Observer()
            self._observer.daemon = True
            self._observer.start()
        return self._observer

    def _release(self, sid: str) -> None:
        stream = self._streams.pop(sid, None)
        if stream is None or self._observer is None:
            return
        try:
            self._observer.unschedule(stream[0])
        except (KeyError, ValueError):
            pass
        logger.debug(f"fswatch: unsubscribed sid={sid}")
