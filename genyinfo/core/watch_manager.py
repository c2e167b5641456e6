"""Filesystem watch subscriptions, grouped by purpose."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Protocol

from loguru import logger

from genyinfo.models.watch import WatchEvent

WatchHandler = Callable[[WatchEvent], Awaitable[None]]


class WatchClient(Protocol):
    """
    Transport to a filesystem watch service.

    ``subscribe_watch`` yields ``{"type": "subscribe", "subscriptionId": ...}``
    once, then ``{"type": "event", "message": {file, filename, action}}``
    messages until the subscription is cancelled via ``unsubscribe_watch``.
    """

    def subscribe_watch(self, request: dict[str, Any]) -> AsyncIterator[dict[str, Any]]: ...

    async def unsubscribe_watch(self, sid: str) -> None: ...


class WatchSubscriptionManager:
    """
    Tracks watch subscription ids per group and routes events to handlers.

    Each watched path gets one consumer task.  A task whose acknowledgment
    never arrives stays tracked as pending so that ``unwatch()`` can still
    cancel it.
    """

    def __init__(self, client: WatchClient, ack_timeout: float = 5.0) -> None:
        self._client = client
        self._ack_timeout = ack_timeout
        self._subscriptions: dict[str, dict[str, asyncio.Task[None]]] = {}
        self._pending: dict[str, set[asyncio.Task[None]]] = {}

    # ── Introspection ──

    @property
    def groups(self) -> list[str]:
        return sorted(set(self._subscriptions) | set(self._pending))

    def subscriptions(self, group: str) -> list[str]:
        return list(self._subscriptions.get(group, {}))

    def pending(self, group: str) -> int:
        return len(self._pending.get(group, ()))

    # ── Subscribe / unsubscribe ──

    async def watch(
        self,
        group: str,
        paths: Iterable[str | Path],
        handler: WatchHandler,
        depth: int | None = None,
    ) -> list[str]:
        """Subscribe every path under ``group``; returns the acknowledged ids."""
        loop = asyncio.get_running_loop()
        waiting: list[tuple[str, asyncio.Future[str | None]]] = []

        for path in paths:
            request: dict[str, Any] = {"operation": "subscribe", "path": str(path)}
            if depth:
                request["recursive"] = True
                request["depth"] = depth
            acked: asyncio.Future[str | None] = loop.create_future()
            task = loop.create_task(self._consume(group, request, handler, acked))
            self._pending.setdefault(group, set()).add(task)
            waiting.append((str(path), acked))

        sids: list[str] = []
        for path, acked in waiting:
            try:
                sid = await asyncio.wait_for(asyncio.shield(acked), self._ack_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Watch on {path} not acknowledged within {self._ack_timeout}s")
                continue
            if sid is None:
                logger.warning(f"Unable to watch {path}")
                continue
            logger.debug(f"Watching {path} ({group}, sid={sid})")
            sids.append(sid)
        return sids

    async def unwatch(self, group: str, sids: Iterable[str] | None = None) -> None:
        """Unsubscribe ``sids`` (default: everything) in ``group``."""
        subs = self._subscriptions.get(group, {})
        targets = list(subs) if sids is None else [s for s in sids if s in subs]
        cancelled: list[asyncio.Task[None]] = []

        for sid in targets:
            try:
                await self._client.unsubscribe_watch(sid)
            except Exception as e:
                logger.warning(f"Failed to unsubscribe {sid}: {e}")
            task = subs.pop(sid, None)
            if task is not None and not task.done():
                task.cancel()
                cancelled.append(task)

        if sids is None:
            for task in self._pending.pop(group, set()):
                if not task.done():
                    task.cancel()
                    cancelled.append(task)

        if cancelled:
            await asyncio.gather(*cancelled, return_exceptions=True)
        self._drop_empty(group)

    async def close(self) -> None:
        for group in self.groups:
            await self.unwatch(group)

    # ── Internal ──

    async def _consume(
        self,
        group: str,
        request: dict[str, Any],
        handler: WatchHandler,
        acked: asyncio.Future[str | None],
    ) -> None:
        task = asyncio.current_task()
        sid: str | None = None
        try:
            async for message in self._client.subscribe_watch(request):
                kind = message.get("type")
                if kind == "subscribe":
                    sid = str(message.get("subscriptionId") or message.get("sid"))
                    self._pending.get(group, set()).discard(task)
                    self._subscriptions.setdefault(group, {})[sid] = task
                    if not acked.done():
                        acked.set_result(sid)
                elif kind == "event":
                    await self._dispatch(handler, message.get("message") or {})
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Watch on {request['path']} failed: {e}")
        finally:
            if not acked.done():
                acked.set_result(None)
            self._forget(group, sid, task)

    async def _dispatch(self, handler: WatchHandler, message: dict[str, Any]) -> None:
        try:
            event = WatchEvent.from_message(message)
        except (KeyError, ValueError) as e:
            logger.debug(f"Ignoring malformed watch message {message!r}: {e}")
            return
        try:
            await handler(event)
        except Exception:
            logger.exception(f"Error in watch handler for {event.file}")

    def _forget(self, group: str, sid: str | None, task: asyncio.Task[Any] | None) -> None:
        if sid is not None and self._subscriptions.get(group, {}).get(sid) is task:
            del self._subscriptions[group][sid]
        self._pending.get(group, set()).discard(task)
        self._drop_empty(group)

    def _drop_empty(self, group: str) -> None:
        if group in self._subscriptions and not self._subscriptions[group]:
            del self._subscriptions[group]
        if group in self._pending and not self._pending[group]:
            del self._pending[group]
