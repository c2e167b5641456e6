"""Single-writer store for the aggregated state, publishing versioned diffs."""

from __future__ import annotations

from dataclasses import fields, replace
from typing import Any, Callable

from loguru import logger

from genyinfo.models.state import AggregatedState, StateDiff

DiffHandler = Callable[[StateDiff], None]

_FIELD_NAMES = frozenset(f.name for f in fields(AggregatedState))


class StateStore:
    """
    Holds the current AggregatedState and notifies subscribers of changes.

    The state object is immutable: ``update()`` swaps in a new snapshot and
    hands subscribers a StateDiff.  Subscribers are called synchronously;
    a failing handler is logged and does not stop the others.
    """

    def __init__(self, initial: AggregatedState | None = None) -> None:
        self._state = initial or AggregatedState()
        self._version = 0
        self._subscribers: list[DiffHandler] = []

    @property
    def snapshot(self) -> AggregatedState:
        return self._state

    @property
    def version(self) -> int:
        return self._version

    def subscribe(self, handler: DiffHandler) -> Callable[[], None]:
        """Register ``handler``; returns a callable that unsubscribes it."""
        self._subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return unsubscribe

    def update(self, **changes: Any) -> StateDiff | None:
        """Replace the given fields; returns the diff, or None if nothing changed."""
        unknown = set(changes) - _FIELD_NAMES
        if unknown:
            raise TypeError(f"Unknown state field(s): {', '.join(sorted(unknown))}")

        old = self._state
        diff_fields = {
            name: (getattr(old, name), value)
            for name, value in changes.items()
            if getattr(old, name) != value
        }
        if not diff_fields:
            return None

        self._state = replace(old, **{name: new for name, (_, new) in diff_fields.items()})
        self._version += 1
        diff = StateDiff(version=self._version, changes=diff_fields, state=self._state)
        logger.debug(f"State v{self._version}: {', '.join(diff_fields)} changed")
        self._publish(diff)
        return diff

    def _publish(self, diff: StateDiff) -> None:
        for handler in list(self._subscribers):
            try:
                handler(diff)
            except Exception:
                logger.exception(f"Error in state handler {getattr(handler, '__name__', handler)}")
