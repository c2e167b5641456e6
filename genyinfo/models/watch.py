"""Filesystem watch event model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any


class WatchAction(StrEnum):
    ADD = "add"
    CHANGE = "change"
    DELETE = "delete"


@dataclass(frozen=True)
class WatchEvent:
    """A single add/change/delete notification from the watch transport."""

    file: Path
    filename: str
    action: WatchAction

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> WatchEvent:
        """Build an event from a ``{file, filename, action}`` transport message."""
        file = Path(message["file"])
        return cls(
            file=file,
            filename=message.get("filename") or file.name,
            action=WatchAction(message["action"]),
        )
