"""Aggregated state snapshot exposed to the host."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from genyinfo.models.emulator import Emulator

if TYPE_CHECKING:
    from genyinfo.plugins.virtualbox.plugin import VirtualBox


@dataclass(frozen=True)
class AggregatedState:
    """Immutable snapshot of everything known about Genymotion and VirtualBox."""

    emulators: tuple[Emulator, ...] = ()
    executables: dict[str, Path] = field(default_factory=dict)
    home: Path | None = None
    path: Path | None = None
    version: str | None = None
    provider: VirtualBox | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "emulators": [emu.to_dict() for emu in self.emulators],
            "executables": {name: str(p) for name, p in self.executables.items()},
            "home": str(self.home) if self.home else None,
            "path": str(self.path) if self.path else None,
            "version": self.version,
            "virtualbox": self.provider.to_dict() if self.provider else None,
        }


@dataclass(frozen=True)
class StateDiff:
    """Fields that changed between two snapshots, as ``name -> (old, new)``."""

    version: int
    changes: dict[str, tuple[Any, Any]]
    state: AggregatedState

    def __contains__(self, name: str) -> bool:
        return name in self.changes
