"""Installation record model."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class InstallationRecord:
    """
    A validated product installation.

    Only validators build these, after every executable and the home
    directory were found, so a record never describes a partial install.
    """

    install_path: Path
    executables: dict[str, Path] = field(default_factory=dict)
    home: Path | None = None
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.install_path),
            "executables": {name: str(p) for name, p in self.executables.items()},
            "home": str(self.home) if self.home else None,
            "version": self.version,
        }
