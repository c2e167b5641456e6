"""Product plugin base class — installation validation for one detectable product.

ProductPlugin → knows where a product lives, how to validate a candidate
                directory, and how to turn a candidate into a detection result
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from loguru import logger

from genyinfo.core.path_resolver import current_platform, exe_suffix, expand_path
from genyinfo.exceptions import InvalidArgument, PathNotFound, ValidationError
from genyinfo.models.installation import InstallationRecord


class ProductPlugin(ABC):
    """
    Abstract base for **product** plugins.

    Each implementation represents one product (Genymotion, VirtualBox).
    Responsibilities:
      • Provide the platform-specific search roots
      • Name the executable a detection engine walks for
      • Validate a candidate directory into an InstallationRecord
      • Build the engine's detection result (the acceptance predicate)
    """

    def __init__(self, platform: str | None = None) -> None:
        self.platform = platform or current_platform()

    # ── Required interface ──

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier (e.g. 'genymotion', 'virtualbox')."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name (e.g. 'Genymotion')."""
        ...

    @property
    @abstractmethod
    def scan_executable(self) -> str:
        """Path, relative to a candidate directory, that marks a possible install."""
        ...

    @abstractmethod
    def default_locations(self) -> list[str]:
        """Ordered search roots for the current platform (unexpanded templates)."""
        ...

    @abstractmethod
    def validate(self, directory: str | Path) -> InstallationRecord:
        """Validate a candidate directory, raising a ValidationError on failure."""
        ...

    # ── Acceptance predicate ──

    async def check_dir(self, directory: Path, context: Any = None) -> Any | None:
        """
        Return the detection result for ``directory`` or ``None``.

        Validation errors mean "not found here" and are only logged at debug.
        """
        try:
            return self.validate(directory)
        except ValidationError as e:
            logger.debug(f"{self.display_name}: rejected {directory}: {e}")
            return None

    # ── Helpers ──

    @property
    def exe(self) -> str:
        return exe_suffix(self.platform)

    @staticmethod
    def resolve_directory(directory: str | Path) -> Path:
        """Expand and check a candidate directory argument."""
        if not isinstance(directory, (str, Path)) or not str(directory):
            raise InvalidArgument("Expected directory to be a valid string")
        path = expand_path(directory)
        if not path.is_dir():
            raise PathNotFound(f"Directory does not exist: {path}")
        return path
