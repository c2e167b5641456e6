"""Genymotion plugin — installation validation and emulator discovery."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from genyinfo.core.path_resolver import expand_path
from genyinfo.exceptions import CommandError, MissingExecutable, MissingHomeDirectory
from genyinfo.models.emulator import Emulator, GenymotionInstall
from genyinfo.models.installation import InstallationRecord
from genyinfo.plugins.base import ProductPlugin
from genyinfo.plugins.genymotion.emulators import enumerate_emulators

if TYPE_CHECKING:
    from genyinfo.plugins.virtualbox.plugin import VirtualBox

GENYMOTION_LOCATIONS: dict[str, list[str]] = {
    "darwin": [
        "/Applications/Genymotion.app/",
        "~/Applications/Genymotion.app/",
    ],
    "linux": [
        "/opt",
        "/usr",
        "~",
    ],
    "win32": [
        "%ProgramFiles%\\Genymobile\\Genymotion",
        "%ProgramFiles%\\Genymotion",
        "%ProgramFiles(x86)%\\Genymobile\\Genymotion",
        "%ProgramFiles(x86)%\\Genymotion",
    ],
}

GENYMOTION_HOME_LOCATIONS: dict[str, list[str]] = {
    "darwin": [
        "~/.Genymobile/Genymotion",
        "~/.Genymotion",
    ],
    "linux": [
        "~/.Genymobile/Genymotion",
        "~/.Genymotion",
    ],
    "win32": [
        "%LocalAppData%/Genymobile/Genymotion",
    ],
}

# Each emulator gets a directory named after it in here
DEPLOYED_SUBDIR = "deployed"


class GenymotionPlugin(ProductPlugin):
    """ProductPlugin for Genymotion; its detection result includes the emulators."""

    def __init__(
        self,
        platform: str | None = None,
        home_locations: list[str] | None = None,
    ) -> None:
        super().__init__(platform)
        self._home_locations = home_locations

    @property
    def name(self) -> str:
        return "genymotion"

    @property
    def display_name(self) -> str:
        return "Genymotion"

    @property
    def scan_executable(self) -> str:
        if self.platform == "darwin":
            return "Contents/MacOS/genymotion"
        return f"genymotion{self.exe}"

    def default_locations(self) -> list[str]:
        return list(GENYMOTION_LOCATIONS.get(self.platform, []))

    def home_locations(self) -> list[str]:
        if self._home_locations is not None:
            return list(self._home_locations)
        return list(GENYMOTION_HOME_LOCATIONS.get(self.platform, []))

    # ── Validation ──

    def validate(self, directory: str | Path) -> InstallationRecord:
        path = self._adjust_layout(self.resolve_directory(directory))

        executables = {"genymotion": path / f"genymotion{self.exe}"}
        if self.platform == "darwin":
            executables["player"] = path / "player.app" / "Contents" / "MacOS" / "player"
        else:
            executables["player"] = path / f"player{self.exe}"

        for name, exe_path in executables.items():
            if not exe_path.is_file():
                raise MissingExecutable(name, exe_path)

        home = self.find_home()
        if home is None:
            raise MissingHomeDirectory("Unable to find Genymotion home directory")

        return InstallationRecord(install_path=path, executables=executables, home=home)

    def _adjust_layout(self, path: Path) -> Path:
        """On macOS the binaries live in the bundle's Contents/MacOS."""
        if self.platform != "darwin":
            return path
        for candidate in (path / "Contents" / "MacOS", path.parent / "Contents" / "MacOS"):
            if candidate.is_dir():
                return candidate
        return path

    def find_home(self) -> Path | None:
        """First existing home directory candidate, in table order."""
        for template in self.home_locations():
            home = expand_path(template)
            if home.is_dir():
                return home
        return None

    # ── Acceptance predicate ──

    async def check_dir(self, directory: Path, context: Any = None) -> GenymotionInstall | None:
        record = await super().check_dir(directory, context)
        if record is None:
            return None
        return GenymotionInstall(record=record, emulators=await self.get_emulators(context))

    async def get_emulators(self, vbox: VirtualBox | None) -> tuple[Emulator, ...]:
        """Enumerate emulators; a broken VirtualBox leaves the list empty."""
        try:
            return await enumerate_emulators(vbox)
        except (CommandError, OSError) as e:
            logger.warning(f"Unable to list VirtualBox VMs: {e}")
            return ()

    @staticmethod
    def deployed_dir(record: InstallationRecord) -> Path | None:
        if record.home is None:
            return None
        return record.home / DEPLOYED_SUBDIR
