"""VirtualBox plugin — the virtualization backend Genymotion runs its VMs on."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from loguru import logger

from genyinfo.exceptions import CommandError, MissingExecutable
from genyinfo.models.installation import InstallationRecord
from genyinfo.plugins.base import ProductPlugin
from genyinfo.plugins.virtualbox.vboxmanage import (
    CommandRunner,
    parse_guest_properties,
    parse_version,
    parse_vm_list,
    run_command,
)

VIRTUALBOX_LOCATIONS: dict[str, list[str]] = {
    "darwin": [
        "/usr/local/bin",
        "/Applications/VirtualBox.app/Contents/MacOS",
    ],
    "linux": [
        "/usr/bin",
        "/usr/local/bin",
        "/opt/VirtualBox",
    ],
    "win32": [
        "%ProgramFiles%\\Oracle\\VirtualBox",
        "%ProgramFiles(x86)%\\Oracle\\VirtualBox",
    ],
}

_REGISTRY_KEY = "Software\\Oracle\\VirtualBox"
_REGISTRY_VALUE = "InstallDir"


def _registry_install_dir() -> str | None:
    """Read VirtualBox's InstallDir from HKLM (Windows only)."""
    try:
        import winreg
    except ImportError:
        return None
    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, _REGISTRY_KEY) as key:
            value, _ = winreg.QueryValueEx(key, _REGISTRY_VALUE)
            return str(value) if value else None
    except OSError:
        return None


@dataclass(frozen=True)
class VirtualBox:
    """
    Handle on a detected VirtualBox installation.

    Compared by installation record only, so a rescan that finds the same
    install does not count as a change.
    """

    record: InstallationRecord
    runner: CommandRunner = field(default=run_command, compare=False, repr=False)

    @property
    def vboxmanage(self) -> str:
        return str(self.record.executables["vboxmanage"])

    @property
    def version(self) -> str | None:
        return self.record.version

    async def list_vms(self) -> list[dict[str, str]]:
        return parse_vm_list(await self.runner([self.vboxmanage, "list", "vms"]))

    async def get_guest_properties(self, vm_id: str) -> list[dict[str, str]]:
        output = await self.runner(
            [self.vboxmanage, "guestproperty", "enumerate", vm_id]
        )
        return parse_guest_properties(output)

    async def query_version(self) -> str | None:
        try:
            return parse_version(await self.runner([self.vboxmanage, "--version"]))
        except (CommandError, OSError) as e:
            logger.warning(f"Unable to determine VirtualBox version: {e}")
            return None

    def to_dict(self) -> dict[str, Any]:
        return self.record.to_dict()


class VirtualBoxPlugin(ProductPlugin):
    """ProductPlugin for VirtualBox (``vboxmanage``)."""

    def __init__(
        self, platform: str | None = None, runner: CommandRunner = run_command
    ) -> None:
        super().__init__(platform)
        self._runner = runner

    @property
    def name(self) -> str:
        return "virtualbox"

    @property
    def display_name(self) -> str:
        return "VirtualBox"

    @property
    def scan_executable(self) -> str:
        return f"vboxmanage{self.exe}"

    def default_locations(self) -> list[str]:
        locations = list(VIRTUALBOX_LOCATIONS.get(self.platform, []))
        if self.platform == "win32":
            install_dir = _registry_install_dir()
            if install_dir:
                locations.insert(0, install_dir)
        return locations

    # ── Validation ──

    def validate(self, directory: str | Path) -> InstallationRecord:
        path = self.resolve_directory(directory)
        vboxmanage = path / f"vboxmanage{self.exe}"
        if not vboxmanage.is_file():
            raise MissingExecutable("vboxmanage", vboxmanage)
        return InstallationRecord(install_path=path, executables={"vboxmanage": vboxmanage})

    async def check_dir(self, directory: Path, context: Any = None) -> VirtualBox | None:
        record = await super().check_dir(directory, context)
        if record is None:
            return None
        vbox = VirtualBox(record=record, runner=self._runner)
        version = await vbox.query_version()
        return VirtualBox(record=replace(record, version=version), runner=self._runner)
