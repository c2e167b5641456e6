"""Genymotion emulator models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from genyinfo.models.installation import InstallationRecord

GENYMOTION_ABI = "x86"


class PlayServicesSupport(StrEnum):
    """Whether Google Play services are available; unknown until the VM runs."""

    UNKNOWN = "unknown"
    YES = "yes"
    NO = "no"


@dataclass(frozen=True)
class Emulator:
    """One Genymotion virtual device backed by a VirtualBox VM."""

    id: str
    name: str
    sdk_version: str | None = None
    provider_version: str | None = None  # Genymotion version that built the VM
    hardware_acceleration: bool = False
    dpi: int = 0
    display_mode: str | None = None
    ip_address: str | None = None
    abi: str = GENYMOTION_ABI
    play_services: PlayServicesSupport = PlayServicesSupport.UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sdk-version": self.sdk_version,
            "genymotion": self.provider_version,
            "hardwareOpenGL": self.hardware_acceleration,
            "dpi": self.dpi,
            "display": self.display_mode,
            "ipaddress": self.ip_address,
            "abi": self.abi,
            "googleApis": None if self.play_services is PlayServicesSupport.UNKNOWN
            else self.play_services is PlayServicesSupport.YES,
        }


@dataclass(frozen=True)
class GenymotionInstall:
    """Detection result for Genymotion: the installation plus its emulators."""

    record: InstallationRecord
    emulators: tuple[Emulator, ...] = field(default_factory=tuple)
