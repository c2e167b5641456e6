"""Genymotion emulators: VirtualBox VMs decorated from their guest properties."""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING, Any, Iterable

from loguru import logger

from genyinfo.exceptions import PropertyFetchFailure
from genyinfo.models.emulator import Emulator

if TYPE_CHECKING:
    from genyinfo.plugins.virtualbox.plugin import VirtualBox

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _parse_flag(value: str) -> bool:
    """Leading integer != 0; anything unparsable is False."""
    m = _LEADING_INT.match(value or "")
    return bool(m) and int(m.group(1)) != 0


def _parse_dpi(value: str) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


# guest property name → Emulator field, with its value parser
PROPERTY_FIELDS: dict[str, tuple[str, Any]] = {
    "android_version": ("sdk_version", str),
    "genymotion_player_version": ("provider_version", str),
    "genymotion_version": ("provider_version", str),
    "hardware_opengl": ("hardware_acceleration", _parse_flag),
    "vbox_dpi": ("dpi", _parse_dpi),
    "vbox_graph_mode": ("display_mode", str),
    "androvm_ip_management": ("ip_address", str),
}


def build_emulator(vm: dict[str, Any], properties: Iterable[dict[str, str]]) -> Emulator | None:
    """
    Fold a VM's guest properties into an Emulator.

    Returns ``None`` unless a Genymotion version property is present, i.e.
    the VM is a plain VirtualBox machine rather than a Genymotion device.
    """
    fields: dict[str, Any] = {}
    for prop in properties:
        mapping = PROPERTY_FIELDS.get(prop.get("name", ""))
        if mapping is None:
            continue
        field_name, parse = mapping
        fields[field_name] = parse(prop.get("value", ""))

    if not fields.get("provider_version"):
        return None
    return Emulator(id=vm["id"], name=vm.get("name", ""), **fields)


async def _fetch_properties(vbox: VirtualBox, vm: dict[str, Any]) -> list[dict[str, str]]:
    try:
        return await vbox.get_guest_properties(vm["id"])
    except Exception as e:
        raise PropertyFetchFailure(vm.get("id", "?"), e) from e


async def enumerate_emulators(vbox: VirtualBox | None) -> tuple[Emulator, ...]:
    """List the Genymotion emulators known to ``vbox``; empty without a provider."""
    if vbox is None:
        return ()

    vms = await vbox.list_vms()
    results = await asyncio.gather(
        *(_fetch_properties(vbox, vm) for vm in vms), return_exceptions=True
    )

    emulators: list[Emulator] = []
    for vm, props in zip(vms, results):
        if isinstance(props, BaseException):
            logger.warning(f"Skipping VM '{vm.get('name', vm.get('id'))}': {props}")
            continue
        emulator = build_emulator(vm, props)
        if emulator is not None:
            emulators.append(emulator)

    logger.debug(f"Found {len(emulators)} Genymotion emulator(s) in {len(vms)} VM(s)")
    return tuple(emulators)
