"""VBoxManage invocation and output parsing."""

from __future__ import annotations

import asyncio
import re
from typing import Awaitable, Callable

from loguru import logger

from genyinfo.exceptions import CommandError

CommandRunner = Callable[[list[str]], Awaitable[str]]

# "Genymotion Pixel 3" {0b4f9e1c-...}
_VM_LINE = re.compile(r'^"(?P<name>.*)"\s+\{(?P<id>[0-9a-fA-F-]+)\}\s*$')

# VirtualBox 6: Name: android_version, value: 9, timestamp: 1600000000, flags:
_LEGACY_PROP = re.compile(
    r"^Name:\s*(?P<name>[^,]+),\s*value:\s*(?P<value>.*?),\s*timestamp:"
)

# VirtualBox 7: android_version      = '9'     @ 2023-05-02T10:00:00.000Z, TRANSIENT
_PROP = re.compile(r"^(?P<name>\S+)\s*=\s*'(?P<value>.*)'(?:\s*@.*)?$")


async def run_command(argv: list[str]) -> str:
    """Run a command and return its stdout; non-zero exit raises CommandError."""
    logger.debug(f"Running {' '.join(argv)}")
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise CommandError(argv, proc.returncode, stderr.decode(errors="replace"))
    return stdout.decode(errors="replace")


def parse_vm_list(output: str) -> list[dict[str, str]]:
    """Parse ``vboxmanage list vms`` into ``[{id, name}]``."""
    vms: list[dict[str, str]] = []
    for line in output.splitlines():
        m = _VM_LINE.match(line.strip())
        if m:
            vms.append({"id": m.group("id"), "name": m.group("name")})
    return vms


def parse_guest_properties(output: str) -> list[dict[str, str]]:
    """Parse ``vboxmanage guestproperty enumerate`` into ``[{name, value}]``."""
    props: list[dict[str, str]] = []
    for line in output.splitlines():
        line = line.strip()
        m = _LEGACY_PROP.match(line) or _PROP.match(line)
        if m:
            props.append({"name": m.group("name").strip(), "value": m.group("value")})
    return props


def parse_version(output: str) -> str | None:
    """``7.0.10r158379`` → ``7.0.10``."""
    text = output.strip()
    if not text:
        return None
    return text.split("r", 1)[0] if re.match(r"^\d", text) else text
