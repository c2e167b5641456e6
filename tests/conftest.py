"""Shared fixtures and fakes."""

from __future__ import annotations

import asyncio
import itertools
from pathlib import Path
from typing import Any, AsyncIterator

import pytest

from genyinfo.exceptions import CommandError, SubscriptionFailure

_END = object()


class FakeWatchClient:
    """In-memory WatchClient; tests push events with ``emit()``."""

    def __init__(self, ack: bool = True) -> None:
        self.ack = ack
        self.fail_paths: set[str] = set()
        self.requests: list[dict[str, Any]] = []
        self.unsubscribed: list[str] = []
        self._ids = itertools.count(1)
        self._streams: dict[str, tuple[str, asyncio.Queue[Any]]] = {}

    async def subscribe_watch(self, request: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        self.requests.append(request)
        if request["path"] in self.fail_paths:
            raise SubscriptionFailure(f"cannot watch {request['path']}")
        sid = f"sid-{next(self._ids)}"
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._streams[sid] = (request["path"], queue)
        try:
            if self.ack:
                yield {"type": "subscribe", "subscriptionId": sid}
            while True:
                message = await queue.get()
                if message is _END:
                    return
                yield message
        finally:
            self._streams.pop(sid, None)

    async def unsubscribe_watch(self, sid: str) -> None:
        self.unsubscribed.append(sid)
        stream = self._streams.get(sid)
        if stream is not None:
            stream[1].put_nowait(_END)

    @property
    def watched_paths(self) -> list[str]:
        return [path for path, _ in self._streams.values()]

    def emit(self, watched: str | Path, file: str | Path, action: str) -> None:
        file = Path(file)
        for path, queue in self._streams.values():
            if path == str(watched):
                queue.put_nowait(
                    {
                        "type": "event",
                        "message": {"file": str(file), "filename": file.name, "action": action},
                    }
                )


class FakeVBoxManage:
    """Stands in for the vboxmanage binary; answers from in-memory VM data."""

    def __init__(self, vms: dict[str, dict[str, Any]] | None = None) -> None:
        # {vm id: {"name": ..., "props": {name: value}, "fail": bool}}
        self.vms = vms or {}
        self.calls: list[list[str]] = []
        # command prefixes that fail on their next call only
        self.fail_once: set[tuple[str, ...]] = set()
        self.version = "7.0.10r158379"

    async def __call__(self, argv: list[str]) -> str:
        self.calls.append(argv)
        args = argv[1:]
        for prefix in list(self.fail_once):
            if tuple(args[: len(prefix)]) == prefix:
                self.fail_once.discard(prefix)
                raise CommandError(argv, 1, "VBoxManage: error: The object is not ready")
        if args == ["--version"]:
            return self.version + "\n"
        if args == ["list", "vms"]:
            return "".join(f'"{vm["name"]}" {{{vm_id}}}\n' for vm_id, vm in self.vms.items())
        if args[:2] == ["guestproperty", "enumerate"]:
            vm = self.vms[args[2]]
            if vm.get("fail"):
                raise CommandError(argv, 1, "VBoxManage: error: Could not find a registered machine")
            return "".join(
                f"Name: {name}, value: {value}, timestamp: 1600000000000, flags: \n"
                for name, value in vm.get("props", {}).items()
            )
        raise CommandError(argv, 1, "unknown command")

    def count(self, *args: str) -> int:
        return sum(1 for call in self.calls if call[1 : 1 + len(args)] == list(args))


def touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


async def settle(delay: float = 0.02) -> None:
    """Let queued watch messages reach their handlers."""
    await asyncio.sleep(delay)


@pytest.fixture
def watch_client() -> FakeWatchClient:
    return FakeWatchClient()


@pytest.fixture
def vboxmanage() -> FakeVBoxManage:
    return FakeVBoxManage(
        {
            "11111111-aaaa": {
                "name": "Pixel 3",
                "props": {
                    "android_version": "9",
                    "genymotion_version": "3.2",
                    "hardware_opengl": "1",
                    "vbox_dpi": "440",
                },
            },
            "22222222-bbbb": {
                "name": "Nexus 5",
                "props": {"android_version": "6.0", "genymotion_player_version": "3.1"},
            },
            "33333333-cccc": {
                "name": "Ubuntu Server",
                "props": {"/VirtualBox/GuestInfo/OS/Product": "Linux"},
            },
        }
    )


@pytest.fixture
def genymotion_dir(tmp_path: Path) -> Path:
    """A Linux-style Genymotion install with both executables."""
    root = tmp_path / "opt" / "genymotion"
    touch(root / "genymotion")
    touch(root / "player")
    return root


@pytest.fixture
def genymotion_home(tmp_path: Path) -> Path:
    home = tmp_path / "home" / ".Genymobile" / "Genymotion"
    (home / "deployed").mkdir(parents=True)
    return home


@pytest.fixture
def virtualbox_dir(tmp_path: Path) -> Path:
    root = tmp_path / "usr" / "lib" / "virtualbox"
    touch(root / "vboxmanage")
    return root
