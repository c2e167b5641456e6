"""Tests for the VirtualBox plugin and VBoxManage parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeVBoxManage, touch
from genyinfo.exceptions import MissingExecutable
from genyinfo.models.installation import InstallationRecord
from genyinfo.plugins.virtualbox.plugin import VirtualBox, VirtualBoxPlugin
from genyinfo.plugins.virtualbox.vboxmanage import (
    parse_guest_properties,
    parse_version,
    parse_vm_list,
)


class TestParsing:
    def test_vm_list(self) -> None:
        output = (
            '"Google Pixel 3 - 9.0 - API 28" {0b4f9e1c-1111-2222-3333-444455556666}\n'
            "garbage line\n"
            '"Ubuntu" {abcdef01-0000-0000-0000-000000000000}\n'
        )
        assert parse_vm_list(output) == [
            {"id": "0b4f9e1c-1111-2222-3333-444455556666", "name": "Google Pixel 3 - 9.0 - API 28"},
            {"id": "abcdef01-0000-0000-0000-000000000000", "name": "Ubuntu"},
        ]

    def test_legacy_guest_properties(self) -> None:
        output = (
            "Name: android_version, value: 9, timestamp: 1600000000000, flags: \n"
            "Name: vbox_graph_mode, value: 1080x1920-16, timestamp: 1600000000000, flags: \n"
        )
        assert parse_guest_properties(output) == [
            {"name": "android_version", "value": "9"},
            {"name": "vbox_graph_mode", "value": "1080x1920-16"},
        ]

    def test_virtualbox7_guest_properties(self) -> None:
        output = (
            "android_version       = '9'       @ 2023-05-02T10:00:00.000000000Z, TRANSIENT\n"
            "genymotion_version    = '3.4.0'   @ 2023-05-02T10:00:00.000000000Z\n"
        )
        assert parse_guest_properties(output) == [
            {"name": "android_version", "value": "9"},
            {"name": "genymotion_version", "value": "3.4.0"},
        ]

    @pytest.mark.parametrize(
        "output, expected",
        [("7.0.10r158379\n", "7.0.10"), ("6.1.38_Ubuntur153438", "6.1.38_Ubuntu"), ("", None)],
    )
    def test_version(self, output: str, expected: str | None) -> None:
        assert parse_version(output) == expected


class TestVirtualBoxPlugin:
    def test_validate(self, virtualbox_dir: Path) -> None:
        record = VirtualBoxPlugin(platform="linux").validate(virtualbox_dir)
        assert record.executables == {"vboxmanage": virtualbox_dir / "vboxmanage"}
        assert record.home is None

    def test_validate_missing_vboxmanage(self, tmp_path: Path) -> None:
        with pytest.raises(MissingExecutable):
            VirtualBoxPlugin(platform="linux").validate(tmp_path)

    def test_windows_suffix(self, tmp_path: Path) -> None:
        touch(tmp_path / "vboxmanage.exe")
        plugin = VirtualBoxPlugin(platform="win32")
        assert plugin.scan_executable == "vboxmanage.exe"
        assert plugin.validate(tmp_path).executables["vboxmanage"] == tmp_path / "vboxmanage.exe"

    @pytest.mark.asyncio
    async def test_check_dir_discovers_version(
        self, virtualbox_dir: Path, vboxmanage: FakeVBoxManage
    ) -> None:
        vbox = await VirtualBoxPlugin(platform="linux", runner=vboxmanage).check_dir(virtualbox_dir)
        assert isinstance(vbox, VirtualBox)
        assert vbox.version == "7.0.10"
        assert vboxmanage.calls == [[str(virtualbox_dir / "vboxmanage"), "--version"]]

    @pytest.mark.asyncio
    async def test_version_failure_is_tolerated(self, virtualbox_dir: Path) -> None:
        async def broken(argv: list[str]) -> str:
            raise OSError("permission denied")

        vbox = await VirtualBoxPlugin(platform="linux", runner=broken).check_dir(virtualbox_dir)
        assert vbox is not None
        assert vbox.version is None


class TestVirtualBoxHandle:
    @pytest.fixture
    def vbox(self, tmp_path: Path, vboxmanage: FakeVBoxManage) -> VirtualBox:
        record = InstallationRecord(
            install_path=tmp_path, executables={"vboxmanage": tmp_path / "vboxmanage"}
        )
        return VirtualBox(record=record, runner=vboxmanage)

    @pytest.mark.asyncio
    async def test_list_vms(self, vbox: VirtualBox) -> None:
        vms = await vbox.list_vms()
        assert [vm["name"] for vm in vms] == ["Pixel 3", "Nexus 5", "Ubuntu Server"]

    @pytest.mark.asyncio
    async def test_guest_properties(self, vbox: VirtualBox) -> None:
        props = await vbox.get_guest_properties("22222222-bbbb")
        assert {"name": "genymotion_player_version", "value": "3.1"} in props

    def test_equality_ignores_runner(self, vbox: VirtualBox) -> None:
        async def other(argv: list[str]) -> str:
            return ""

        assert vbox == VirtualBox(record=vbox.record, runner=other)
