"""Tests for Genymotion installation validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeVBoxManage, touch
from genyinfo.exceptions import (
    InvalidArgument,
    MissingExecutable,
    MissingHomeDirectory,
    PathNotFound,
)
from genyinfo.models.emulator import GenymotionInstall
from genyinfo.models.installation import InstallationRecord
from genyinfo.plugins.genymotion.plugin import GenymotionPlugin
from genyinfo.plugins.virtualbox.plugin import VirtualBox


@pytest.fixture
def home_candidates(tmp_path: Path) -> list[Path]:
    return [tmp_path / "home" / ".Genymobile" / "Genymotion", tmp_path / "home" / ".Genymotion"]


@pytest.fixture
def plugin(home_candidates: list[Path]) -> GenymotionPlugin:
    return GenymotionPlugin(platform="linux", home_locations=[str(p) for p in home_candidates])


class TestValidate:
    def test_valid_install(
        self, plugin: GenymotionPlugin, genymotion_dir: Path, home_candidates: list[Path]
    ) -> None:
        home_candidates[1].mkdir(parents=True)
        record = plugin.validate(genymotion_dir)
        assert record.install_path == genymotion_dir
        assert record.executables == {
            "genymotion": genymotion_dir / "genymotion",
            "player": genymotion_dir / "player",
        }
        assert record.home == home_candidates[1]
        assert record.version is None

    def test_first_existing_home_wins(
        self, plugin: GenymotionPlugin, genymotion_dir: Path, home_candidates: list[Path]
    ) -> None:
        for home in home_candidates:
            home.mkdir(parents=True)
        assert plugin.validate(str(genymotion_dir)).home == home_candidates[0]

    def test_missing_player(
        self, plugin: GenymotionPlugin, genymotion_dir: Path, home_candidates: list[Path]
    ) -> None:
        home_candidates[0].mkdir(parents=True)
        (genymotion_dir / "player").unlink()
        with pytest.raises(MissingExecutable) as exc_info:
            plugin.validate(genymotion_dir)
        assert exc_info.value.name == "player"

    def test_executable_must_be_a_file(
        self, plugin: GenymotionPlugin, tmp_path: Path, home_candidates: list[Path]
    ) -> None:
        home_candidates[0].mkdir(parents=True)
        root = tmp_path / "geny"
        (root / "genymotion").mkdir(parents=True)
        touch(root / "player")
        with pytest.raises(MissingExecutable) as exc_info:
            plugin.validate(root)
        assert exc_info.value.name == "genymotion"

    def test_missing_home(self, plugin: GenymotionPlugin, genymotion_dir: Path) -> None:
        with pytest.raises(MissingHomeDirectory):
            plugin.validate(genymotion_dir)

    @pytest.mark.parametrize("bad", ["", None, 42])
    def test_invalid_argument(self, plugin: GenymotionPlugin, bad: object) -> None:
        with pytest.raises(InvalidArgument):
            plugin.validate(bad)  # type: ignore[arg-type]

    def test_nonexistent_directory(self, plugin: GenymotionPlugin, tmp_path: Path) -> None:
        with pytest.raises(PathNotFound):
            plugin.validate(tmp_path / "nope")

    def test_windows_executable_suffix(self, tmp_path: Path, home_candidates: list[Path]) -> None:
        home_candidates[0].mkdir(parents=True)
        plugin = GenymotionPlugin(platform="win32", home_locations=[str(home_candidates[0])])
        root = tmp_path / "Genymobile" / "Genymotion"
        touch(root / "genymotion.exe")
        touch(root / "player.exe")
        record = plugin.validate(root)
        assert record.executables["player"] == root / "player.exe"
        assert plugin.scan_executable == "genymotion.exe"

    def test_macos_bundle_layout(self, tmp_path: Path, home_candidates: list[Path]) -> None:
        home_candidates[0].mkdir(parents=True)
        plugin = GenymotionPlugin(platform="darwin", home_locations=[str(home_candidates[0])])
        app = tmp_path / "Applications" / "Genymotion.app"
        macos = app / "Contents" / "MacOS"
        touch(macos / "genymotion")
        touch(macos / "player.app" / "Contents" / "MacOS" / "player")

        record = plugin.validate(app)
        assert record.install_path == macos
        assert record.executables["player"] == macos / "player.app" / "Contents" / "MacOS" / "player"

    def test_default_locations_per_platform(self) -> None:
        assert GenymotionPlugin(platform="linux").default_locations() == ["/opt", "/usr", "~"]
        assert GenymotionPlugin(platform="win32").default_locations()[0].startswith("%ProgramFiles%")

    def test_deployed_dir(self, tmp_path: Path) -> None:
        record = InstallationRecord(install_path=tmp_path, home=tmp_path / "home")
        assert GenymotionPlugin.deployed_dir(record) == tmp_path / "home" / "deployed"
        assert GenymotionPlugin.deployed_dir(InstallationRecord(install_path=tmp_path)) is None


class TestCheckDir:
    @pytest.mark.asyncio
    async def test_rejected_candidate_is_none(self, plugin: GenymotionPlugin, tmp_path: Path) -> None:
        assert await plugin.check_dir(tmp_path, None) is None

    @pytest.mark.asyncio
    async def test_without_virtualbox_has_no_emulators(
        self, plugin: GenymotionPlugin, genymotion_dir: Path, home_candidates: list[Path]
    ) -> None:
        home_candidates[0].mkdir(parents=True)
        result = await plugin.check_dir(genymotion_dir, None)
        assert isinstance(result, GenymotionInstall)
        assert result.emulators == ()

    @pytest.mark.asyncio
    async def test_includes_emulators(
        self,
        plugin: GenymotionPlugin,
        genymotion_dir: Path,
        home_candidates: list[Path],
        vboxmanage: FakeVBoxManage,
        tmp_path: Path,
    ) -> None:
        home_candidates[0].mkdir(parents=True)
        vbox = VirtualBox(
            record=InstallationRecord(
                install_path=tmp_path, executables={"vboxmanage": tmp_path / "vboxmanage"}
            ),
            runner=vboxmanage,
        )
        result = await plugin.check_dir(genymotion_dir, vbox)
        assert [emu.name for emu in result.emulators] == ["Pixel 3", "Nexus 5"]

    @pytest.mark.asyncio
    async def test_broken_virtualbox_keeps_install(
        self,
        plugin: GenymotionPlugin,
        genymotion_dir: Path,
        home_candidates: list[Path],
        tmp_path: Path,
    ) -> None:
        home_candidates[0].mkdir(parents=True)

        async def broken(argv: list[str]) -> str:
            raise OSError("exec format error")

        vbox = VirtualBox(
            record=InstallationRecord(
                install_path=tmp_path, executables={"vboxmanage": tmp_path / "vboxmanage"}
            ),
            runner=broken,
        )
        result = await plugin.check_dir(genymotion_dir, vbox)
        assert result is not None
        assert result.emulators == ()
