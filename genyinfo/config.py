"""Service configuration — JSON-based, with file locking and batch update support."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from genyinfo.exceptions import ConfigError

_instance: "Config | None" = None

# Default data directory
_DEFAULT_DATA_DIR = Path.home() / ".genymotion-info"


def get_config() -> Config:
    """Return the process-wide Config instance."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _instance
    _instance = None


class Config:
    """JSON-based service configuration with file locking."""

    _DEFAULTS: dict[str, Any] = {
        "log_level": "INFO",
        # Install path overrides, searched before the platform defaults
        "genymotion": {"path": ""},
        "virtualbox": {"path": ""},
        "detect": {
            "refresh_interval": 15.0,
            "depth": 1,
            "watch": True,
        },
        "emulators": {
            "debounce": 8.0,
        },
    }

    def __init__(self, config_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = config_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))  # deep copy defaults
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                self._deep_merge(self._data, user_data)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        """Persist config to disk with file locking."""
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                if tmp_path.exists():
                    tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    # ── Validation ──

    def validate(self) -> None:
        """Raise ConfigError for values the detectors cannot work with."""
        for key in ("genymotion.path", "virtualbox.path"):
            value = self.get(key)
            if value is not None and not isinstance(value, str):
                raise ConfigError(f"'{key}' must be a path string, got {value!r}")

        for key in ("detect.refresh_interval", "emulators.debounce"):
            value = self.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ConfigError(f"'{key}' must be a non-negative number, got {value!r}")

        depth = self.get("detect.depth")
        if isinstance(depth, bool) or not isinstance(depth, int) or depth < 0:
            raise ConfigError(f"'detect.depth' must be a non-negative integer, got {depth!r}")

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def log_level(self) -> str:
        return str(self._data.get("log_level", "INFO")).upper()

    @log_level.setter
    def log_level(self, value: str) -> None:
        self.set("log_level", value)

    @property
    def genymotion_path(self) -> Path | None:
        raw = self.get("genymotion.path", "")
        return Path(raw) if raw else None

    @genymotion_path.setter
    def genymotion_path(self, value: Path | None) -> None:
        self.set("genymotion.path", str(value) if value else "")

    @property
    def virtualbox_path(self) -> Path | None:
        raw = self.get("virtualbox.path", "")
        return Path(raw) if raw else None

    @virtualbox_path.setter
    def virtualbox_path(self, value: Path | None) -> None:
        self.set("virtualbox.path", str(value) if value else "")

    @property
    def refresh_interval(self) -> float:
        return float(self.get("detect.refresh_interval", 15.0))

    @property
    def emulator_debounce(self) -> float:
        return float(self.get("emulators.debounce", 8.0))
