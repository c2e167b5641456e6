"""Expand ``~`` and environment variables in path templates."""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Iterable

# %ProgramFiles(x86)% style (Windows) and $HOME / ${HOME} style (POSIX)
_WIN_VAR = re.compile(r"%([^%]+)%")
_POSIX_VAR = re.compile(r"\$(\w+|\{[^}]+\})")


def current_platform() -> str:
    """Return the platform key used by the location tables: darwin, linux or win32."""
    if sys.platform.startswith("win"):
        return "win32"
    if sys.platform == "darwin":
        return "darwin"
    return "linux"


def exe_suffix(platform: str | None = None) -> str:
    """Executable file suffix for the given (or current) platform."""
    return ".exe" if (platform or current_platform()) == "win32" else ""


def _lookup(name: str, original: str) -> str:
    # Windows variable names are case-insensitive; os.environ handles that there
    value = os.environ.get(name)
    if value is None:
        return original
    return value


def expand_path(template: str | Path) -> Path:
    """
    Expand a path template to an absolute path.

    Handles a leading ``~``, ``%VAR%`` and ``$VAR`` / ``${VAR}``.  Unknown
    variables are left untouched.
    """
    raw = str(template)
    raw = _WIN_VAR.sub(lambda m: _lookup(m.group(1), m.group(0)), raw)
    raw = _POSIX_VAR.sub(lambda m: _lookup(m.group(1).strip("{}"), m.group(0)), raw)
    raw = os.path.expanduser(raw)
    return Path(os.path.abspath(raw))


def unique_paths(templates: Iterable[str | Path]) -> list[Path]:
    """Expand templates, dropping empties and duplicates while keeping order."""
    seen: set[Path] = set()
    result: list[Path] = []
    for template in templates:
        if not template:
            continue
        path = expand_path(template)
        if path not in seen:
            seen.add(path)
            result.append(path)
    return result
