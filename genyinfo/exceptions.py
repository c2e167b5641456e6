"""Exception hierarchy.

Everything raised on purpose by genyinfo derives from GenyInfoError.
Validation errors never leave a detection engine; they only decide whether a
candidate directory counts as an installation.
"""

from __future__ import annotations


class GenyInfoError(Exception):
    """Base exception for all genyinfo errors."""


# ── Installation validation ──


class ValidationError(GenyInfoError):
    """A candidate directory is not a valid installation."""


class InvalidArgument(ValidationError, ValueError):
    """The candidate path is not a non-empty string or path."""


class PathNotFound(ValidationError):
    """The candidate directory does not exist."""


class MissingExecutable(ValidationError):
    """A required executable is missing from the candidate directory."""

    def __init__(self, name: str, path: object = None) -> None:
        self.name = name
        self.path = path
        super().__init__(f'Directory does not contain the "{name}" executable')


class MissingHomeDirectory(ValidationError):
    """None of the auxiliary data directory candidates exist."""


# ── Runtime failures ──


class PropertyFetchFailure(GenyInfoError):
    """Guest properties of a single VM could not be read."""

    def __init__(self, vm_id: str, cause: BaseException | None = None) -> None:
        self.vm_id = vm_id
        self.cause = cause
        super().__init__(f"Failed to fetch guest properties for {vm_id}: {cause}")


class SubscriptionFailure(GenyInfoError):
    """A filesystem watch could not be established or torn down."""


class CommandError(GenyInfoError):
    """An external command exited with a non-zero status."""

    def __init__(self, argv: list[str], returncode: int, stderr: str = "") -> None:
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"{' '.join(argv)} exited with {returncode}: {stderr.strip()}"
        )


class ConfigError(GenyInfoError):
    """Invalid configuration, reported at startup."""
