"""Portable archive paths and their conversion to and from host paths.

A ``TarPath`` holds the path exactly as it is stored in the archive:
``/``-separated, relative, with a trailing ``/`` for directories.  Paths
built through ``to_tar_path`` are validated; paths decoded from an archive
are taken verbatim and must go through the security checks before they
are used on a file system.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "ENCODING",
    "ENCODING_ERRORS",
    "NAME_SIZE",
    "PREFIX_SIZE",
    "TarPath",
    "from_tar_path",
    "to_posix_path",
    "to_tar_path",
    "to_windows_path",
)

import os
import re
from dataclasses import dataclass

from tarstream._config import DEFAULT_MAX_PATH_LENGTH
from tarstream._exceptions import (
    InvalidPathComponentError,
    PathTooLongError,
    UnrepresentablePathError,
)

# Names are stored as UTF-8; undecodable bytes survive a round trip.
ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"

# Ustar name and prefix field widths.
NAME_SIZE = 100
PREFIX_SIZE = 155

_WINDOWS_RESERVED = frozenset('<>:"|?*\\')
# A leading letter and colon is a drive designator, with or without a
# separator after it.
_DRIVE_RE = re.compile(r"^[A-Za-z]:")


@dataclass(frozen=True, slots=True)
class TarPath:
    """A path in its portable archive form."""

    value: str

    def __str__(self) -> str:
        return self.value

    @property
    def is_directory(self) -> bool:
        return self.value.endswith("/")

    def split_ustar(self) -> tuple[str, str] | None:
        """Return the ``(prefix, name)`` pair for the Ustar header fields.

        Returns ``None`` when no split at a ``/`` fits the 155-byte prefix
        and 100-byte name fields; such paths need the GNU long-name
        extension.
        """
        raw = self.value.encode(ENCODING, ENCODING_ERRORS)
        if len(raw) <= NAME_SIZE:
            return "", self.value

        components = raw.split(b"/")
        for i in range(1, len(components)):
            prefix = b"/".join(components[:i])
            name = b"/".join(components[i:])
            if len(prefix) > PREFIX_SIZE:
                break
            if name and len(name) <= NAME_SIZE:
                return (
                    prefix.decode(ENCODING, ENCODING_ERRORS),
                    name.decode(ENCODING, ENCODING_ERRORS),
                )
        return None

    @property
    def needs_long_name(self) -> bool:
        return self.split_ustar() is None


def _split_host_path(raw: str) -> list[str]:
    if os.name == "nt":
        return re.split(r"[\\/]", raw)
    return raw.split("/")


def to_tar_path(
    is_directory: bool,
    path: str | os.PathLike[str],
    *,
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH,
) -> TarPath:
    """Convert a relative host path into a validated ``TarPath``.

    ``.`` components are dropped and a ``..`` that stays inside the root
    is collapsed.

    :raises InvalidPathComponentError: For absolute paths, drive letters,
        empty components, NUL bytes, or ``..`` that climbs above the root.
    :raises PathTooLongError: If the encoded path exceeds
        *max_path_length* bytes.
    """
    raw = os.fspath(path)

    if "\x00" in raw:
        raise InvalidPathComponentError(f"Null byte in path: {raw!r}")

    if (
        raw.startswith("/")
        or (os.name == "nt" and raw.startswith("\\"))
        or _DRIVE_RE.match(raw)
    ):
        raise InvalidPathComponentError(f"Absolute path not allowed: {raw!r}")

    parts = _split_host_path(raw)

    # A single trailing separator is allowed.
    if len(parts) > 1 and parts[-1] == "":
        parts.pop()

    components: list[str] = []
    for part in parts:
        if part == "":
            raise InvalidPathComponentError(f"Empty component in path: {raw!r}")
        if part == ".":
            continue
        if part == "..":
            if not components:
                raise InvalidPathComponentError(
                    f"Path climbs above its root: {raw!r}"
                )
            components.pop()
            continue
        components.append(part)

    if not components:
        raise InvalidPathComponentError(f"Path has no components: {raw!r}")

    value = "/".join(components)
    if _DRIVE_RE.match(value):
        raise InvalidPathComponentError(f"Absolute path not allowed: {raw!r}")
    if is_directory:
        value += "/"

    length = len(value.encode(ENCODING, ENCODING_ERRORS))
    if length > max_path_length:
        raise PathTooLongError(
            f"Path length ({length}) exceeds max_path_length "
            f"({max_path_length}): {value[:256]!r}"
        )

    return TarPath(value)


def to_posix_path(tar_path: TarPath) -> str:
    """Render *tar_path* as a POSIX path.  Never fails."""
    value = tar_path.value
    if len(value) > 1 and value.endswith("/"):
        return value[:-1]
    return value


def to_windows_path(tar_path: TarPath) -> str:
    """Render *tar_path* as a Windows path.

    :raises UnrepresentablePathError: If a component is empty or contains
        a character Windows reserves.
    """
    parts = tar_path.value.split("/")
    if len(parts) > 1 and parts[-1] == "":
        parts.pop()

    for part in parts:
        if not part:
            raise UnrepresentablePathError(
                f"Empty component has no Windows rendering: {tar_path.value!r}"
            )
        if any(ch in _WINDOWS_RESERVED or ord(ch) < 32 for ch in part):
            raise UnrepresentablePathError(
                f"Reserved character in path component {part!r}: "
                f"{tar_path.value!r}"
            )

    return "\\".join(parts)


def from_tar_path(tar_path: TarPath) -> str:
    """Render *tar_path* for the host platform."""
    if os.name == "nt":
        return to_windows_path(tar_path)
    return to_posix_path(tar_path)
