"""Entry model: header dialects, entry content variants and ``Entry``."""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "DIRECTORY_FILE_MODE",
    "EXECUTABLE_FILE_MODE",
    "ORDINARY_FILE_MODE",
    "BlockDevice",
    "CharacterDevice",
    "Directory",
    "Entry",
    "EntryContent",
    "Format",
    "HardLink",
    "LazyBody",
    "NamedPipe",
    "NormalFile",
    "OtherEntryType",
    "SymbolicLink",
    "directory_entry",
    "empty_entry",
    "file_entry",
    "iter_body",
    "read_body",
)

import dataclasses
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Union

from tarstream._tarpath import (
    ENCODING,
    ENCODING_ERRORS,
    TarPath,
    to_posix_path,
)

# Portable permissions for archives built from scratch.
ORDINARY_FILE_MODE = 0o644
EXECUTABLE_FILE_MODE = 0o755
DIRECTORY_FILE_MODE = 0o755

# Width of the linkname field; longer targets need a GNU ``K`` entry.
_LINKNAME_SIZE = 100

# Bodies are copied in chunks of this size.
CHUNK_SIZE = 65536


class LazyBody:
    """A body whose bytes are produced on demand, like a read-only file.

    ``read(n)`` returns at most *n* bytes and ``b""`` once all ``size``
    bytes have been produced.  Bodies read from an archive stream can be
    read only until the sequence moves past their entry.
    """

    __slots__ = ("size",)

    def __init__(self, size: int) -> None:
        self.size = size

    def read(self, n: int = -1) -> bytes:
        raise NotImplementedError


Body = Union[bytes, LazyBody]


def _body_length(body: Body) -> int:
    if isinstance(body, LazyBody):
        return body.size
    return len(body)


def iter_body(body: Body, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield *body* in chunks of at most *chunk_size* bytes."""
    if not isinstance(body, LazyBody):
        if body:
            yield body
        return
    while True:
        chunk = body.read(chunk_size)
        if not chunk:
            return
        yield chunk


def read_body(body: Body) -> bytes:
    """Return the whole of *body* as bytes.  Loads it into memory."""
    if isinstance(body, LazyBody):
        return b"".join(iter_body(body))
    return body


class Format(Enum):
    """Header dialect an entry was read from or will be written as.

    ``V7``
        The original Unix header: no magic, no owner names, no prefix.
    ``USTAR``
        POSIX.1-1988: adds owner names, device numbers and a path prefix.
    ``GNU``
        GNU tar: adds ``L``/``K`` long-name entries and base-256 numbers.
    """

    V7 = "v7"
    USTAR = "ustar"
    GNU = "gnu"


@dataclass(frozen=True, slots=True)
class NormalFile:
    """A regular file and its body.

    *body* is either the bytes themselves or a ``LazyBody``; *size* is
    authoritative in both cases.
    """

    body: Body
    size: int

    def __post_init__(self) -> None:
        if _body_length(self.body) != self.size:
            raise ValueError(
                f"File body length ({_body_length(self.body)}) does not match "
                f"size ({self.size})"
            )


@dataclass(frozen=True, slots=True)
class Directory:
    pass


@dataclass(frozen=True, slots=True)
class SymbolicLink:
    target: str


@dataclass(frozen=True, slots=True)
class HardLink:
    target: str


@dataclass(frozen=True, slots=True)
class CharacterDevice:
    major: int
    minor: int


@dataclass(frozen=True, slots=True)
class BlockDevice:
    major: int
    minor: int


@dataclass(frozen=True, slots=True)
class NamedPipe:
    pass


@dataclass(frozen=True, slots=True)
class OtherEntryType:
    """Any type code the model does not interpret.

    PAX extended headers (``x``, ``g``) and GNU sparse files (``S``) are
    carried here with their raw body so they can be written back
    unchanged.
    """

    type_code: bytes
    body: Body
    size: int

    def __post_init__(self) -> None:
        if _body_length(self.body) != self.size:
            raise ValueError(
                f"Entry body length ({_body_length(self.body)}) does not match "
                f"size ({self.size})"
            )


EntryContent = Union[
    NormalFile,
    Directory,
    SymbolicLink,
    HardLink,
    CharacterDevice,
    BlockDevice,
    NamedPipe,
    OtherEntryType,
]


@dataclass(frozen=True, slots=True)
class Entry:
    """One archive member.  Immutable; use ``replace()`` to derive."""

    path: TarPath
    content: EntryContent
    permissions: int = ORDINARY_FILE_MODE
    owner_id: int = 0
    group_id: int = 0
    owner_name: str = ""
    group_name: str = ""
    modification_time: int = 0
    format: Format = Format.USTAR

    @property
    def name(self) -> str:
        """The entry path rendered as a POSIX path."""
        return to_posix_path(self.path)

    @property
    def size(self) -> int:
        match self.content:
            case NormalFile(size=size) | OtherEntryType(size=size):
                return size
            case _:
                return 0

    def replace(self, **changes: object) -> Entry:
        return dataclasses.replace(self, **changes)  # type: ignore[arg-type]


def _needs_gnu(path: TarPath, content: EntryContent) -> bool:
    if path.needs_long_name:
        return True
    match content:
        case SymbolicLink(target=target) | HardLink(target=target):
            return len(target.encode(ENCODING, ENCODING_ERRORS)) > _LINKNAME_SIZE
        case _:
            return False


def empty_entry(path: TarPath, content: EntryContent) -> Entry:
    """Build an entry with portable defaults for every metadata field."""
    match content:
        case Directory():
            permissions = DIRECTORY_FILE_MODE
        case _:
            permissions = ORDINARY_FILE_MODE
    return Entry(
        path=path,
        content=content,
        permissions=permissions,
        format=Format.GNU if _needs_gnu(path, content) else Format.USTAR,
    )


def file_entry(path: TarPath, body: Body) -> Entry:
    return empty_entry(path, NormalFile(body=body, size=_body_length(body)))


def directory_entry(path: TarPath) -> Entry:
    return empty_entry(path, Directory())
