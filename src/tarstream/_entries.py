"""The streaming engine: archives as lazy, single-pass entry sequences.

An ``Entries`` value is one of three nodes:

``Next(entry, rest)``
    One decoded entry.  ``rest`` is evaluated on first access, which is
    the only moment the reader moves on to the next header.
``Fail(error, remaining)``
    Decoding stopped; *error* says why.
``Done()``
    The archive ended with a proper trailer.

Each ``rest`` may be taken exactly once.  Nodes behind the cursor are not
retained and bodies are read on demand, so an archive of any size is
processed holding one header block and one chunk of body data.  A body
read from a stream can be read only until the ``rest`` of its node is
taken.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "Done",
    "Entries",
    "Fail",
    "Next",
    "entries_from_list",
    "fold_entries",
    "map_entries",
    "read",
    "read_bytes",
    "unfold_entries",
    "write",
    "write_bytes",
)

import io
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import BinaryIO, TypeVar

from tarstream._codec import (
    BLOCK_SIZE,
    GNUTYPE_LONGNAME,
    ZERO_BLOCK,
    Header,
    build_entry,
    carries_body,
    decode_header,
    encode_header,
    entry_body,
    padding,
)
from tarstream._config import DEFAULT_MAX_PATH_LENGTH, DEFAULT_STRICT_FORMAT
from tarstream._exceptions import (
    MalformedArchiveError,
    ShortTrailerError,
    TarstreamError,
    TrailingJunkError,
    TruncatedArchiveError,
)
from tarstream._tarpath import ENCODING, ENCODING_ERRORS
from tarstream._types import CHUNK_SIZE, Body, Entry, LazyBody, iter_body

log = logging.getLogger("tarstream.codec")

T = TypeVar("T")
S = TypeVar("S")


class Entries:
    """Base of the three sequence nodes.

    Iterating yields each entry in archive order and raises the carried
    error when a ``Fail`` node is reached.
    """

    __slots__ = ()

    def __iter__(self) -> Iterator[Entry]:
        node: Entries = self
        while True:
            match node:
                case Next(entry):
                    yield entry
                    node = node.rest
                case Fail(error=error):
                    raise error
                case Done():
                    return


@dataclass(frozen=True, slots=True)
class Done(Entries):
    pass


@dataclass(frozen=True, slots=True)
class Fail(Entries):
    error: Exception
    remaining: bytes | None = None


_CONSUMED = object()


class Next(Entries):
    """One entry plus the (not yet evaluated) rest of the sequence."""

    __slots__ = ("entry", "_rest")
    __match_args__ = ("entry",)

    def __init__(self, entry: Entry, rest: Entries | Callable[[], Entries]):
        self.entry = entry
        self._rest = rest

    @property
    def rest(self) -> Entries:
        """Evaluate the rest of the sequence.  May be taken only once.

        :raises RuntimeError: On a second access; the underlying cursor
            has already moved on.
        """
        rest = self._rest
        if rest is _CONSUMED:
            raise RuntimeError(
                f"The rest of the sequence after {self.entry.path.value!r} "
                "has already been consumed"
            )
        self._rest = _CONSUMED
        if callable(rest):
            return rest()
        return rest  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"Next({self.entry!r}, ...)"


# ---- combinators ------------------------------------------------------------


def map_entries(f: Callable[[Entry], Entry], entries: Entries) -> Entries:
    """Apply *f* to each entry lazily.

    A ``TarstreamError`` raised by *f* ends the sequence with a ``Fail``
    node at that point.  ``Fail`` and ``Done`` pass through unchanged.
    """
    match entries:
        case Next(entry):
            try:
                mapped = f(entry)
            except TarstreamError as exc:
                return Fail(exc)
            return Next(mapped, lambda: map_entries(f, entries.rest))
        case _:
            return entries


def fold_entries(
    on_next: Callable[[T, Entry], T],
    on_fail: Callable[[T, Exception], S],
    on_done: Callable[[T], S],
    entries: Entries,
    initial: T = None,  # type: ignore[assignment]
) -> S:
    """Consume *entries* eagerly, in order, exactly once.

    *on_next* threads an accumulator through the entries; the final
    accumulator goes to *on_done*, or to *on_fail* together with the
    error if the sequence fails.
    """
    acc = initial
    node = entries
    while True:
        match node:
            case Next(entry):
                acc = on_next(acc, entry)
                node = node.rest
            case Fail(error=error):
                return on_fail(acc, error)
            case Done():
                return on_done(acc)
            case _:
                raise TypeError(f"Not an Entries node: {node!r}")


def unfold_entries(
    step: Callable[[T], tuple[Entry, T] | None],
    seed: T,
) -> Entries:
    """Build a sequence lazily from a generator function.

    ``step(seed)`` returns ``None`` when there are no more entries, or an
    ``(entry, next_seed)`` pair.  A ``TarstreamError`` or ``OSError`` it
    raises becomes a ``Fail`` node.
    """
    try:
        result = step(seed)
    except (TarstreamError, OSError) as exc:
        return Fail(exc)
    if result is None:
        return Done()
    entry, next_seed = result
    return Next(entry, lambda: unfold_entries(step, next_seed))


def entries_from_list(entries: Iterable[Entry]) -> Entries:
    """Adapt a finite iterable of entries into an ``Entries`` sequence."""

    def step(it: Iterator[Entry]) -> tuple[Entry, Iterator[Entry]] | None:
        entry = next(it, None)
        if entry is None:
            return None
        return entry, it

    return unfold_entries(step, iter(entries))


# ---- reading ----------------------------------------------------------------


class _StreamBody(LazyBody):
    """The body of the current entry, read straight from the archive.

    It stays readable until the ``rest`` of its node is taken; the reader
    then skips whatever was left unread.
    """

    __slots__ = ("_reader", "name", "_left", "_expired")

    def __init__(self, reader: _Reader, name: str, size: int) -> None:
        super().__init__(size)
        self._reader = reader
        self.name = name
        self._left = size
        self._expired = False

    def read(self, n: int = -1) -> bytes:
        if self._expired:
            raise RuntimeError(
                f"The body of {self.name!r} is no longer readable; the "
                "sequence has moved past it"
            )
        if n < 0 or n > self._left:
            n = self._left
        if n == 0:
            return b""
        data = self._reader.read_exact(n)
        self._left -= len(data)
        if len(data) < n:
            raise TruncatedArchiveError(
                f"Archive ended inside the body of {self.name!r} "
                f"({self.size - self._left} of {self.size} bytes)"
            )
        return data

    def expire(self) -> int:
        """Stop reads through this body; return the unread byte count."""
        self._expired = True
        return self._left

    def __repr__(self) -> str:
        return f"<body of {self.name!r}, {self.size} bytes>"


class _Reader:
    """A cursor over a byte stream that decodes one entry per pull.

    Bodies of entries decoded from a stream are handed out lazily.  An
    in-memory archive (*source*) is already resident, so its bodies are
    sliced out as ``bytes``.
    """

    def __init__(
        self,
        fileobj: BinaryIO,
        *,
        strict_format: bool,
        source: bytes | None = None,
    ) -> None:
        self._fileobj = fileobj
        self._strict_format = strict_format
        self._source = source
        self._offset = 0
        self._entry_offset = 0
        self._pending: _StreamBody | None = None

    def next_node(self) -> Entries:
        try:
            self._drain_pending()
            self._entry_offset = self._offset
            entry = self._read_entry()
        except TarstreamError as exc:
            return Fail(exc, self._remaining())
        if entry is None:
            return Done()
        return Next(entry, self.next_node)

    def _remaining(self) -> bytes | None:
        if self._source is None:
            return None
        return self._source[self._entry_offset :]

    def read_exact(self, n: int) -> bytes:
        """Read *n* bytes, or fewer only at end of stream."""
        chunks = []
        wanted = n
        while wanted > 0:
            chunk = self._fileobj.read(wanted)
            if not chunk:
                break
            chunks.append(chunk)
            wanted -= len(chunk)
        data = b"".join(chunks)
        self._offset += len(data)
        return data

    def _skip(self, n: int) -> int:
        """Discard *n* bytes; return how many were actually available."""
        skipped = 0
        while skipped < n:
            chunk = self.read_exact(min(CHUNK_SIZE, n - skipped))
            if not chunk:
                break
            skipped += len(chunk)
        return skipped

    def _drain_pending(self) -> None:
        body = self._pending
        if body is None:
            return
        self._pending = None
        total = body.expire() + len(padding(body.size))
        if self._skip(total) < total:
            raise TruncatedArchiveError(
                f"Archive ended inside the body of {body.name!r}"
            )

    def _read_entry(self) -> Entry | None:
        long_name: str | None = None
        long_link: str | None = None

        while True:
            block = self.read_exact(BLOCK_SIZE)
            if not block:
                if long_name is not None or long_link is not None:
                    raise TruncatedArchiveError(
                        "Archive ended after a GNU long-name entry"
                    )
                raise TruncatedArchiveError(
                    f"Archive ended at offset {self._offset} without an "
                    "end-of-archive trailer"
                )

            if block == ZERO_BLOCK:
                if long_name is not None or long_link is not None:
                    raise MalformedArchiveError(
                        "GNU long-name entry is not followed by a header"
                    )
                self._read_trailer()
                return None

            header = decode_header(block, strict=self._strict_format)

            match header.type_code:
                case b"L":
                    long_name = self._read_long_value(header)
                    continue
                case b"K":
                    long_link = self._read_long_value(header)
                    continue

            path = header.name if long_name is None else long_name
            return build_entry(
                header,
                path=path,
                linkname=header.linkname if long_link is None else long_link,
                body=self._read_body(header, path),
            )

    def _read_body(self, header: Header, name: str) -> Body:
        total = header.size + len(padding(header.size))
        if not carries_body(header.type_code):
            if self._skip(total) < total:
                raise TruncatedArchiveError(
                    f"Archive ended inside the data of {name!r}"
                )
            return b""
        if header.size == 0:
            return b""
        if self._source is not None:
            return self._read_data(header.size, name)

        body = _StreamBody(self, name, header.size)
        self._pending = body
        return body

    def _read_data(self, size: int, name: str) -> bytes:
        data = self.read_exact(size)
        pad = len(padding(size))
        if len(data) < size or len(self.read_exact(pad)) < pad:
            raise TruncatedArchiveError(
                f"Archive ended inside the body of {name!r} "
                f"({len(data)} of {size} bytes)"
            )
        return data

    def _read_long_value(self, header: Header) -> str:
        kind = "name" if header.type_code == GNUTYPE_LONGNAME else "link"
        # The value is NUL terminated.
        if header.size > DEFAULT_MAX_PATH_LENGTH + 1:
            raise MalformedArchiveError(
                f"GNU long {kind} of {header.size} bytes exceeds the "
                f"{DEFAULT_MAX_PATH_LENGTH}-byte path limit"
            )
        raw = self._read_data(header.size, header.name)
        log.debug("Reassembling GNU long %s (%d bytes)", kind, len(raw))
        end = raw.find(b"\x00")
        if end != -1:
            raw = raw[:end]
        return raw.decode(ENCODING, ENCODING_ERRORS)

    def _read_trailer(self) -> None:
        block = self.read_exact(BLOCK_SIZE)
        if len(block) < BLOCK_SIZE:
            raise ShortTrailerError(
                "Archive ends with a single zero block instead of two"
            )
        if block != ZERO_BLOCK:
            raise ShortTrailerError(
                f"Zero block at offset {self._offset - 2 * BLOCK_SIZE} is "
                "followed by a non-zero block"
            )
        # Writers pad to a record boundary with more zero blocks.
        while True:
            block = self.read_exact(BLOCK_SIZE)
            if not block:
                return
            if block.count(0) != len(block):
                raise TrailingJunkError(
                    f"Non-zero data after the end-of-archive trailer at "
                    f"offset {self._offset - len(block)}"
                )


def read(
    fileobj: BinaryIO,
    *,
    strict_format: bool = DEFAULT_STRICT_FORMAT,
) -> Entries:
    """Decode the archive in *fileobj* as a lazy ``Entries`` sequence.

    The first header is read immediately; each later one when the
    preceding node's ``rest`` is taken.  The caller owns *fileobj* and
    must keep it open until the sequence has been consumed.
    """
    return _Reader(fileobj, strict_format=strict_format).next_node()


def read_bytes(
    data: bytes,
    *,
    strict_format: bool = DEFAULT_STRICT_FORMAT,
) -> Entries:
    """Decode an in-memory archive.

    ``Fail`` nodes carry the unconsumed input, starting at the block where
    the failing entry began.
    """
    data = bytes(data)
    return _Reader(
        io.BytesIO(data), strict_format=strict_format, source=data
    ).next_node()


# ---- writing ----------------------------------------------------------------


def write(entries: Iterable[Entry], fileobj: BinaryIO) -> None:
    """Encode *entries* into *fileobj*, then write the two-block trailer.

    *entries* may be an ``Entries`` sequence; if it fails, its error is
    raised after the entries before it have been written.  Bodies are
    copied in chunks, so lazy bodies are never loaded whole.

    :raises ValueError: If a body does not produce exactly ``size`` bytes.
    """
    for entry in entries:
        fileobj.write(encode_header(entry))
        written = 0
        for chunk in iter_body(entry_body(entry)):
            fileobj.write(chunk)
            written += len(chunk)
        if written != entry.size:
            raise ValueError(
                f"Body of {entry.path.value!r} produced {written} bytes, "
                f"expected {entry.size}"
            )
        fileobj.write(padding(written))
    fileobj.write(ZERO_BLOCK * 2)


def write_bytes(entries: Iterable[Entry]) -> bytes:
    buf = io.BytesIO()
    write(entries, buf)
    return buf.getvalue()
