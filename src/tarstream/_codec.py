"""The block codec: one 512-byte header block to and from one entry.

Header layout (offsets in bytes)::

    name      0   100     linkname  157 100
    mode    100     8     magic     257   6
    uid     108     8     version   263   2
    gid     116     8     uname     265  32
    size    124    12     gname     297  32
    mtime   136    12     devmajor  329   8
    chksum  148     8     devminor  337   8
    type    156     1     prefix    345 155

Numeric fields are octal ASCII, NUL or space terminated.  GNU headers may
instead store a big-endian base-256 number, flagged by the high bit of the
first byte.  GNU headers do not use ``prefix``; paths that do not fit in
``name`` are carried by a preceding ``././@LongLink`` entry of type ``L``
(``K`` for link targets).
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "BLOCK_SIZE",
    "ZERO_BLOCK",
    "Header",
    "build_entry",
    "calc_checksums",
    "carries_body",
    "decode_header",
    "encode_entry",
    "encode_header",
    "entry_body",
    "padding",
)

import logging
import struct
from dataclasses import dataclass

from tarstream._config import DEFAULT_STRICT_FORMAT
from tarstream._exceptions import (
    ChecksumError,
    MalformedArchiveError,
    TruncatedArchiveError,
    UnsupportedFormatError,
)
from tarstream._tarpath import (
    ENCODING,
    ENCODING_ERRORS,
    NAME_SIZE,
    PREFIX_SIZE,
    TarPath,
)
from tarstream._types import (
    BlockDevice,
    Body,
    CharacterDevice,
    Directory,
    Entry,
    Format,
    HardLink,
    NamedPipe,
    NormalFile,
    OtherEntryType,
    SymbolicLink,
    read_body,
)

log = logging.getLogger("tarstream.codec")

BLOCK_SIZE = 512
NUL = b"\x00"
ZERO_BLOCK = bytes(BLOCK_SIZE)

LINKNAME_SIZE = 100
OWNER_NAME_SIZE = 32

# Type codes.
REGTYPE = b"0"
AREGTYPE = b"\x00"
LNKTYPE = b"1"
SYMTYPE = b"2"
CHRTYPE = b"3"
BLKTYPE = b"4"
DIRTYPE = b"5"
FIFOTYPE = b"6"
CONTTYPE = b"7"
GNUTYPE_LONGNAME = b"L"
GNUTYPE_LONGLINK = b"K"

# Types whose data blocks are never interpreted and are skipped on read.
_BODYLESS_TYPES = {LNKTYPE, SYMTYPE, CHRTYPE, BLKTYPE, DIRTYPE, FIFOTYPE}

# magic + version, as one 8-byte field.
_USTAR_MAGIC = b"ustar\x0000"
_GNU_MAGIC = b"ustar  \x00"
_V7_MAGIC = bytes(8)

LONGLINK_NAME = "././@LongLink"

# Field widths of the numeric fields, keyed by name.
_NUMBER_WIDTHS = {
    "mode": 8,
    "uid": 8,
    "gid": 8,
    "size": 12,
    "mtime": 12,
    "devmajor": 8,
    "devminor": 8,
}


@dataclass(frozen=True, slots=True)
class Header:
    """Decoded fields of one header block, before the body is attached."""

    name: str
    mode: int
    uid: int
    gid: int
    size: int
    mtime: int
    type_code: bytes
    linkname: str
    format: Format
    uname: str = ""
    gname: str = ""
    devmajor: int = 0
    devminor: int = 0


# ---- field primitives -------------------------------------------------------


def _decode_string(field: bytes) -> str:
    end = field.find(NUL)
    if end != -1:
        field = field[:end]
    return field.decode(ENCODING, ENCODING_ERRORS)


def _encode_string(value: str, width: int) -> bytes:
    raw = value.encode(ENCODING, ENCODING_ERRORS)
    return raw[:width] + NUL * (width - len(raw[:width]))


def _decode_number(field: bytes, label: str) -> int:
    # GNU base-256: 0x80 flags a positive, 0xff a negative number.
    if field[0] in (0x80, 0xFF):
        n = int.from_bytes(field[1:], "big")
        if field[0] == 0xFF:
            n -= 256 ** (len(field) - 1)
        return n

    text = field.split(NUL, 1)[0].strip()
    if not text:
        return 0
    try:
        return int(text.decode("ascii"), 8)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedArchiveError(
            f"Invalid {label} field in header: {field!r}"
        ) from exc


def _fits_octal(n: int, width: int) -> bool:
    return 0 <= n < 8 ** (width - 1)


def _encode_number(n: int, width: int, fmt: Format, label: str) -> bytes:
    if _fits_octal(n, width):
        return bytes("%0*o" % (width - 1, n), "ascii") + NUL

    limit = 256 ** (width - 1)
    if fmt is Format.GNU and -limit <= n < limit:
        if n >= 0:
            return b"\x80" + n.to_bytes(width - 1, "big")
        return b"\xff" + (limit + n).to_bytes(width - 1, "big")

    raise ValueError(f"Value {n} does not fit in the {label} field")


def calc_checksums(block: bytes) -> tuple[int, int]:
    """Return the unsigned and signed header checksums of *block*.

    The checksum field itself is counted as eight spaces (8 * 0x20 = 256).
    Some historic writers summed signed bytes, so both are accepted.
    """
    unsigned_chksum = 256 + sum(struct.unpack_from("148B8x356B", block))
    signed_chksum = 256 + sum(struct.unpack_from("148b8x356b", block))
    return unsigned_chksum, signed_chksum


def padding(size: int) -> bytes:
    """Zero bytes that bring *size* up to the next block boundary."""
    return NUL * (-size % BLOCK_SIZE)


# ---- decoding ---------------------------------------------------------------


def _verify_checksum(block: bytes) -> None:
    try:
        stored = _decode_number(block[148:156], "chksum")
    except MalformedArchiveError as exc:
        raise ChecksumError(f"Unreadable header checksum: {exc}") from exc
    if stored not in calc_checksums(block):
        raise ChecksumError(
            f"Header checksum mismatch (stored {stored:o}, computed "
            f"{calc_checksums(block)[0]:o})"
        )


def _detect_format(block: bytes, strict: bool) -> Format:
    magic = block[257:265]
    if magic == _GNU_MAGIC:
        return Format.GNU
    if magic[:6] == _USTAR_MAGIC[:6]:
        return Format.USTAR
    if magic == _V7_MAGIC:
        return Format.V7
    if strict:
        raise UnsupportedFormatError(f"Unrecognised header magic: {magic!r}")
    log.warning("Unrecognised header magic %r; reading entry as V7", magic)
    return Format.V7


def decode_header(block: bytes, *, strict: bool = DEFAULT_STRICT_FORMAT) -> Header:
    """Decode one non-zero header block.

    :raises TruncatedArchiveError: If *block* is shorter than a block.
    :raises ChecksumError: If the stored checksum does not match.
    :raises UnsupportedFormatError: If *strict* and the magic is unknown.
    :raises MalformedArchiveError: If a numeric field cannot be parsed.
    """
    if len(block) != BLOCK_SIZE:
        raise TruncatedArchiveError(
            f"Archive ended inside a header block ({len(block)} bytes)"
        )

    _verify_checksum(block)
    fmt = _detect_format(block, strict)

    name = _decode_string(block[0:100])
    if fmt is Format.USTAR:
        prefix = _decode_string(block[345:500])
        if prefix:
            name = f"{prefix}/{name}"

    # V7 headers end after the linkname field.
    uname = gname = ""
    devmajor = devminor = 0
    if fmt is not Format.V7:
        uname = _decode_string(block[265:297])
        gname = _decode_string(block[297:329])
        devmajor = _decode_number(block[329:337], "devmajor")
        devminor = _decode_number(block[337:345], "devminor")

    size = _decode_number(block[124:136], "size")
    if size < 0:
        raise MalformedArchiveError(f"Negative size in header: {size}")

    return Header(
        name=name,
        mode=_decode_number(block[100:108], "mode"),
        uid=_decode_number(block[108:116], "uid"),
        gid=_decode_number(block[116:124], "gid"),
        size=size,
        mtime=_decode_number(block[136:148], "mtime"),
        type_code=block[156:157],
        linkname=_decode_string(block[157:257]),
        format=fmt,
        uname=uname,
        gname=gname,
        devmajor=devmajor,
        devminor=devminor,
    )


def carries_body(type_code: bytes) -> bool:
    """Return True if the data blocks of *type_code* are kept on read."""
    return type_code not in _BODYLESS_TYPES


def build_entry(header: Header, path: str, linkname: str, body: Body) -> Entry:
    """Combine a decoded header, its resolved names and body into an Entry.

    *path* and *linkname* override the header fields when a GNU long-name
    entry preceded the header.
    """
    match header.type_code:
        case b"0" | b"\x00" | b"7":
            content = NormalFile(body=body, size=header.size)
        case b"1":
            content = HardLink(target=linkname)
        case b"2":
            content = SymbolicLink(target=linkname)
        case b"3":
            content = CharacterDevice(major=header.devmajor, minor=header.devminor)
        case b"4":
            content = BlockDevice(major=header.devmajor, minor=header.devminor)
        case b"5":
            content = Directory()
        case b"6":
            content = NamedPipe()
        case _:
            content = OtherEntryType(
                type_code=header.type_code, body=body, size=header.size
            )

    return Entry(
        path=TarPath(path),
        content=content,
        permissions=header.mode,
        owner_id=header.uid,
        group_id=header.gid,
        owner_name=header.uname,
        group_name=header.gname,
        modification_time=header.mtime,
        format=header.format,
    )


# ---- encoding ---------------------------------------------------------------


def _content_fields(entry: Entry) -> tuple[bytes, str, int, int]:
    """Return ``(type_code, linkname, devmajor, devminor)`` for *entry*."""
    match entry.content:
        case NormalFile():
            return REGTYPE, "", 0, 0
        case Directory():
            return DIRTYPE, "", 0, 0
        case SymbolicLink(target=target):
            return SYMTYPE, target, 0, 0
        case HardLink(target=target):
            return LNKTYPE, target, 0, 0
        case CharacterDevice(major=major, minor=minor):
            return CHRTYPE, "", major, minor
        case BlockDevice(major=major, minor=minor):
            return BLKTYPE, "", major, minor
        case NamedPipe():
            return FIFOTYPE, "", 0, 0
        case OtherEntryType(type_code=type_code):
            return type_code, "", 0, 0
    raise TypeError(f"Unknown entry content: {entry.content!r}")


def _encoded_length(value: str) -> int:
    return len(value.encode(ENCODING, ENCODING_ERRORS))


def _header_layout(
    entry: Entry, linkname: str, numbers: dict[str, int]
) -> tuple[Format, tuple[str, str] | None]:
    """Pick the format *entry* is written in and its Ustar path split.

    The format is upgraded to GNU when the standard fields are too small.
    The split is the ``(prefix, name)`` pair for a Ustar header and
    ``None`` for the other formats.
    """
    fmt = entry.format
    if fmt is Format.GNU:
        return fmt, None

    split = entry.path.split_ustar() if fmt is Format.USTAR else None
    reason = None
    if fmt is Format.USTAR and split is None:
        reason = "path does not fit the name and prefix fields"
    elif fmt is Format.V7 and _encoded_length(entry.path.value) > NAME_SIZE:
        reason = "path does not fit the name field"
    elif _encoded_length(linkname) > LINKNAME_SIZE:
        reason = "link target does not fit the linkname field"
    else:
        for label, value in numbers.items():
            if not _fits_octal(value, _NUMBER_WIDTHS[label]):
                reason = f"{label} does not fit an octal field"
                break

    if reason is None:
        return fmt, split
    log.debug("Writing %r with GNU extensions: %s", entry.path.value, reason)
    return Format.GNU, None


def _pack_block(
    *,
    name: str,
    prefix: str,
    numbers: dict[str, int],
    type_code: bytes,
    linkname: str,
    fmt: Format,
    uname: str = "",
    gname: str = "",
) -> bytes:
    magic = {
        Format.V7: _V7_MAGIC,
        Format.USTAR: _USTAR_MAGIC,
        Format.GNU: _GNU_MAGIC,
    }[fmt]

    parts = [
        _encode_string(name, NAME_SIZE),
        _encode_number(numbers["mode"], 8, fmt, "mode"),
        _encode_number(numbers["uid"], 8, fmt, "uid"),
        _encode_number(numbers["gid"], 8, fmt, "gid"),
        _encode_number(numbers["size"], 12, fmt, "size"),
        _encode_number(numbers["mtime"], 12, fmt, "mtime"),
        b" " * 8,
        type_code,
        _encode_string(linkname, LINKNAME_SIZE),
        magic,
    ]
    if fmt is not Format.V7:
        parts += [
            _encode_string(uname, OWNER_NAME_SIZE),
            _encode_string(gname, OWNER_NAME_SIZE),
            _encode_number(numbers["devmajor"], 8, fmt, "devmajor"),
            _encode_number(numbers["devminor"], 8, fmt, "devminor"),
            _encode_string(prefix, PREFIX_SIZE),
        ]

    block = b"".join(parts)
    block += NUL * (BLOCK_SIZE - len(block))

    # The checksum goes in last: six octal digits, NUL, and the space
    # already in place.
    chksum = calc_checksums(block)[0]
    return block[:148] + bytes("%06o\0" % chksum, "ascii") + block[155:]


def _long_name_blocks(value: str, type_code: bytes) -> bytes:
    raw = value.encode(ENCODING, ENCODING_ERRORS) + NUL
    numbers = dict.fromkeys(_NUMBER_WIDTHS, 0)
    numbers["size"] = len(raw)
    header = _pack_block(
        name=LONGLINK_NAME,
        prefix="",
        numbers=numbers,
        type_code=type_code,
        linkname="",
        fmt=Format.GNU,
    )
    return header + raw + padding(len(raw))


def encode_header(entry: Entry) -> bytes:
    """Encode the header block(s) of *entry*.

    Returns one block, preceded by GNU long-name/long-link entries when the
    path or link target needs them.

    :raises ValueError: If an owner name is too long, or a number does not
        fit its field even in base-256.
    """
    type_code, linkname, devmajor, devminor = _content_fields(entry)

    for label, value in (("owner", entry.owner_name), ("group", entry.group_name)):
        if _encoded_length(value) > OWNER_NAME_SIZE:
            raise ValueError(
                f"{label} name longer than {OWNER_NAME_SIZE} bytes: {value!r}"
            )

    numbers = {
        "mode": entry.permissions,
        "uid": entry.owner_id,
        "gid": entry.group_id,
        "size": entry.size,
        "mtime": entry.modification_time,
        "devmajor": devmajor,
        "devminor": devminor,
    }
    fmt, split = _header_layout(entry, linkname, numbers)

    blocks = []
    path = entry.path.value
    prefix = ""
    name = path
    if split is not None:
        prefix, name = split
    elif _encoded_length(path) > NAME_SIZE:
        blocks.append(_long_name_blocks(path, GNUTYPE_LONGNAME))

    if _encoded_length(linkname) > LINKNAME_SIZE:
        blocks.append(_long_name_blocks(linkname, GNUTYPE_LONGLINK))

    blocks.append(
        _pack_block(
            name=name,
            prefix=prefix,
            numbers=numbers,
            type_code=type_code,
            linkname=linkname,
            fmt=fmt,
            uname=entry.owner_name,
            gname=entry.group_name,
        )
    )
    return b"".join(blocks)


def entry_body(entry: Entry) -> Body:
    match entry.content:
        case NormalFile(body=body) | OtherEntryType(body=body):
            return body
        case _:
            return b""


def encode_entry(entry: Entry) -> bytes:
    """Encode *entry* completely: header block(s), body and padding."""
    body = read_body(entry_body(entry))
    return encode_header(entry) + body + padding(len(body))
