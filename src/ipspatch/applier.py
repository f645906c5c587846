"""Apply IPS patches in place."""
import io
import logging
from pathlib import Path
from typing import BinaryIO, Iterator

from .errors import FormatError, TruncatedStreamError
from .record_codec import (
    ADDRESS_SIZE,
    HEADER,
    LENGTH_SIZE,
    TRAILER,
    Record,
    decode_address,
    decode_length,
)

log = logging.getLogger(__name__)


def _read_exact(patch: BinaryIO, n: int, what: str) -> bytes:
    data = patch.read(n)
    if len(data) < n:
        raise TruncatedStreamError(f"Unexpected end of patch reading {what} ({len(data)} of {n} bytes)")
    return data


def read_header(patch: BinaryIO) -> None:
    magic = patch.read(len(HEADER))
    if magic != HEADER:
        raise FormatError(f"Bad magic bytes {magic!r}, expected {HEADER!r}")


def iter_records(patch: BinaryIO) -> Iterator[Record]:
    """Yield records from ``patch`` (positioned after the header) up to the trailer."""
    while True:
        raw = _read_exact(patch, ADDRESS_SIZE, "address")
        if raw == TRAILER:
            return
        offset = decode_address(raw)
        length = decode_length(_read_exact(patch, LENGTH_SIZE, "length"))
        if length:
            yield Record(offset, _read_exact(patch, length, "payload"))
        else:
            count = decode_length(_read_exact(patch, LENGTH_SIZE, "RLE count"))
            fill = _read_exact(patch, 1, "RLE fill byte")
            # a zero count writes nothing; keep the record out of the stream
            if count:
                yield Record(offset, fill, rle_count=count)
            else:
                log.warning("Skipping empty RLE record at 0x%06X", offset)


def apply_patch(target: BinaryIO, patch: BinaryIO) -> int:
    """Apply every record of ``patch`` to ``target`` in stream order.

    ``target`` must be seekable and writable. Records past the current end
    extend it. Nothing is written before the header has been checked, but a
    failure later on leaves the target partially patched.

    Returns the number of records applied.
    """
    read_header(patch)
    log.debug("    start = PATCH")
    applied = 0
    for record in iter_records(patch):
        log.debug(
            "offset = %06X length = %d %s",
            record.offset,
            len(record),
            "RLE fill=%02X" % record.data[0] if record.is_rle else "non-RLE",
        )
        target.seek(record.offset)
        target.write(record.payload())
        applied += 1
    log.debug("      end = EOF")
    return applied


def apply_patch_bytes(data: bytes, patch_bytes: bytes) -> bytearray:
    """Return a patched copy of ``data``."""
    target = io.BytesIO(data)
    apply_patch(target, io.BytesIO(patch_bytes))
    return bytearray(target.getvalue())


def apply_patch_file(data_path: str | Path, patch_path: str | Path) -> int:
    """Patch ``data_path`` in place with the IPS file at ``patch_path``."""
    with open(patch_path, "rb") as patch, open(data_path, "r+b") as target:
        return apply_patch(target, patch)
