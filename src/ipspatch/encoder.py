"""Create IPS patches from the byte-by-byte difference of two files.

Only plain (non-RLE) records are produced. Bytes past the end of the
original always count as changed, so a longer modified file is covered by
trailing records. A shorter modified file cannot be expressed in IPS; the
surplus original bytes are left alone.
"""
import logging
import zlib
from pathlib import Path
from typing import Iterator

from .errors import AddressRangeError
from .record_codec import (
    HEADER,
    MAX_ADDRESS,
    MAX_LENGTH,
    TRAILER,
    Record,
    encode_address,
    encode_length,
    is_reserved_address,
)

log = logging.getLogger(__name__)


def is_different(original: bytes, modified: bytes, index: int) -> bool:
    return index >= len(original) or modified[index] != original[index]


def find_runs(original: bytes, modified: bytes) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` of every maximal run of changed bytes in ``modified``."""
    start = None  # start of the run being recorded, None when not recording
    for pos, (old, new) in enumerate(zip(original, modified)):
        if old != new:
            if start is None:
                start = pos
        elif start is not None:
            yield start, pos
            start = None

    if len(modified) > len(original):
        # everything past the original is changed; joins a run still open
        yield (len(original) if start is None else start), len(modified)
    elif start is not None:
        yield start, len(modified)


def diff_records(original: bytes, modified: bytes, strict: bool = True) -> Iterator[Record]:
    """Yield the records turning ``original`` into ``modified``.

    Runs longer than MAX_LENGTH are split. A record that would start at the
    reserved EOF address starts one byte earlier instead, carrying the
    modified byte at that position. With ``strict`` an offset past the 24-bit
    address space raises AddressRangeError, otherwise it is truncated.
    """
    if len(modified) < len(original):
        log.warning(
            "Modified data is %d bytes shorter than original; IPS cannot truncate",
            len(original) - len(modified),
        )
    for start, end in find_runs(original, modified):
        pos = start
        while pos < end:
            if is_reserved_address(pos):
                log.debug("offset %06X collides with EOF, starting one byte earlier", pos)
                pos -= 1
            if pos > MAX_ADDRESS:
                if strict:
                    raise AddressRangeError(f"Offset 0x{pos:X} does not fit in 24 bits")
                log.warning("Truncating offset 0x%X to 24 bits", pos)
            length = min(MAX_LENGTH, end - pos)
            yield Record(pos & MAX_ADDRESS, bytes(modified[pos:pos + length]))
            pos += length


def _trace_record(record: Record) -> None:
    for i, b in enumerate(encode_address(record.offset)):
        log.debug("offset[%d] = %02x", i, b)
    for i, b in enumerate(encode_length(len(record))):
        log.debug("  size[%d] = %02x", i, b)
    for b in record.data:
        log.debug("   record = %02x", b)
    log.debug("---")


def encode_patch(original: bytes, modified: bytes, strict: bool = True) -> bytes:
    out = bytearray(HEADER)
    log.debug("    start = PATCH")
    for record in diff_records(original, modified, strict=strict):
        if log.isEnabledFor(logging.DEBUG):
            _trace_record(record)
        out.extend(record.to_bytes())
    log.debug("      end = EOF")
    out.extend(TRAILER)
    return bytes(out)


def _close_legacy_record(out: bytearray, record: bytearray) -> None:
    size = encode_length(len(record))
    log.debug("  size[0] = %02x", size[0])
    log.debug("  size[1] = %02x", size[1])
    out.extend(size)
    for b in record:
        log.debug("   record = %02x", b)
    out.extend(record)
    log.debug("---")


def encode_patch_legacy(original: bytes, modified: bytes) -> bytes:
    """Historical streaming encoder, kept byte-for-byte for compatibility.

    The address is written as soon as a run starts. A run starting on the last
    byte of ``modified`` is always closed with length 1, even when the
    EOF-address shift has put two bytes in it.
    """
    out = bytearray(HEADER)
    log.debug("    start = PATCH")
    record = bytearray()
    recording = False
    last = len(modified) - 1

    for a in range(len(modified)):
        if not recording:
            if not is_different(original, modified, a):
                continue
            record = bytearray()
            recording = True
            start = a
            if is_reserved_address(a):
                record.append(modified[a - 1])
                start = a - 1
            record.append(modified[a])

            address = encode_address(start)
            for i, b in enumerate(address):
                log.debug("offset[%d] = %02x", i, b)
            out.extend(address)

            if a == last:
                recording = False
                log.debug("    final = 00 01")
                out.extend(b"\x00\x01")
                for b in record:
                    log.debug("   record = %02x", b)
                out.extend(record)
        elif is_different(original, modified, a):
            record.append(modified[a])
            if a == last:
                recording = False
                _close_legacy_record(out, record)
        else:
            recording = False
            _close_legacy_record(out, record)

    log.debug("      end = EOF")
    out.extend(TRAILER)
    return bytes(out)


def create_patch_file(
    out_path: str | Path,
    original_path: str | Path,
    modified_path: str | Path,
    legacy: bool = False,
    strict: bool = True,
) -> int:
    """Write a patch from ``original_path`` to ``modified_path``; return its size."""
    original = Path(original_path).read_bytes()
    modified = Path(modified_path).read_bytes()
    log.debug(
        "original %d bytes crc32=%08X, modified %d bytes crc32=%08X",
        len(original),
        zlib.crc32(original),
        len(modified),
        zlib.crc32(modified),
    )
    if legacy:
        patch = encode_patch_legacy(original, modified)
    else:
        patch = encode_patch(original, modified, strict=strict)
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(patch)
    return len(patch)
