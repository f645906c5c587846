"""On-disk layout of IPS records.

Layout of a patch:

    "PATCH"                              5 bytes
    record*                              see below
    "EOF"                                3 bytes

Each record starts with a 3-byte big-endian address, followed by either

    length (2 bytes, > 0) + length literal bytes        plain record
    0x0000 + count (2 bytes) + fill byte (1 byte)       RLE record

The trailer is told apart from an address only by its literal value, so the
address 0x454F46 can never start a record.
"""
from dataclasses import dataclass

HEADER = b"PATCH"
TRAILER = b"EOF"

ADDRESS_SIZE = 3
LENGTH_SIZE = 2

EOF_ADDRESS = 0x454F46  # encodes to b"EOF"
MAX_ADDRESS = 0xFFFFFF
MAX_LENGTH = 0xFFFF


def encode_address(offset: int) -> bytes:
    return bytes([(offset >> 16) & 0xFF, (offset >> 8) & 0xFF, offset & 0xFF])


def encode_length(n: int) -> bytes:
    return bytes([(n >> 8) & 0xFF, n & 0xFF])


def decode_address(b: bytes) -> int:
    return b[0] * 65536 + b[1] * 256 + b[2]


def decode_length(b: bytes) -> int:
    return b[0] * 256 + b[1]


def is_reserved_address(offset: int) -> bool:
    """True if the encoded address would read back as the EOF trailer.

    Only the low 24 bits reach the patch, so truncated offsets count too.
    """
    return offset & MAX_ADDRESS == EOF_ADDRESS


@dataclass(frozen=True)
class Record:
    """One patch unit.

    Plain records carry their payload in ``data``. RLE records have
    ``rle_count`` > 0 and a single fill byte in ``data``.
    """

    offset: int
    data: bytes
    rle_count: int = 0

    def __post_init__(self):
        if not 0 <= self.offset <= MAX_ADDRESS:
            raise ValueError(f"Offset 0x{self.offset:X} does not fit in 24 bits")
        if self.rle_count:
            if not 0 < self.rle_count <= MAX_LENGTH:
                raise ValueError(f"RLE count {self.rle_count} out of range 1..{MAX_LENGTH}")
            if len(self.data) != 1:
                raise ValueError("RLE record needs exactly one fill byte")
        elif not 0 < len(self.data) <= MAX_LENGTH:
            raise ValueError(f"Record payload length {len(self.data)} out of range 1..{MAX_LENGTH}")

    @property
    def is_rle(self) -> bool:
        return self.rle_count > 0

    @property
    def end(self) -> int:
        return self.offset + len(self)

    def __len__(self) -> int:
        # bytes written to the target, not the encoded size
        return self.rle_count if self.is_rle else len(self.data)

    def payload(self) -> bytes:
        """Bytes this record writes at ``offset``."""
        return self.data * self.rle_count if self.is_rle else self.data

    def to_bytes(self) -> bytes:
        if self.is_rle:
            return encode_address(self.offset) + encode_length(0) + encode_length(self.rle_count) + self.data
        return encode_address(self.offset) + encode_length(len(self.data)) + self.data
