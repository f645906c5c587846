"""Tests for creating IPS patches."""

import io
import os
import random
import tempfile
import unittest

from ipspatch.applier import apply_patch_bytes, iter_records
from ipspatch.encoder import (
    create_patch_file,
    diff_records,
    encode_patch,
    encode_patch_legacy,
    find_runs,
    is_different,
)
from ipspatch.errors import AddressRangeError
from ipspatch.record_codec import EOF_ADDRESS, MAX_LENGTH, Record


def records_of(patch):
    stream = io.BytesIO(patch)
    assert stream.read(5) == b"PATCH"
    return list(iter_records(stream))


# ── helpers ──────────────────────────────────────────────────────────────

def random_pair(rng, size, changes, grow=0):
    original = bytes(rng.randrange(256) for _ in range(size))
    modified = bytearray(original)
    for _ in range(changes):
        pos = rng.randrange(size)
        for i in range(pos, min(size, pos + rng.randrange(1, 12))):
            modified[i] = rng.randrange(256)
    modified.extend(rng.randrange(256) for _ in range(grow))
    return original, bytes(modified)


class ScanTest(unittest.TestCase):

    def test_is_different(self):
        self.assertTrue(is_different(b"ab", b"aXc", 1))
        self.assertTrue(is_different(b"ab", b"aXc", 2))
        self.assertFalse(is_different(b"ab", b"aXc", 0))

    def test_runs(self):
        self.assertEqual(list(find_runs(b"\x00" * 8, b"\x00\x01\x01\x00\x01\x00\x00\x01")), [(1, 3), (4, 5), (7, 8)])

    def test_unchanged_byte_ends_run(self):
        self.assertEqual(list(find_runs(b"abcd", b"XbYd")), [(0, 1), (2, 3)])

    def test_extension_joins_open_run(self):
        self.assertEqual(list(find_runs(b"abc", b"abXdef")), [(2, 6)])

    def test_extension_alone(self):
        self.assertEqual(list(find_runs(b"abc", b"abcdef")), [(3, 6)])

    def test_shorter_modified(self):
        self.assertEqual(list(find_runs(b"abcdef", b"aX")), [(1, 2)])


class EncodeTest(unittest.TestCase):

    def test_concrete_scenario(self):
        patch = encode_patch(b"\x00\x00\x00\x00", b"\x00\xff\xff\x00")
        self.assertEqual(patch, bytes.fromhex("50 41 54 43 48 00 00 01 00 02 FF FF 45 4F 46"))
        self.assertEqual(apply_patch_bytes(b"\x00\x00\x00\x00", patch), bytearray(b"\x00\xff\xff\x00"))

    def test_identical_inputs(self):
        data = bytes(range(256))
        self.assertEqual(encode_patch(data, data), b"PATCHEOF")
        self.assertEqual(encode_patch(b"", b""), b"PATCHEOF")

    def test_extension_scenario(self):
        original = b"abc"
        modified = b"abcdefg"
        patch = encode_patch(original, modified)
        self.assertEqual(records_of(patch), [Record(3, b"defg")])
        self.assertEqual(apply_patch_bytes(original, patch), bytearray(modified))

    def test_extension_from_empty(self):
        patch = encode_patch(b"", b"xyz")
        self.assertEqual(records_of(patch), [Record(0, b"xyz")])

    def test_last_byte_run_has_true_length(self):
        patch = encode_patch(b"\x00\x00\x00", b"\x00\x00\x07")
        self.assertEqual(records_of(patch), [Record(2, b"\x07")])

    def test_no_rle_records(self):
        patch = encode_patch(bytes(100), b"\x05" * 100)
        recs = records_of(patch)
        self.assertTrue(recs)
        self.assertFalse(any(r.is_rle for r in recs))

    def test_long_run_split(self):
        size = MAX_LENGTH + 4465
        original = bytes(size)
        modified = b"\x01" * size
        recs = list(diff_records(original, modified))
        self.assertEqual([(r.offset, len(r)) for r in recs], [(0, MAX_LENGTH), (MAX_LENGTH, 4465)])
        self.assertEqual(apply_patch_bytes(original, encode_patch(original, modified)), bytearray(modified))

    def test_roundtrip_random(self):
        rng = random.Random(1234)
        for size, changes, grow in [(1, 1, 0), (64, 3, 0), (500, 20, 0), (300, 10, 50), (0, 0, 17)]:
            original, modified = random_pair(rng, size, changes, grow) if size else (b"", bytes(range(grow)))
            patch = encode_patch(original, modified)
            self.assertEqual(apply_patch_bytes(original, patch), bytearray(modified))


class ReservedAddressTest(unittest.TestCase):
    # buffers reaching just past the EOF address

    def setUp(self):
        self.original = bytes(EOF_ADDRESS + 2)

    def test_run_at_eof_address_shifted(self):
        modified = bytearray(self.original)
        modified[EOF_ADDRESS] = 0x01
        modified[EOF_ADDRESS + 1] = 0x02
        modified = bytes(modified)
        recs = list(diff_records(self.original, modified))
        self.assertEqual(recs, [Record(EOF_ADDRESS - 1, b"\x00\x01\x02")])
        patch = encode_patch(self.original, modified)
        self.assertNotIn(b"EOF\x00", patch[5:-3])
        self.assertEqual(apply_patch_bytes(self.original, patch), bytearray(modified))

    def test_split_landing_on_eof_address(self):
        modified = bytearray(self.original)
        start = EOF_ADDRESS - MAX_LENGTH
        for i in range(start, EOF_ADDRESS + 2):
            modified[i] = 0xEE
        modified = bytes(modified)
        recs = list(diff_records(self.original, modified))
        self.assertEqual([r.offset for r in recs], [start, EOF_ADDRESS - 1])
        self.assertEqual(apply_patch_bytes(self.original, encode_patch(self.original, modified)), bytearray(modified))


class StrictTest(unittest.TestCase):

    def test_offset_past_24_bits(self):
        original = bytes(1 << 24)
        modified = original + b"\x01"
        with self.assertRaises(AddressRangeError):
            encode_patch(original, modified)
        recs = list(diff_records(original, modified, strict=False))
        self.assertEqual(recs, [Record(0, b"\x01")])

    def test_truncated_offset_avoids_eof_address(self):
        size = (1 << 24) + EOF_ADDRESS
        original = bytes(size)
        modified = original + b"\x01"
        patch = encode_patch(original, modified, strict=False)
        self.assertNotEqual(patch[5:8], b"EOF")
        self.assertEqual(patch, b"PATCH" + bytes.fromhex("454f45 0002 0001") + b"EOF")
        self.assertEqual(records_of(patch), [Record(EOF_ADDRESS - 1, b"\x00\x01")])


class LegacyEncoderTest(unittest.TestCase):

    def test_matches_corrected_on_simple_input(self):
        original = b"\x00\x00\x00\x00"
        modified = b"\x00\xff\xff\x00"
        self.assertEqual(encode_patch_legacy(original, modified), encode_patch(original, modified))

    def test_matches_corrected_on_tail_run(self):
        original = b"abcdef"
        modified = b"aXcdYZ"
        self.assertEqual(encode_patch_legacy(original, modified), encode_patch(original, modified))

    def test_identical(self):
        self.assertEqual(encode_patch_legacy(b"abc", b"abc"), b"PATCHEOF")

    def test_last_byte_quirk_at_eof_address(self):
        original = bytes(EOF_ADDRESS + 1)
        modified = original[:-1] + b"\x01"
        # two record bytes behind a length of one
        expected = b"PATCH" + bytes.fromhex("454f45 0001 0001") + b"EOF"
        self.assertEqual(encode_patch_legacy(original, modified), expected)
        self.assertEqual(
            encode_patch(original, modified),
            b"PATCH" + bytes.fromhex("454f45 0002 0001") + b"EOF",
        )


class CreateFileTest(unittest.TestCase):

    def test_writes_patch(self):
        with tempfile.TemporaryDirectory() as d:
            orig = os.path.join(d, "orig.bin")
            mod = os.path.join(d, "mod.bin")
            out = os.path.join(d, "out", "patch.ips")
            with open(orig, "wb") as f:
                f.write(b"\x00\x00\x00\x00")
            with open(mod, "wb") as f:
                f.write(b"\x00\xff\xff\x00")
            size = create_patch_file(out, orig, mod)
            with open(out, "rb") as f:
                data = f.read()
            self.assertEqual(size, len(data))
            self.assertEqual(data, bytes.fromhex("5041544348 000001 0002 ffff 454f46"))

    def test_missing_input(self):
        with tempfile.TemporaryDirectory() as d:
            with self.assertRaises(OSError):
                create_patch_file(os.path.join(d, "p.ips"), os.path.join(d, "nope"), os.path.join(d, "nope2"))


if __name__ == "__main__":
    unittest.main()
