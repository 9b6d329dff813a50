"""
Tests for CRC-32 and the single-entry ZIP writer.

The archive is checked with the standard library's zipfile reader, which
validates the CRC of the stored entry on read.
"""
import io
import struct
import zipfile
import zlib

import pytest

from songclone_ms.utils.archive import (
    CENTRAL_HEADER_SIGNATURE,
    DOS_DATE,
    END_OF_CENTRAL_DIR_SIGNATURE,
    LOCAL_HEADER_SIGNATURE,
    METHOD_STORED,
    ArchiveEntry,
    SingleEntryZipBuilder,
    build_single_entry_zip,
)
from songclone_ms.utils.checksum import crc32


class TestCrc32:
    """Tests for crc32()."""

    def test_empty_input_is_zero(self):
        assert crc32(b"") == 0

    def test_check_value(self):
        assert crc32(b"123456789") == 0xCBF43926

    def test_single_byte(self):
        assert crc32(b"a") == 0xE8B7BE43

    def test_matches_zlib(self):
        data = bytes(range(256)) * 3
        assert crc32(data) == zlib.crc32(data)

    def test_incremental(self):
        assert crc32(b"world", crc32(b"hello ")) == crc32(b"hello world")

    def test_result_is_unsigned_32_bit(self):
        value = crc32(b"\xff" * 64)
        assert 0 <= value <= 0xFFFFFFFF


class TestArchiveEntry:
    """Tests for ArchiveEntry.create()."""

    def test_create_computes_crc_and_size(self):
        entry = ArchiveEntry.create("a.txt", b"abc")
        assert entry.size == 3
        assert entry.crc32 == crc32(b"abc")

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            ArchiveEntry.create("", b"abc")


class TestSingleEntryZip:
    """Tests for SingleEntryZipBuilder."""

    NAME = "dataset/voice-sample.wav"

    def test_signatures(self):
        data = build_single_entry_zip(self.NAME, b"RIFF0000WAVE")
        assert data[:4] == b"PK\x03\x04"
        assert struct.unpack_from("<I", data, 0)[0] == LOCAL_HEADER_SIGNATURE
        assert struct.unpack_from("<I", data, len(data) - 22)[0] == END_OF_CENTRAL_DIR_SIGNATURE

    def test_total_length(self):
        payload = b"x" * 1000
        data = build_single_entry_zip(self.NAME, payload)
        name_len = len(self.NAME.encode("utf-8"))
        assert len(data) == 30 + name_len + len(payload) + 46 + name_len + 22

    def test_local_header_fields(self):
        payload = b"hello"
        data = build_single_entry_zip(self.NAME, payload)
        (sig, version, flags, method, mtime, mdate, crc, csize, usize,
         name_len, extra_len) = struct.unpack_from("<IHHHHHIIIHH", data, 0)
        assert method == METHOD_STORED
        assert mdate == DOS_DATE
        assert crc == crc32(payload)
        assert csize == usize == len(payload)
        assert name_len == len(self.NAME)
        assert extra_len == 0
        assert data[30:30 + name_len].decode() == self.NAME

    def test_payload_stored_verbatim(self):
        payload = bytes(range(200))
        data = build_single_entry_zip(self.NAME, payload)
        start = 30 + len(self.NAME)
        assert data[start:start + len(payload)] == payload

    def test_central_directory_offset(self):
        payload = b"abc"
        data = build_single_entry_zip(self.NAME, payload)
        eocd = struct.unpack_from("<IHHHHIIH", data, len(data) - 22)
        entries, cd_size, cd_offset = eocd[4], eocd[5], eocd[6]
        assert entries == 1
        assert cd_offset == 30 + len(self.NAME) + len(payload)
        assert cd_size == 46 + len(self.NAME)
        assert struct.unpack_from("<I", data, cd_offset)[0] == CENTRAL_HEADER_SIGNATURE

    def test_readable_by_zipfile(self):
        payload = b"RIFF" + bytes(5000)
        data = build_single_entry_zip(self.NAME, payload)
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.namelist() == [self.NAME]
            assert zf.testzip() is None
            assert zf.read(self.NAME) == payload

    def test_empty_payload(self):
        data = build_single_entry_zip(self.NAME, b"")
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.read(self.NAME) == b""

    def test_builder_exposes_entry(self):
        builder = SingleEntryZipBuilder(self.NAME, b"abc")
        assert builder.entry.crc32 == crc32(b"abc")
        assert builder.build() == build_single_entry_zip(self.NAME, b"abc")
