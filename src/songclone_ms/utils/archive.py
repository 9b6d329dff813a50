"""
Single-Entry ZIP Writer.

Packages one payload into a ZIP archive with compression method 0
(stored). The training provider accepts a zipped dataset directory, and
the dataset only ever holds one recording, so this writer supports
exactly one entry.

Layout (all integers little-endian):
    offset 0           Local file header (30 bytes + name)
                       Payload bytes
    cd_offset          Central directory header (46 bytes + name)
    cd_offset+cd_size  End of central directory record (22 bytes)

The central directory records a local-header offset of 0. That is only
correct because the single entry always starts the archive; do not
extend this writer to multiple entries without tracking real offsets.

Example:
    >>> data = build_single_entry_zip("dataset/voice-sample.wav", b"RIFF....")
    >>> data[:4]
    b'PK\\x03\\x04'
"""
from __future__ import annotations

import struct
from dataclasses import dataclass

from songclone_ms.utils.checksum import crc32

LOCAL_HEADER_SIGNATURE = 0x04034B50
CENTRAL_HEADER_SIGNATURE = 0x02014B50
END_OF_CENTRAL_DIR_SIGNATURE = 0x06054B50

ZIP_VERSION = 20            # 2.0: minimum for directories in names
METHOD_STORED = 0
# Fixed DOS timestamp: 00:00:00 on 2022-01-01 (date 0x5421).
DOS_TIME = 0x0000
DOS_DATE = 0x5421

_LOCAL_HEADER = struct.Struct("<IHHHHHIIIHH")
_CENTRAL_HEADER = struct.Struct("<IHHHHHHIIIHHHHHII")
_END_OF_CENTRAL_DIR = struct.Struct("<IHHHHIIH")

# Hard format limits for a non-ZIP64 archive.
_MAX_SIZE = 0xFFFFFFFF
_MAX_NAME = 0xFFFF


@dataclass(frozen=True)
class ArchiveEntry:
    """
    The one file stored in the archive.

    Attributes:
        name: Path inside the archive, "/" separated.
        data: Uncompressed payload.
        crc32: CRC-32 of the payload.
        size: Payload length (compressed and uncompressed are equal).
    """
    name: str
    data: bytes
    crc32: int
    size: int

    @classmethod
    def create(cls, name: str, data: bytes) -> "ArchiveEntry":
        if not name:
            raise ValueError("archive entry name must not be empty")
        if len(name.encode("utf-8")) > _MAX_NAME:
            raise ValueError("archive entry name too long")
        if len(data) > _MAX_SIZE:
            raise ValueError("payload too large for a non-ZIP64 archive")
        return cls(name=name, data=bytes(data), crc32=crc32(data), size=len(data))


class SingleEntryZipBuilder:
    """
    Writes a ZIP archive containing exactly one stored entry.

    Usage:
        builder = SingleEntryZipBuilder("dataset/voice-sample.wav", wav_bytes)
        zip_bytes = builder.build()
        builder.entry.crc32   # checksum written into both headers
    """

    def __init__(self, name: str, data: bytes):
        self.entry = ArchiveEntry.create(name, data)

    def _local_header(self, name: bytes) -> bytes:
        e = self.entry
        return _LOCAL_HEADER.pack(
            LOCAL_HEADER_SIGNATURE,
            ZIP_VERSION,        # version needed
            0,                  # flags
            METHOD_STORED,
            DOS_TIME,
            DOS_DATE,
            e.crc32,
            e.size,             # compressed
            e.size,             # uncompressed
            len(name),
            0,                  # extra length
        ) + name

    def _central_header(self, name: bytes) -> bytes:
        e = self.entry
        return _CENTRAL_HEADER.pack(
            CENTRAL_HEADER_SIGNATURE,
            ZIP_VERSION,        # version made by
            ZIP_VERSION,        # version needed
            0,                  # flags
            METHOD_STORED,
            DOS_TIME,
            DOS_DATE,
            e.crc32,
            e.size,
            e.size,
            len(name),
            0,                  # extra length
            0,                  # comment length
            0,                  # disk number start
            0,                  # internal attributes
            0,                  # external attributes
            0,                  # local header offset (single entry)
        ) + name

    def build(self) -> bytes:
        """Return the complete archive bytes."""
        name = self.entry.name.encode("utf-8")

        out = bytearray()
        out += self._local_header(name)
        out += self.entry.data

        cd_offset = len(out)
        out += self._central_header(name)
        cd_size = len(out) - cd_offset

        out += _END_OF_CENTRAL_DIR.pack(
            END_OF_CENTRAL_DIR_SIGNATURE,
            0,                  # this disk
            0,                  # disk with central directory
            1,                  # entries on this disk
            1,                  # total entries
            cd_size,
            cd_offset,
            0,                  # comment length
        )
        return bytes(out)


def build_single_entry_zip(name: str, data: bytes) -> bytes:
    """Build a one-entry stored ZIP archive. See SingleEntryZipBuilder."""
    return SingleEntryZipBuilder(name, data).build()
