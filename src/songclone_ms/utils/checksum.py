"""
CRC-32 Checksum.

Standard reflected CRC-32 as used by ZIP, gzip and PNG:
    - Polynomial 0xEDB88320 (bit-reversed 0x04C11DB7)
    - Initial register 0xFFFFFFFF
    - Final value XORed with 0xFFFFFFFF

Computed bit-at-a-time; training datasets are a few megabytes at most,
so no lookup table is kept.

Check values:
    >>> crc32(b"")
    0
    >>> hex(crc32(b"123456789"))
    '0xcbf43926'
"""
from __future__ import annotations

CRC32_POLYNOMIAL = 0xEDB88320
_MASK = 0xFFFFFFFF


def crc32(data: bytes, value: int = 0) -> int:
    """
    Compute the CRC-32 of ``data``.

    Args:
        data: Bytes to checksum.
        value: Running checksum from a previous call, for incremental use
            (``crc32(b, crc32(a)) == crc32(a + b)``).

    Returns:
        Unsigned 32-bit checksum.
    """
    crc = value ^ _MASK
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ CRC32_POLYNOMIAL
            else:
                crc >>= 1
    return crc ^ _MASK
