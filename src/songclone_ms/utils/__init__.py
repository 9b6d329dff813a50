"""
Utility Modules for songclone-ms.

This package provides small, dependency-free helpers:
    - checksum.py: CRC-32 (IEEE, reflected) for archive entries
    - archive.py: Single-entry stored ZIP writer for training datasets
    - timeit.py: Wall-clock measurement for provider round trips
"""
