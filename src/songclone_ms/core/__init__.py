"""
Core Infrastructure for songclone-ms.

This package provides foundational components:
    - config.py: Configuration loading, validation and credentials
    - errors.py: Error codes and exception taxonomy
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
