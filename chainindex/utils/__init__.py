"""
Utilities package for the chain index.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of domain-specific logic.
"""

from chainindex.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
