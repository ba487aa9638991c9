"""
Core module initialization.
Exports configuration, logging and token utilities.
"""

from qrorder.core.config import get_settings, setup_logging, Settings, EnvironmentMode, StorageBackend
from qrorder.core.security import TokenService, TokenPair

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "StorageBackend",
    "TokenService",
    "TokenPair",
]
