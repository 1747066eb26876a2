"""Raise client SDK"""
from raise_client.config import Settings, get_settings
from raise_client.errors import ErrorCode, LocalErrorCode, RaiseError, parse_error

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "get_settings",
    "ErrorCode",
    "LocalErrorCode",
    "RaiseError",
    "parse_error",
    "__version__",
]
