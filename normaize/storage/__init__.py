"""
Storage port, backends and the telemetry/chaos adapter.
"""

from .adapter import StorageAdapter
from .base import StoragePort, detect_storage_provider
from .local import LocalStorage
from .memory import InMemoryStorage

__all__ = [
    "InMemoryStorage",
    "LocalStorage",
    "StorageAdapter",
    "StoragePort",
    "detect_storage_provider",
]
