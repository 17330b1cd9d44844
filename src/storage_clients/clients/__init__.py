"""
Storage Clients - Object Storage Clients.

Storage adapters whose requests are driven by the retry executor.
"""

from .base import BaseStorageClient
from .http import HttpStorageClient

__all__ = [
    "BaseStorageClient",
    "HttpStorageClient",
]
