"""
Wingmann Engine - Storage Module
"""

from .blob_store import (
    BlobReadError,
    BlobStore,
    LocalBlobStore,
    SupabaseBlobStore,
    create_blob_store,
)

__all__ = [
    "BlobReadError",
    "BlobStore",
    "LocalBlobStore",
    "SupabaseBlobStore",
    "create_blob_store",
]
