"""Persistence collaborators: record stores and blob storage.

The core never talks to these directly; dashboard/entries helpers fetch raw
documents here and hand them to the normalizer.
"""
from __future__ import annotations

from .base import (
    Document,
    MissingCredentialsError,
    RecordNotFoundError,
    RecordStore,
    StoreHTTPError,
    StoreParseError,
    UploadError,
)
from .firestore import FirestoreStore
from .memory import InMemoryStore
from .storage import BlobStorage, BlobUpload

__all__ = [
    "BlobStorage",
    "BlobUpload",
    "Document",
    "FirestoreStore",
    "InMemoryStore",
    "MissingCredentialsError",
    "RecordNotFoundError",
    "RecordStore",
    "StoreHTTPError",
    "StoreParseError",
    "UploadError",
]
