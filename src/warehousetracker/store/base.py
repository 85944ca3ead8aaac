from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from ..config import Settings

# (document id, raw document fields)
Document = Tuple[str, Dict[str, Any]]


class MissingCredentialsError(RuntimeError):
    """Raised when required store settings are not configured."""


class StoreHTTPError(RuntimeError):
    """Raised for unexpected HTTP status/content from a store endpoint."""


class StoreParseError(RuntimeError):
    """Raised when a store response cannot be decoded."""


class RecordNotFoundError(KeyError):
    """Raised when a document id does not exist in the store."""


class UploadError(RuntimeError):
    """Raised when any upload in a batch fails; the batch as a whole failed."""


class RecordStore(ABC):
    """
    Minimal contract for the persistent shipment store.

    The store hands back raw documents; normalization happens elsewhere.
    There is no server-side filtering, sorting or pagination in the contract:
    list_documents returns the whole collection.
    """

    # Machine-readable store key (e.g., "firestore", "memory"). Override in subclass.
    name: str = "unknown"

    # --- Core contract ---
    @abstractmethod
    def list_documents(self) -> List[Document]:
        """Fetch every document in the shipment collection."""
        raise NotImplementedError

    @abstractmethod
    def get_document(self, doc_id: str) -> Dict[str, Any]:
        """Fetch one document or raise RecordNotFoundError."""
        raise NotImplementedError

    @abstractmethod
    def create_document(self, data: Dict[str, Any]) -> str:
        """Persist a new document and return its store-assigned id."""
        raise NotImplementedError

    @abstractmethod
    def update_document(self, doc_id: str, changes: Dict[str, Any]) -> None:
        """Overwrite the given top-level fields of an existing document."""
        raise NotImplementedError

    @abstractmethod
    def delete_document(self, doc_id: str) -> None:
        raise NotImplementedError

    async def alist_documents(self) -> List[Document]:
        """Async variant of list_documents; stores with real I/O override it."""
        return self.list_documents()


def ensure_setting(settings: Settings, attr: str, env_var: str) -> str:
    """Fetch a required setting or raise a helpful error."""
    val = getattr(settings, attr)
    if not val:
        raise MissingCredentialsError(
            f"{env_var} is not set. Add it to your environment or .env file."
        )
    return val
