"""In-memory record store, optionally seeded from a JSON file.

The JSON file is either a list of documents (each with an ``id`` key) or an
object mapping ids to documents. Duplicate ids in a list are kept as-is;
the store does not police id uniqueness.
"""

from __future__ import annotations

import copy
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .base import Document, RecordNotFoundError, RecordStore, StoreParseError

logger = logging.getLogger(__name__)


class InMemoryStore(RecordStore):
    name = "memory"

    def __init__(self, documents: Optional[Iterable[Document]] = None) -> None:
        self._docs: List[Document] = [
            (doc_id, copy.deepcopy(data)) for doc_id, data in (documents or [])
        ]

    @classmethod
    def from_json(cls, payload: Union[str, bytes]) -> "InMemoryStore":
        try:
            raw = json.loads(payload)
        except ValueError as exc:
            raise StoreParseError(f"Invalid JSON data: {exc}") from exc
        if isinstance(raw, dict):
            docs = [(str(k), v if isinstance(v, dict) else {}) for k, v in raw.items()]
        elif isinstance(raw, list):
            docs = []
            for i, item in enumerate(raw):
                if not isinstance(item, dict):
                    continue
                data = dict(item)
                doc_id = str(data.pop("id", "") or f"doc-{i}")
                docs.append((doc_id, data))
        else:
            raise StoreParseError("JSON data must be a list or an object of documents")
        return cls(docs)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InMemoryStore":
        store = cls.from_json(Path(path).read_text(encoding="utf-8"))
        logger.debug("Loaded %d documents from %s", len(store._docs), path)
        return store

    def to_json(self) -> str:
        return json.dumps(
            [{"id": doc_id, **data} for doc_id, data in self._docs],
            indent=2,
            default=str,
        )

    def _index(self, doc_id: str) -> int:
        for i, (current, _) in enumerate(self._docs):
            if current == doc_id:
                return i
        raise RecordNotFoundError(doc_id)

    def list_documents(self) -> List[Document]:
        return [(doc_id, copy.deepcopy(data)) for doc_id, data in self._docs]

    def get_document(self, doc_id: str) -> Dict[str, Any]:
        return copy.deepcopy(self._docs[self._index(doc_id)][1])

    def create_document(self, data: Dict[str, Any]) -> str:
        data = copy.deepcopy(data)
        if not any(k in data for k in ("timestamp", "createdAt")):
            data["timestamp"] = datetime.now(timezone.utc)
        doc_id = uuid.uuid4().hex[:20]
        self._docs.append((doc_id, data))
        return doc_id

    def update_document(self, doc_id: str, changes: Dict[str, Any]) -> None:
        i = self._index(doc_id)
        self._docs[i][1].update(copy.deepcopy(changes))

    def delete_document(self, doc_id: str) -> None:
        del self._docs[self._index(doc_id)]
