from __future__ import annotations

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import StoreError

logger = logging.getLogger("shoebot.store")

Document = Dict[str, Any]
ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_document(model: Type[ModelT], document: Document, collection: str) -> ModelT:
    """Build a model from a stored document; bad documents raise StoreError."""
    try:
        return model(**document)
    except ValidationError as exc:
        logger.error("collection=%s invalid document error=%s", collection, exc.errors())
        raise StoreError(f"invalid {collection} document: {exc.error_count()} error(s)") from exc


class JsonDocumentStore:
    """Keyed JSON document collection with atomic find-and-modify."""

    def __init__(self, path: Optional[Path] = None) -> None:
        """Purpose: Initialize the collection and hydrate from disk if available.
        Inputs/Outputs: Input is an optional JSON file path; None keeps data in memory.
        Side Effects / State: Loads documents into an in-memory dict.
        Dependencies: Calls _load.
        Failure Modes: A corrupt file is logged and treated as empty.
        If Removed: Carts, orders, and histories have nowhere to live.
        Testing Notes: Write documents, build a new store on the same path, read back.
        """
        # Keep the backing file and a lock serialising read-modify-write cycles.
        self._path = path
        self._lock = threading.RLock()
        self._documents: Dict[str, Document] = {}
        self._load()

    def _load(self) -> None:
        # Read and decode persisted JSON if present.
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("store=%s corrupt file ignored", self._path.name)
            return
        documents = data.get("documents", {}) if isinstance(data, dict) else {}
        self._documents = {key: doc for key, doc in documents.items() if isinstance(doc, dict)}

    def _persist(self) -> None:
        """Purpose: Write all documents to disk.
        Inputs/Outputs: Writes to self._path; no return value.
        Side Effects / State: Replaces the JSON file via a temp file.
        Dependencies: json.dumps and Path.replace.
        Failure Modes: OSError is re-raised as StoreError.
        If Removed: Nothing survives a restart.
        Testing Notes: Point the store at a read-only directory and expect StoreError.
        """
        # Write to a sibling temp file and swap it in.
        if not self._path:
            return
        payload = {"documents": self._documents}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise StoreError(f"could not write {self._path.name}: {exc}") from exc

    def get(self, key: str) -> Optional[Document]:
        with self._lock:
            document = self._documents.get(key)
            return copy.deepcopy(document) if document is not None else None

    def find_and_modify(
        self, key: str, update: Callable[[Optional[Document]], Optional[Document]]
    ) -> Optional[Document]:
        """Purpose: Apply an update to one document as a single atomic step.
        Inputs/Outputs: Inputs are a key and a function mapping the current document
            (or None) to the new document (or None to delete); returns the new document.
        Side Effects / State: Mutates and persists the collection under the lock.
        Dependencies: _persist.
        Failure Modes: Exceptions from update leave the collection unchanged; a failed
            persist restores the previous document and raises StoreError.
        If Removed: Cart mutations degrade to racy read-then-write sequences.
        Testing Notes: Raise inside update and verify the stored document is untouched.
        """
        # Hold the lock across read, update, and write.
        with self._lock:
            previous = self._documents.get(key)
            updated = update(copy.deepcopy(previous) if previous is not None else None)
            if updated is None:
                self._documents.pop(key, None)
            else:
                self._documents[key] = updated
            try:
                self._persist()
            except StoreError:
                if previous is None:
                    self._documents.pop(key, None)
                else:
                    self._documents[key] = previous
                raise
            return copy.deepcopy(updated) if updated is not None else None

    def put(self, key: str, document: Document) -> Document:
        stored = self.find_and_modify(key, lambda _current: document)
        if stored is None:
            raise StoreError(f"document {key} was not stored")
        return stored

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = key in self._documents
            if existed:
                self.find_and_modify(key, lambda _current: None)
            return existed

    def find(self, predicate: Callable[[Document], bool]) -> List[Document]:
        with self._lock:
            return [copy.deepcopy(doc) for doc in self._documents.values() if predicate(doc)]
