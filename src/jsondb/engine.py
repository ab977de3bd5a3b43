"""JsonDB: the collection-level call contract.

    db = JsonDB(CollectionStore(".jsondb/data"))
    db.create_collection("users")
    doc = db.insert("users", {"name": "John Doe", "age": 30})
    db.find("users", {"age": {"$gt": 25}})
    db.update("users", {"name": "John Doe"}, {"$set": {"age": 31}})
    db.delete("users", {"age": {"$lt": 18}})

Each call reloads the collection from disk, so changes made by other
processes are visible on the next call. Mutating calls hold the store's
per-collection lock across the whole read-compute-write cycle.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from jsondb.query import apply_update, check_predicate, check_update, delete_matching, matches, select_all
from jsondb.store import CollectionStore

if TYPE_CHECKING:
    from collections.abc import Mapping

    from jsondb.config import JsonDBConfig
    from jsondb.models import Document

logger = logging.getLogger("jsondb.engine")


class JsonDB:
    """Document database over a CollectionStore."""

    def __init__(self, store: CollectionStore, *, strict_operators: bool = False) -> None:
        self.store = store
        self.strict_operators = strict_operators

    @classmethod
    def from_config(cls, cfg: JsonDBConfig) -> JsonDB:
        store = CollectionStore(cfg.data_dir, pretty=cfg.pretty, strict_names=cfg.strict_names)
        return cls(store, strict_operators=cfg.strict_operators)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def list_collections(self) -> set[str]:
        return self.store.list()

    def create_collection(self, name: str) -> None:
        self.store.create(name)

    def drop_collection(self, name: str) -> bool:
        return self.store.drop(name)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def insert(self, name: str, document: Mapping[str, Any]) -> Document:
        doc = self.store.insert(name, document)
        logger.debug("inserted %s into %s", doc["_id"], name)
        return doc

    def find(self, name: str, predicate: Mapping[str, Any] | None = None) -> list[Document]:
        check_predicate(predicate)
        return select_all(self.store.read(name), predicate, strict=self.strict_operators)

    def count(self, name: str, predicate: Mapping[str, Any] | None = None) -> int:
        return len(self.find(name, predicate))

    def update(self, name: str, predicate: Mapping[str, Any] | None, update_spec: Mapping[str, Any] | None) -> int:
        """Apply update_spec to every matching document. Returns the matched count."""
        check_predicate(predicate)
        check_update(update_spec)
        strict = self.strict_operators

        def _update(docs: list[Document]) -> tuple[list[Document] | None, int]:
            modified = 0
            for doc in docs:
                if matches(doc, predicate, strict=strict):
                    apply_update(doc, update_spec, strict=strict)
                    modified += 1
            return (docs if modified else None), modified

        modified = self.store.mutate(name, _update)
        logger.debug("updated %d documents in %s", modified, name)
        return modified

    def delete(self, name: str, predicate: Mapping[str, Any] | None = None) -> int:
        """Remove every matching document. Returns the removed count."""
        check_predicate(predicate)
        strict = self.strict_operators

        def _delete(docs: list[Document]) -> tuple[list[Document] | None, int]:
            remaining, deleted = delete_matching(docs, predicate, strict=strict)
            return (remaining if deleted else None), deleted

        deleted = self.store.mutate(name, _delete)
        logger.debug("deleted %d documents from %s", deleted, name)
        return deleted
