"""File-based JSON document store with a MongoDB-like query language.

Layout:
    .jsondb/
        data/
            <collection>.json   # JSON array of documents, rewritten whole on every change

Documents are JSON objects with a unique string "_id" (generated on insert
when absent). Queries support $eq, $ne, $gt, $lt, $regex and $in; updates
support $set and $unset.

Concurrent writes: each mutation holds a per-collection lock (in-process) and
replaces the file via write-to-temp + rename.
"""

from jsondb.config import JsonDBConfig, init_config, load_config
from jsondb.engine import JsonDB
from jsondb.errors import (
    DuplicateId,
    InvalidDocument,
    InvalidName,
    InvalidQuery,
    InvalidUpdate,
    JsonDBError,
    PersistenceError,
    UnsupportedOperator,
)
from jsondb.query import apply_update, delete_matching, matches, select_all
from jsondb.store import CollectionStore

__all__ = [
    "CollectionStore",
    "DuplicateId",
    "InvalidDocument",
    "InvalidName",
    "InvalidQuery",
    "InvalidUpdate",
    "JsonDB",
    "JsonDBConfig",
    "JsonDBError",
    "PersistenceError",
    "UnsupportedOperator",
    "apply_update",
    "delete_matching",
    "init_config",
    "load_config",
    "matches",
    "select_all",
]
