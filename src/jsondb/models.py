"""Document identity and validation helpers."""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping
from typing import Any

from jsondb.errors import DuplicateId, InvalidDocument

Document = dict[str, Any]

ID_FIELD = "_id"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")


def new_document_id() -> str:
    """Generate an opaque document ID: doc_<32 hex chars>."""
    return "doc_" + uuid.uuid4().hex


def sanitize_name(raw: str) -> str:
    """Keep only ASCII letters, digits and underscore."""
    return _UNSAFE_NAME_CHARS.sub("", raw or "")


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def identical(a: Any, b: Any) -> bool:
    """JSON identity: same type and same value, no coercion.

    Booleans are never equal to numbers and strings are never equal to
    numbers. JSON has a single number type, so 5 and 5.0 are identical.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a is b
    if is_number(a) or is_number(b):
        return is_number(a) and is_number(b) and a == b
    if isinstance(a, Mapping) or isinstance(b, Mapping):
        if not (isinstance(a, Mapping) and isinstance(b, Mapping)):
            return False
        if a.keys() != b.keys():
            return False
        return all(identical(a[k], b[k]) for k in a)
    if isinstance(a, list) or isinstance(b, list):
        if not (isinstance(a, list) and isinstance(b, list)) or len(a) != len(b):
            return False
        return all(identical(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


def prepare_document(document: Any, existing_ids: set[str]) -> Document:
    """Validate an insert payload and return a copy with _id populated."""
    if not isinstance(document, Mapping):
        msg = f"Document must be a JSON object, got {type(document).__name__}"
        raise InvalidDocument(msg)

    doc: Document = dict(document)
    doc_id = doc.get(ID_FIELD)
    if doc_id is None:
        doc_id = new_document_id()
        while doc_id in existing_ids:
            doc_id = new_document_id()
        doc[ID_FIELD] = doc_id
    elif not isinstance(doc_id, str) or not doc_id:
        msg = f"_id must be a non-empty string, got {doc_id!r}"
        raise InvalidDocument(msg)
    elif doc_id in existing_ids:
        msg = f"Duplicate _id: {doc_id}"
        raise DuplicateId(msg)
    return doc
