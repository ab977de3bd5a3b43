"""Predicate matching and update application over in-memory documents.

Predicates follow a small MongoDB-like language:

    {"name": "John Doe"}                         # literal identity
    {"age": {"$gt": 25}, "role": {"$in": ["admin", "guest"]}}
    {"email": {"$regex": "example"}}             # case-insensitive search

Fields are ANDed, operators under one field are ANDed. A missing field is
treated as None. Unknown operators are ignored unless strict=True.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from jsondb.errors import InvalidQuery, InvalidUpdate, UnsupportedOperator
from jsondb.models import ID_FIELD, Document, identical, is_number

logger = logging.getLogger("jsondb.query")

QUERY_OPERATORS = frozenset({"$eq", "$ne", "$gt", "$lt", "$regex", "$in"})
UPDATE_OPERATORS = frozenset({"$set", "$unset"})


# ---------------------------------------------------------------------------
# Clause evaluation
# ---------------------------------------------------------------------------


def _is_operator_mapping(criteria: Any) -> bool:
    return isinstance(criteria, Mapping) and any(
        isinstance(k, str) and k.startswith("$") for k in criteria
    )


def _comparable(value: Any, operand: Any) -> bool:
    if is_number(operand):
        return is_number(value)
    if isinstance(operand, str):
        return isinstance(value, str)
    return False


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return json.dumps(value)
    return json.dumps(value, separators=(",", ":"))


def _regex_search(pattern: Any, value: Any) -> bool:
    if not isinstance(pattern, str):
        return False
    try:
        return re.search(pattern, _stringify(value), re.IGNORECASE) is not None
    except re.error as exc:
        logger.debug("bad $regex pattern %r: %s", pattern, exc)
        return False


def _eval_op(op: str, value: Any, operand: Any) -> bool:
    if op == "$eq":
        return identical(value, operand)
    if op == "$ne":
        return not identical(value, operand)
    if op == "$gt":
        return _comparable(value, operand) and value > operand
    if op == "$lt":
        return _comparable(value, operand) and value < operand
    if op == "$regex":
        return _regex_search(operand, value)
    if op == "$in":
        return isinstance(operand, list) and any(identical(value, o) for o in operand)
    return True


def _match_field(value: Any, criteria: Any, *, strict: bool) -> bool:
    if not _is_operator_mapping(criteria):
        return identical(value, criteria)
    for op, operand in criteria.items():
        if op not in QUERY_OPERATORS:
            if strict:
                msg = f"Unsupported query operator: {op}"
                raise UnsupportedOperator(msg)
            continue
        if not _eval_op(op, value, operand):
            return False
    return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def check_predicate(predicate: Any) -> None:
    """Raise InvalidQuery unless predicate is a mapping or None."""
    if predicate is not None and not isinstance(predicate, Mapping):
        msg = f"Query must be a JSON object, got {type(predicate).__name__}"
        raise InvalidQuery(msg)


def check_update(update_spec: Any) -> None:
    """Raise InvalidUpdate unless update_spec is a mapping or None."""
    if update_spec is not None and not isinstance(update_spec, Mapping):
        msg = f"Update must be a JSON object, got {type(update_spec).__name__}"
        raise InvalidUpdate(msg)


def matches(document: Mapping[str, Any], predicate: Mapping[str, Any] | None, *, strict: bool = False) -> bool:
    """True if document satisfies every clause of predicate.

    Stops at the first failing clause. An empty predicate matches everything.
    """
    check_predicate(predicate)
    if not predicate:
        return True
    for field_name, criteria in predicate.items():
        if not _match_field(document.get(field_name), criteria, strict=strict):
            return False
    return True


def select_all(
    documents: Iterable[Document],
    predicate: Mapping[str, Any] | None,
    *,
    strict: bool = False,
) -> list[Document]:
    """Matching documents, in their original order."""
    return [doc for doc in documents if matches(doc, predicate, strict=strict)]


def delete_matching(
    documents: list[Document],
    predicate: Mapping[str, Any] | None,
    *,
    strict: bool = False,
) -> tuple[list[Document], int]:
    """Split off matching documents. Returns (remaining, removed_count)."""
    remaining = [doc for doc in documents if not matches(doc, predicate, strict=strict)]
    return remaining, len(documents) - len(remaining)


def _unset_keys(spec: Any) -> Iterable[Any]:
    if isinstance(spec, Mapping):
        return list(spec.keys())
    if isinstance(spec, list):
        return spec
    return ()


def apply_update(document: Document, update_spec: Mapping[str, Any] | None, *, strict: bool = False) -> Document:
    """Apply $set / $unset to document in place and return it.

    The _id field is never assigned or removed.
    """
    check_update(update_spec)
    if not update_spec:
        return document
    if strict:
        unknown = [k for k in update_spec if k not in UPDATE_OPERATORS]
        if unknown:
            msg = f"Unsupported update operator: {unknown[0]}"
            raise UnsupportedOperator(msg)

    to_set = update_spec.get("$set")
    if isinstance(to_set, Mapping):
        for key, value in to_set.items():
            if key != ID_FIELD:
                document[key] = value

    for key in _unset_keys(update_spec.get("$unset")):
        if isinstance(key, str) and key != ID_FIELD:
            document.pop(key, None)
    return document
