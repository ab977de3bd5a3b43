"""Shared fixtures: a store and database rooted in a pytest tmp_path."""

import pytest

from jsondb.engine import JsonDB
from jsondb.store import CollectionStore


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def store(data_dir):
    return CollectionStore(data_dir)


@pytest.fixture
def db(store):
    return JsonDB(store)


@pytest.fixture
def users(db):
    """The two-user collection used throughout the operator tests."""
    db.create_collection("users")
    db.insert("users", {"name": "John Doe", "email": "john@example.com", "age": 30, "role": "admin"})
    db.insert("users", {"name": "Jane Smith", "email": "jane@example.com", "age": 25, "role": "user"})
    return db
