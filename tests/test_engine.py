"""Behavioural tests for the JsonDB call contract."""

import threading

import pytest

from jsondb.engine import JsonDB
from jsondb.errors import (
    DuplicateId,
    InvalidDocument,
    InvalidName,
    InvalidQuery,
    InvalidUpdate,
    UnsupportedOperator,
)
from jsondb.store import CollectionStore


def test_insert_without_id_is_findable_by_id(db):
    src = {"name": "Alice Smith", "email": "alice@example.com", "age": 28}
    stored = db.insert("customers", src)
    assert stored["_id"]
    found = db.find("customers", {"_id": stored["_id"]})
    assert found == [{**src, "_id": stored["_id"]}]


def test_round_trip_by_exact_field(db):
    stored = db.insert("customers", {"name": "Bob", "tags": ["x", "y"], "meta": {"n": 1.5}, "ok": None})
    assert db.find("customers", {"name": "Bob"}) == [stored]


def test_find_all_keeps_insertion_order(db):
    ids = [db.insert("log", {"i": i})["_id"] for i in range(25)]
    assert [d["_id"] for d in db.find("log", {})] == ids
    assert [d["_id"] for d in db.find("log")] == ids


def test_find_on_missing_collection_is_empty(db):
    assert db.find("ghost", {"a": 1}) == []


def test_create_twice_keeps_documents(db):
    db.create_collection("users")
    db.insert("users", {"a": 1})
    db.create_collection("users")
    db.create_collection("users")
    assert db.count("users") == 1


def test_create_rejects_empty_name(db):
    with pytest.raises(InvalidName):
        db.create_collection("$$$")


def test_operator_examples(users):
    assert [d["name"] for d in users.find("users", {"age": {"$gt": 25}})] == ["John Doe"]
    assert users.find("users", {"age": {"$lt": 25}}) == []
    assert [d["name"] for d in users.find("users", {"role": {"$in": ["admin", "guest"]}})] == ["John Doe"]
    assert [d["email"] for d in users.find("users", {"email": {"$regex": "EXAMPLE"}})] == [
        "john@example.com",
        "jane@example.com",
    ]


def test_update_sets_field_and_keeps_others(users):
    before = users.find("users", {"name": "John Doe"})[0]
    assert users.update("users", {"name": "John Doe"}, {"$set": {"age": 31}}) == 1
    after = users.find("users", {"name": "John Doe"})[0]
    assert after == {**before, "age": 31}


def test_update_unset(users):
    assert users.update("users", {}, {"$unset": {"role": ""}}) == 2
    assert all("role" not in d for d in users.find("users"))


def test_update_counts_matches_even_without_change(users):
    assert users.update("users", {"role": "admin"}, {"$set": {"role": "admin"}}) == 1


def test_update_no_match_does_not_write(users):
    path = users.store.path_for("users")
    mtime = path.stat().st_mtime_ns
    assert users.update("users", {"name": "Nobody"}, {"$set": {"x": 1}}) == 0
    assert path.stat().st_mtime_ns == mtime


def test_update_cannot_change_id(users):
    ids = [d["_id"] for d in users.find("users")]
    users.update("users", {}, {"$set": {"_id": "same"}})
    assert [d["_id"] for d in users.find("users")] == ids


def test_delete_all_returns_size(users):
    assert users.delete("users", {}) == 2
    assert users.find("users", {}) == []


def test_delete_by_predicate(users):
    assert users.delete("users", {"age": {"$lt": 28}}) == 1
    assert [d["name"] for d in users.find("users")] == ["John Doe"]


def test_delete_on_missing_collection(db):
    assert db.delete("ghost", {}) == 0
    assert db.list_collections() == set()


def test_drop(users):
    assert users.drop_collection("nonexistent") is False
    assert users.drop_collection("users") is True
    assert "users" not in users.list_collections()


def test_list_collections(db):
    db.create_collection("a")
    db.insert("b", {"x": 1})
    assert db.list_collections() == {"a", "b"}


def test_insert_duplicate_id_rejected(db):
    db.insert("users", {"_id": "u1"})
    with pytest.raises(DuplicateId):
        db.insert("users", {"_id": "u1"})
    assert db.count("users") == 1


def test_external_writes_are_visible(db, store):
    db.insert("users", {"name": "a"})
    # Another process rewriting the file directly
    other = CollectionStore(store.data_dir)
    other.write("users", [{"_id": "x", "name": "b"}])
    assert db.find("users") == [{"_id": "x", "name": "b"}]


def test_strict_operators(store):
    strict = JsonDB(store, strict_operators=True)
    strict.insert("users", {"age": 3})
    with pytest.raises(UnsupportedOperator):
        strict.find("users", {"age": {"$gte": 1}})
    with pytest.raises(UnsupportedOperator):
        strict.update("users", {}, {"$inc": {"age": 1}})
    assert strict.find("users") == [{"_id": strict.find("users")[0]["_id"], "age": 3}]


def test_concurrent_updates_and_deletes(db):
    for i in range(50):
        db.insert("jobs", {"i": i, "state": "new"})

    def _claim(lo, hi):
        for i in range(lo, hi):
            db.update("jobs", {"i": i}, {"$set": {"state": "done"}})

    def _delete_odd():
        for i in range(1, 50, 2):
            db.delete("jobs", {"i": i})

    threads = [
        threading.Thread(target=_claim, args=(0, 25)),
        threading.Thread(target=_claim, args=(25, 50)),
        threading.Thread(target=_delete_odd),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    docs = db.find("jobs")
    assert [d["i"] for d in docs] == list(range(0, 50, 2))
    assert all(d["state"] == "done" for d in docs)


def test_non_mapping_predicates_are_rejected(users):
    with pytest.raises(InvalidQuery):
        users.find("users", ["a"])
    with pytest.raises(InvalidQuery):
        users.update("users", ["a"], {"$set": {"x": 1}})
    with pytest.raises(InvalidQuery):
        users.delete("users", "everything")
    assert users.count("users") == 2


def test_predicate_checked_on_empty_collection(db):
    with pytest.raises(InvalidQuery):
        db.delete("ghost", [1])


def test_non_mapping_update_is_rejected_without_writing(users):
    path = users.store.path_for("users")
    mtime = path.stat().st_mtime_ns
    with pytest.raises(InvalidUpdate):
        users.update("users", {}, ["x"])
    assert path.stat().st_mtime_ns == mtime


def test_unencodable_insert_is_invalid_document(users):
    with pytest.raises(InvalidDocument):
        users.insert("users", {"name": "\ud800"})
    assert users.count("users") == 2
