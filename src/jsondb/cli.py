"""jsondb CLI — document collections stored as JSON files.

Commands:
    jsondb init [NAME]                   create jsondb.toml + data dir
    jsondb list                          list collections
    jsondb create NAME                   create an empty collection
    jsondb drop NAME                     delete a collection
    jsondb insert NAME JSON              insert a document
    jsondb find NAME [QUERY]             print matching documents
    jsondb update NAME QUERY UPDATE      apply $set / $unset to matches
    jsondb delete NAME [QUERY]           delete matching documents
    jsondb stats                         document count per collection
    jsondb serve                         start the JSON HTTP API
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import click

from jsondb.config import JsonDBConfig, init_config, load_config
from jsondb.engine import JsonDB
from jsondb.errors import JsonDBError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> JsonDBConfig:
    try:
        return load_config()
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def _open_db(cfg: JsonDBConfig | None = None) -> JsonDB:
    try:
        return JsonDB.from_config(cfg or _load_cfg())
    except JsonDBError as exc:
        raise click.ClickException(str(exc)) from exc


def _parse_json(text: str | None, what: str) -> dict[str, Any]:
    if not text:
        return {}
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"{what} is not valid JSON: {exc}"
        raise click.BadParameter(msg) from exc
    if not isinstance(value, dict):
        msg = f"{what} must be a JSON object"
        raise click.BadParameter(msg)
    return value


def _echo_json(value: Any) -> None:
    click.echo(json.dumps(value, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="jsondb")
@click.option("-v", "--verbose", is_flag=True, help="Log engine activity to stderr")
def cli(verbose: bool) -> None:
    """jsondb — file-backed JSON document store."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(name: str | None, root: str) -> None:
    """Create jsondb.toml and the data directory."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, name=name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("jsondb.toml already exists — skipping init")

    db = _open_db(load_config(root_path))
    click.echo(f"Data dir : {db.store.data_dir}")


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


@cli.command("list")
def list_cmd() -> None:
    """List collections."""
    for name in sorted(_open_db().list_collections()):
        click.echo(name)


@cli.command()
@click.argument("name")
def create(name: str) -> None:
    """Create an empty collection (no-op if it exists)."""
    db = _open_db()
    try:
        db.create_collection(name)
    except JsonDBError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created {name}")


@cli.command()
@click.argument("name")
def drop(name: str) -> None:
    """Delete a collection and all its documents."""
    db = _open_db()
    try:
        existed = db.drop_collection(name)
    except JsonDBError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Dropped {name}" if existed else f"No such collection: {name}")


@cli.command()
def stats() -> None:
    """Show document count per collection."""
    db = _open_db()
    names = sorted(db.list_collections())
    if not names:
        click.echo("No collections")
        return
    width = max(len(n) for n in names)
    for name in names:
        click.echo(f"{name:<{width}}  {db.count(name)}")


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name")
@click.argument("document")
def insert(name: str, document: str) -> None:
    """Insert DOCUMENT (a JSON object) into collection NAME."""
    doc = _parse_json(document, "DOCUMENT")
    try:
        stored = _open_db().insert(name, doc)
    except JsonDBError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_json(stored)


@cli.command()
@click.argument("name")
@click.argument("query", required=False)
def find(name: str, query: str | None) -> None:
    """Print documents of NAME matching QUERY (default: all)."""
    predicate = _parse_json(query, "QUERY")
    try:
        docs = _open_db().find(name, predicate)
    except JsonDBError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_json(docs)


@cli.command()
@click.argument("name")
@click.argument("query")
@click.argument("update_spec", metavar="UPDATE")
def update(name: str, query: str, update_spec: str) -> None:
    """Apply UPDATE ({"$set": ..., "$unset": ...}) to documents matching QUERY."""
    predicate = _parse_json(query, "QUERY")
    spec = _parse_json(update_spec, "UPDATE")
    try:
        modified = _open_db().update(name, predicate, spec)
    except JsonDBError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Modified {modified}")


@cli.command()
@click.argument("name")
@click.argument("query", required=False)
def delete(name: str, query: str | None) -> None:
    """Delete documents of NAME matching QUERY (default: all)."""
    predicate = _parse_json(query, "QUERY")
    try:
        deleted = _open_db().delete(name, predicate)
    except JsonDBError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Deleted {deleted}")


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", default=None, help="Bind address (default from jsondb.toml)")
@click.option("--port", type=int, default=None, help="Port (default from jsondb.toml)")
def serve(host: str | None, port: int | None) -> None:
    """Start the JSON HTTP API (blocking)."""
    from jsondb.api import serve as _serve

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s")
    cfg = _load_cfg()
    _serve(
        _open_db(cfg),
        host if host is not None else cfg.server.host,
        port if port is not None else cfg.server.port,
    )
