"""JsonDBConfig: project-local config for a jsondb data directory.

Default layout (all relative to the project root):

    jsondb.toml           # project config
    .env                  # optional: JSONDB_DATA_DIR
    .jsondb/
        data/             # one <collection>.json per collection

jsondb.toml example:

    [jsondb]
    name = "my-project"
    # data_dir = ".jsondb/data"   # default
    pretty = true                 # indent collection files
    strict_names = false          # reject names that lose characters when sanitized
    strict_operators = false      # reject unknown $operators instead of ignoring them

    [server]
    host = "127.0.0.1"
    port = 7350
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "jsondb.toml"
_DEFAULT_DATA_DIR = ".jsondb/data"
_DATA_DIR_ENV = "JSONDB_DATA_DIR"


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 7350


@dataclass
class JsonDBConfig:
    """Resolved configuration for a jsondb project."""

    root: Path                      # directory that contains jsondb.toml
    name: str = ""
    data_dir: Path = field(default_factory=Path)
    pretty: bool = True
    strict_names: bool = False
    strict_operators: bool = False
    server: ServerConfig = field(default_factory=ServerConfig)


def _load_env(root: Path) -> dict[str, str]:
    """Parse a simple KEY=VALUE .env file."""
    env_file = root / ".env"
    if not env_file.exists():
        return {}
    env: dict[str, str] = {}
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            env[k.strip()] = v.strip().strip('"').strip("'")
    return env


def load_config(root: Path | str | None = None) -> JsonDBConfig:
    """Load jsondb.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    db_section = raw.get("jsondb", {})
    srv_section = raw.get("server", {})

    # Process env wins over .env, .env wins over jsondb.toml
    env = _load_env(root_path)
    data_rel = (
        os.environ.get(_DATA_DIR_ENV)
        or env.get(_DATA_DIR_ENV)
        or db_section.get("data_dir", _DEFAULT_DATA_DIR)
    )

    return JsonDBConfig(
        root=root_path,
        name=db_section.get("name", root_path.name),
        data_dir=root_path / data_rel,
        pretty=bool(db_section.get("pretty", True)),
        strict_names=bool(db_section.get("strict_names", False)),
        strict_operators=bool(db_section.get("strict_operators", False)),
        server=ServerConfig(
            host=str(srv_section.get("host", "127.0.0.1")),
            port=int(srv_section.get("port", 7350)),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for jsondb.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default jsondb.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"jsondb.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
[jsondb]
name = "{project_name}"
# data_dir = ".jsondb/data"   # default; or set JSONDB_DATA_DIR in .env
# pretty = true
# strict_names = false        # true: reject names like "my-users" instead of mapping them to "myusers"
# strict_operators = false    # true: unknown $operators raise instead of being ignored

# [server]
# host = "127.0.0.1"
# port = 7350
"""
    config_path.write_text(content)
    return config_path
