"""Tests for jsondb.toml loading."""

import pytest

from jsondb.config import init_config, load_config
from jsondb.engine import JsonDB


@pytest.fixture(autouse=True)
def _no_env_override(monkeypatch):
    monkeypatch.delenv("JSONDB_DATA_DIR", raising=False)


def test_defaults_without_config_file(tmp_path):
    cfg = load_config(tmp_path)
    assert cfg.root == tmp_path
    assert cfg.name == tmp_path.name
    assert cfg.data_dir == tmp_path / ".jsondb" / "data"
    assert cfg.pretty is True
    assert cfg.strict_names is False
    assert cfg.strict_operators is False
    assert cfg.server.port == 7350


def test_init_then_load(tmp_path):
    path = init_config(tmp_path, name="demo")
    assert load_config(tmp_path).name == "demo"
    with pytest.raises(FileExistsError):
        init_config(tmp_path)
    assert path.read_text().startswith("[jsondb]")


def test_values_from_toml(tmp_path):
    (tmp_path / "jsondb.toml").write_text(
        '[jsondb]\nname = "x"\ndata_dir = "store"\npretty = false\n'
        "strict_names = true\nstrict_operators = true\n"
        '[server]\nhost = "0.0.0.0"\nport = 9000\n'
    )
    cfg = load_config(tmp_path)
    assert cfg.data_dir == tmp_path / "store"
    assert cfg.pretty is False
    assert cfg.strict_names is True
    assert cfg.strict_operators is True
    assert (cfg.server.host, cfg.server.port) == ("0.0.0.0", 9000)

    db = JsonDB.from_config(cfg)
    assert db.strict_operators is True
    assert db.store.strict_names is True
    assert db.store.data_dir == tmp_path / "store"


def test_root_found_from_subdirectory(tmp_path):
    init_config(tmp_path, name="top")
    sub = tmp_path / "a" / "b"
    sub.mkdir(parents=True)
    assert load_config(sub).root == tmp_path


def test_env_overrides(tmp_path, monkeypatch):
    init_config(tmp_path)
    (tmp_path / ".env").write_text("# comment\nJSONDB_DATA_DIR='from_dotenv'\n")
    assert load_config(tmp_path).data_dir == tmp_path / "from_dotenv"

    monkeypatch.setenv("JSONDB_DATA_DIR", "from_env")
    assert load_config(tmp_path).data_dir == tmp_path / "from_env"
