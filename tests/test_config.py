"""Tests for YAML configuration."""

from pathlib import Path

import pytest
import yaml

from entity_graph.config import Config, get_config


@pytest.fixture
def config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point global config at a temp dir and run from an empty project dir."""
    home = tmp_path / "home"
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.setenv("ENTITY_GRAPH_HOME", str(home))
    monkeypatch.chdir(project)
    return home


def test_defaults(config_home: Path) -> None:
    """Test built-in defaults when nothing is configured."""
    config = get_config()
    assert config.get("backend") == "sqlite"
    assert config.get_int("store.lock_stripes") == 64
    assert config.get("missing", "fallback") == "fallback"
    assert config.list() == {}


def test_set_persists_to_yaml(config_home: Path) -> None:
    """Test that set writes the local config file."""
    config = get_config()
    config.set("backend", "memory")

    assert yaml.safe_load(config.config_file.read_text()) == {"backend": "memory"}
    assert get_config().get("backend") == "memory"


def test_local_overrides_global(config_home: Path) -> None:
    """Test lookup order local, then global, then defaults."""
    get_config(use_global=True).set("sqlite.path", "/global.db")
    get_config(use_global=True).set("backend", "memory")
    get_config().set("sqlite.path", "/local.db")

    config = get_config()
    assert config.get("sqlite.path") == "/local.db"
    assert config.get("backend") == "memory"
    assert config.list() == {"sqlite.path": "/local.db", "backend": "memory"}
    assert get_config(use_global=True).get("sqlite.path") == "/global.db"


def test_unset(config_home: Path) -> None:
    """Test removing a value falls back to the default."""
    config = get_config()
    config.set("backend", "memory")
    config.unset("backend")
    config.unset("never-set")
    assert get_config().get("backend") == "sqlite"


def test_get_int_rejects_garbage(tmp_path: Path, config_home: Path) -> None:
    """Test that non-numeric values are reported."""
    config = Config(config_dir=tmp_path / "custom")
    config.set("store.lock_stripes", "many")
    with pytest.raises(ValueError):
        config.get_int("store.lock_stripes")


def test_invalid_yaml(tmp_path: Path, config_home: Path) -> None:
    """Test that a broken config file is an error."""
    config_dir = tmp_path / "broken"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        Config(config_dir=config_dir)
