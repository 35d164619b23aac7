"""Tests for configuration loading."""

import pytest
from pathlib import Path

from memctx.config import load_config

_ENV_KEYS = ["MEMCTX_DATA_DIR", "MEMCTX_LOG_LEVEL", "MEMCTX_DEFAULT_ENTITY_TYPE"]


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    def test_defaults(self):
        config = load_config()
        assert config.log_level == "INFO"
        assert config.default_entity_type == "memory"
        assert config.data_dir.name == "data"

    def test_env_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("MEMCTX_DATA_DIR", str(tmp_path / "elsewhere"))
        monkeypatch.setenv("MEMCTX_LOG_LEVEL", "DEBUG")

        config = load_config()
        assert config.data_dir == tmp_path / "elsewhere"
        assert config.log_level == "DEBUG"

    def test_toml_file(self, tmp_path: Path):
        toml_path = tmp_path / "memctx.toml"
        toml_path.write_text("""
log_level = "WARNING"

[memory]
data_dir = "/srv/memctx"
default_entity_type = "note"
""")
        config = load_config(toml_path)
        assert config.log_level == "WARNING"
        assert config.data_dir == Path("/srv/memctx")
        assert config.default_entity_type == "note"

    def test_toml_in_cwd(self, tmp_path: Path):
        (tmp_path / "memctx.toml").write_text('[memory]\ndefault_entity_type = "fact"\n')
        assert load_config().default_entity_type == "fact"

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("MEMCTX_DEFAULT_ENTITY_TYPE", "from-env")

        toml_path = tmp_path / "memctx.toml"
        toml_path.write_text("""
[memory]
default_entity_type = "from-toml"
""")
        config = load_config(toml_path)
        assert config.default_entity_type == "from-env"  # env wins
