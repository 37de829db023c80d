"""
Configuration loading and validation.

Verifies that the packaged config loads, `${VAR}` references expand, and
environment overrides are respected.
"""
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from lp_indexer.config.config import IndexerConfig, load_config
from lp_indexer.config.dotenv_loader import load_dotenv_files

SAMPLE_VAR = "LP_INDEXER_DOTENV_SAMPLE"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


def _write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(body)
    return path


def test_packaged_config_loads():
    config = load_config()

    assert config.environment == "dev"
    assert config.indexer.protocol_id == "uniswap-v3"
    assert config.indexer.decrease_liquidity_is_magnitude is False
    assert config.indexer.snapshots_enabled is True
    assert config.data.database_url.startswith("sqlite")


def test_env_references_expand(tmp_path, monkeypatch):
    monkeypatch.setenv("LP_PROTOCOL", "pancakeswap-v3")
    path = _write_config(tmp_path, "indexer:\n  protocol_id: ${LP_PROTOCOL}\n")

    assert load_config(path).indexer.protocol_id == "pancakeswap-v3"


def test_database_url_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://indexer@localhost/lp")
    path = _write_config(tmp_path, "data:\n  database_url: sqlite:///local.db\n")

    assert load_config(path).data.database_url == "postgresql://indexer@localhost/lp"


def test_prod_rejects_sqlite(tmp_path, monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "prod")
    path = _write_config(tmp_path, "data:\n  database_url: sqlite:///local.db\n")

    with pytest.raises(ValueError, match="SQLite is not supported in prod"):
        load_config(path)


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_zero_address_is_validated_and_lowercased():
    config = IndexerConfig(zero_address="0x000000000000000000000000000000000000dEaD")
    assert config.zero_address == "0x000000000000000000000000000000000000dead"

    with pytest.raises(ValidationError):
        IndexerConfig(zero_address="0x1234")


class TestDotenvLoader:

    def test_loads_env_then_local_override(self, tmp_path, monkeypatch):
        # setenv + delenv so monkeypatch removes whatever dotenv writes
        monkeypatch.setenv(SAMPLE_VAR, "placeholder")
        monkeypatch.delenv(SAMPLE_VAR)
        (tmp_path / ".env").write_text(f"{SAMPLE_VAR}=base\n")
        (tmp_path / ".env.local").write_text(f"{SAMPLE_VAR}=local\n")

        loaded = load_dotenv_files(repo_root=tmp_path)

        assert [p.name for p in loaded] == [".env", ".env.local"]
        assert os.environ[SAMPLE_VAR] == "local"

    def test_noop_in_prod(self, tmp_path, monkeypatch):
        monkeypatch.setenv(SAMPLE_VAR, "placeholder")
        monkeypatch.delenv(SAMPLE_VAR)
        monkeypatch.setenv("ENVIRONMENT", "prod")
        (tmp_path / ".env").write_text(f"{SAMPLE_VAR}=base\n")

        assert load_dotenv_files(repo_root=tmp_path) == []
        assert SAMPLE_VAR not in os.environ
