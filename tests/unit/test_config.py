"""Tests for the MindStack config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from mindstack.config import (
    ConfigError,
    MindstackConfig,
    ensure_global_config,
    load_config,
)

_ENV_VARS = (
    "MINDSTACK_GENERATION_MODEL",
    "MINDSTACK_EMBEDDING_MODEL",
    "MINDSTACK_ENRICHMENT_MODEL",
    "MINDSTACK_DB",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path) -> MindstackConfig:
    return load_config(tmp_path, global_config_path=tmp_path / "missing-global.yaml")


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = _load(tmp_path)
    assert cfg.embedding.dimensions == 1024
    assert cfg.embedding.max_input_chars == 25_000
    assert cfg.enrichment.max_input_chars == 15_000
    assert cfg.generation.history_turns == 10
    assert cfg.chunking.max_words == 500
    assert cfg.chunking.ignore_size_threshold == 50_000
    assert cfg.retrieval.top_k == 5
    assert cfg.retrieval.max_context_blocks == 15
    assert cfg.retrieval.max_media_payloads == 10
    assert cfg.storage.db_path == ".mindstack.db"
    assert cfg.tasks.max_concurrent == 4


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_load_config_global_overrides_defaults(tmp_path: Path) -> None:
    global_path = tmp_path / "global.yaml"
    _write_yaml(global_path, {"generation": {"model": "anthropic/claude-3-5-sonnet-20241022"}})
    cfg = load_config(tmp_path, global_config_path=global_path)
    assert cfg.generation.model == "anthropic/claude-3-5-sonnet-20241022"
    assert cfg.generation.history_turns == 10


def test_load_config_project_overrides_global(tmp_path: Path) -> None:
    global_path = tmp_path / "global.yaml"
    _write_yaml(global_path, {"retrieval": {"top_k": 3}})
    _write_yaml(tmp_path / "mindstack.yaml", {"retrieval": {"top_k": 8}})
    cfg = load_config(tmp_path, global_config_path=global_path)
    assert cfg.retrieval.top_k == 8


def test_load_config_project_partial_override(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "mindstack.yaml", {"chunking": {"max_words": 200}})
    cfg = _load(tmp_path)
    assert cfg.chunking.max_words == 200
    assert cfg.chunking.ignore_size_threshold == 50_000


def test_load_config_null_section_keeps_defaults(tmp_path: Path) -> None:
    (tmp_path / "mindstack.yaml").write_text("storage:\n", encoding="utf-8")
    cfg = _load(tmp_path)
    assert cfg.storage.blob_dir == ".mindstack/blobs"


def test_env_var_overrides_project_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_yaml(tmp_path / "mindstack.yaml", {"embedding": {"model": "openai/text-embedding-3-large"}})
    monkeypatch.setenv("MINDSTACK_EMBEDDING_MODEL", "cohere/embed-english-v3.0")
    monkeypatch.setenv("MINDSTACK_DB", str(tmp_path / "other.db"))
    cfg = _load(tmp_path)
    assert cfg.embedding.model == "cohere/embed-english-v3.0"
    assert cfg.storage.db_path == str(tmp_path / "other.db")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("bad_key", ["api_key", "openai_api_key", "token", "password"])
def test_global_config_rejects_api_key_fields(tmp_path: Path, bad_key: str) -> None:
    global_path = tmp_path / "global.yaml"
    _write_yaml(global_path, {"generation": {bad_key: "sk-123"}})
    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(tmp_path, global_config_path=global_path)


def test_max_tokens_is_not_mistaken_for_a_secret(tmp_path: Path) -> None:
    global_path = tmp_path / "global.yaml"
    _write_yaml(global_path, {"generation": {"max_tokens": 1000}})
    cfg = load_config(tmp_path, global_config_path=global_path)
    assert cfg.generation.max_tokens == 1000


@pytest.mark.parametrize(
    "section,key",
    [("retrieval", "top_k"), ("chunking", "max_words"), ("tasks", "max_concurrent")],
)
def test_non_positive_limits_rejected(tmp_path: Path, section: str, key: str) -> None:
    _write_yaml(tmp_path / "mindstack.yaml", {section: {key: 0}})
    with pytest.raises(ConfigError, match=f"{section}.{key}"):
        _load(tmp_path)


def test_unknown_top_level_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "mindstack.yaml", {"mystery": {"a": 1}})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _load(tmp_path)
    assert any("mystery" in str(w.message) for w in caught)


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / "home" / ".mindstack" / "config.yaml"
    path = ensure_global_config(target)
    assert path == target
    assert target.exists()
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert data["embedding"]["dimensions"] == 1024


def test_ensure_global_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("generation:\n  model: ollama/llama3\n", encoding="utf-8")
    ensure_global_config(target)
    assert "ollama/llama3" in target.read_text(encoding="utf-8")
