"""MindStack configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (MINDSTACK_GENERATION_MODEL, MINDSTACK_EMBEDDING_MODEL,
                             MINDSTACK_ENRICHMENT_MODEL, MINDSTACK_DB)
  3. Per-project mindstack.yaml
  4. Global ~/.mindstack/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".mindstack"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "mindstack.yaml"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s). Leaves max_tokens, max_words alone.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    [
        "embedding",
        "enrichment",
        "generation",
        "chunking",
        "retrieval",
        "storage",
        "server",
        "tasks",
    ]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (mindstack.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1024
    max_input_chars: int = 25_000
    concurrency: int = 4


@dataclass
class EnrichmentCfg:
    """Summarization / translation model (mindstack.yaml: enrichment:)."""

    model: str = "openai/gpt-4o-mini"
    max_input_chars: int = 15_000
    max_tokens: int = 2_048


@dataclass
class GenerationCfg:
    """Streaming answer model (mindstack.yaml: generation:)."""

    model: str = "openai/gpt-4o"
    max_tokens: int = 4_096
    history_turns: int = 10


@dataclass
class ChunkingCfg:
    """Chunker limits (mindstack.yaml: chunking:)."""

    max_words: int = 500
    ignore_size_threshold: int = 50_000


@dataclass
class RetrievalCfg:
    """Retrieval context limits (mindstack.yaml: retrieval:)."""

    top_k: int = 5
    max_context_blocks: int = 15
    max_media_payloads: int = 10


@dataclass
class StorageCfg:
    """Structured store + blob locations (mindstack.yaml: storage:)."""

    db_path: str = ".mindstack.db"
    blob_dir: str = ".mindstack/blobs"


@dataclass
class ServerCfg:
    """HTTP server bind address (mindstack.yaml: server:)."""

    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class TasksCfg:
    """Background task pool (mindstack.yaml: tasks:)."""

    max_concurrent: int = 4


@dataclass
class MindstackConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    enrichment: EnrichmentCfg = field(default_factory=EnrichmentCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    server: ServerCfg = field(default_factory=ServerCfg)
    tasks: TasksCfg = field(default_factory=TasksCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names.

    Global config must never store credentials; they belong in env vars.
    """

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _require_positive(name: str, value: int) -> int:
    if value < 1:
        raise ConfigError(f"{name} must be >= 1, got {value}")
    return value


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> MindstackConfig:
    """Build a *MindstackConfig* from a merged raw YAML dict."""
    cfg = MindstackConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=_require_positive(
                "embedding.dimensions", int(e.get("dimensions", cfg.embedding.dimensions))
            ),
            max_input_chars=int(e.get("max_input_chars", cfg.embedding.max_input_chars)),
            concurrency=_require_positive(
                "embedding.concurrency", int(e.get("concurrency", cfg.embedding.concurrency))
            ),
        )

    if "enrichment" in data:
        en = data["enrichment"] or {}
        cfg.enrichment = EnrichmentCfg(
            model=str(en.get("model", cfg.enrichment.model)),
            max_input_chars=int(en.get("max_input_chars", cfg.enrichment.max_input_chars)),
            max_tokens=int(en.get("max_tokens", cfg.enrichment.max_tokens)),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            history_turns=int(g.get("history_turns", cfg.generation.history_turns)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            max_words=_require_positive(
                "chunking.max_words", int(c.get("max_words", cfg.chunking.max_words))
            ),
            ignore_size_threshold=int(
                c.get("ignore_size_threshold", cfg.chunking.ignore_size_threshold)
            ),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            top_k=_require_positive("retrieval.top_k", int(r.get("top_k", cfg.retrieval.top_k))),
            max_context_blocks=int(
                r.get("max_context_blocks", cfg.retrieval.max_context_blocks)
            ),
            max_media_payloads=int(
                r.get("max_media_payloads", cfg.retrieval.max_media_payloads)
            ),
        )

    if "storage" in data:
        s = data["storage"] or {}
        cfg.storage = StorageCfg(
            db_path=str(s.get("db_path", cfg.storage.db_path)),
            blob_dir=str(s.get("blob_dir", cfg.storage.blob_dir)),
        )

    if "server" in data:
        sv = data["server"] or {}
        cfg.server = ServerCfg(
            host=str(sv.get("host", cfg.server.host)),
            port=int(sv.get("port", cfg.server.port)),
        )

    if "tasks" in data:
        t = data["tasks"] or {}
        cfg.tasks = TasksCfg(
            max_concurrent=_require_positive(
                "tasks.max_concurrent", int(t.get("max_concurrent", cfg.tasks.max_concurrent))
            ),
        )

    return cfg


def _apply_env_overrides(cfg: MindstackConfig) -> MindstackConfig:
    """Apply MINDSTACK_* environment variable overrides (layer 2)."""
    if model := os.environ.get("MINDSTACK_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("MINDSTACK_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("MINDSTACK_ENRICHMENT_MODEL"):
        cfg.enrichment.model = model
    if db_path := os.environ.get("MINDSTACK_DB"):
        cfg.storage.db_path = db_path
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> MindstackConfig:
    """Load and return a merged *MindstackConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *mindstack.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields or a limit
            that must be positive is not.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    return _apply_env_overrides(cfg)


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.mindstack/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# MindStack global configuration — model defaults only.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "#   export ANTHROPIC_API_KEY=sk-ant-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  dimensions: 1024\n"
            "\n"
            "enrichment:\n"
            "  model: openai/gpt-4o-mini\n"
            "\n"
            "generation:\n"
            "  model: openai/gpt-4o\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
