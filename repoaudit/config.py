"""Audit settings: defaults, optional per-repo YAML file, CLI overrides."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigurationError

CONFIG_FILENAMES = (".repoaudit.yaml", "repoaudit.yaml")
DECODER_MODES = ("auto", "json", "regex")


@dataclass(frozen=True)
class AuditConfig:
    remote: str = "origin"
    branch: str = "main"
    output_dir: str = "repo_audit_output"
    blob_limit: int = 50
    file_limit: int = 100
    log_limit: int = 200
    worktree_secret_limit: int = 500
    history_secret_limit: Optional[int] = None  # display limit only
    summary_rows: int = 10
    token_env: str = "GH_PAT"
    api_url: str = "https://api.github.com"
    timeout: float = 30.0
    fetch: bool = False
    decoder: str = "auto"

    def with_overrides(self, **overrides: Any) -> "AuditConfig":
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return _validated(replace(self, **_checked_keys(values, source="override")))


def _checked_keys(data: dict[str, Any], source: str) -> dict[str, Any]:
    known = {f.name for f in fields(AuditConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown config key(s) in {source}: {', '.join(unknown)}")
    return data


def _validated(config: AuditConfig) -> AuditConfig:
    if config.decoder not in DECODER_MODES:
        raise ConfigurationError(
            f"decoder must be one of {', '.join(DECODER_MODES)}, got {config.decoder!r}"
        )
    for name in ("blob_limit", "file_limit", "log_limit", "worktree_secret_limit", "summary_rows"):
        value = getattr(config, name)
        if not isinstance(value, int) or value < 0:
            raise ConfigurationError(f"{name} must be a non-negative integer, got {value!r}")
    return config


def find_config_file(repo_path: Path) -> Path | None:
    for name in CONFIG_FILENAMES:
        p = repo_path / name
        if p.is_file():
            return p
    return None


def load_config(repo_path: str | Path, path: str | Path | None = None, **overrides: Any) -> AuditConfig:
    """Defaults, then the repo's YAML file (or an explicit one), then overrides."""
    config_path = Path(path) if path else find_config_file(Path(repo_path))
    data: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.is_file():
            raise ConfigurationError(f"Config file not found: {config_path}")
        try:
            loaded = yaml.safe_load(config_path.read_text())
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping")
        data = _checked_keys(loaded, source=str(config_path))
    config = _validated(AuditConfig(**data))
    return config.with_overrides(**overrides)


def resolve_output_dir(repo_path: str | Path, output_dir: str | Path) -> Path:
    """Absolute artifact directory; relative paths are taken from the repo root.

    The repo root and its ancestors are refused: artifacts there would be
    scanned as worktree files and could overwrite tracked files.
    """
    repo = Path(repo_path).resolve()
    out = Path(output_dir)
    out = (out if out.is_absolute() else repo / out).resolve()
    if out == repo or out in repo.parents:
        raise ConfigurationError(
            f"Output directory {out} must not be the repository root or one of its parents"
        )
    return out
