"""YAML system config with environment expansion.

`load_config` returns the expanded dict; `ConfigLoader` builds the typed
`AppConfig` consumed by the link bridge and the operator CLI.

String values may reference the environment:
  ${VAR}            value of VAR, left as-is when unset
  ${VAR:-default}   value of VAR, or ``default`` when unset
  ${ENV:VAR}        value of VAR, or "" when unset
  ${PROJECT_ROOT}   directory holding ``config/``
A ``.env`` file in the project root is read first; it never overrides
variables already set.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

from controlrc.link.config import LinkConfig

ENV_PATTERN = re.compile(r"\$\{(?P<env>ENV:)?(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")
DEFAULT_CONFIG = Path("config/system.yaml")


def load_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    if path.suffix not in {".yaml", ".yml"}:
        raise ValueError(f"Unsupported config format {path.suffix!r}; only YAML supported")

    project_root = path.resolve().parent.parent
    _load_dotenv(project_root / ".env")
    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return _expand(data, project_root)


def _load_dotenv(env_path: Path) -> None:
    if not env_path.is_file():
        return
    for raw in env_path.read_text().splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):]
        key, sep, value = line.partition("=")
        if not sep or line.startswith("#"):
            continue
        os.environ.setdefault(key.strip(), value.strip().strip("'\""))


def _expand(value: Any, project_root: Path) -> Any:
    if isinstance(value, dict):
        return {k: _expand(v, project_root) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand(v, project_root) for v in value]
    if isinstance(value, str):
        return _expand_string(value, project_root)
    return value


def _expand_string(value: str, project_root: Path) -> str:
    def replacer(match: re.Match) -> str:
        name = match.group("name")
        if name == "PROJECT_ROOT" and not match.group("env"):
            return str(project_root)
        if name in os.environ:
            return os.environ[name]
        if match.group("default") is not None:
            return match.group("default")
        return "" if match.group("env") else match.group(0)

    return os.path.expanduser(ENV_PATTERN.sub(replacer, value))


# ---------------------------------------------------------------------------
# Typed configuration layer
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class AppConfig:
    link: LinkConfig
    ipc: Dict[str, Any] = field(default_factory=dict)
    logs: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def log_dir(self) -> Path:
        return Path(self.logs.get("directory") or "logs")


class ConfigLoader:
    """Produces typed config objects from the YAML system config."""

    def __init__(self, path: Path = DEFAULT_CONFIG) -> None:
        self.path = path

    def load(self) -> AppConfig:
        raw = load_config(self.path)
        return AppConfig(
            link=LinkConfig.from_dict(raw.get("link")),
            ipc=raw.get("ipc", {}) or {},
            logs=raw.get("logs", {}) or {},
            raw=raw,
        )
