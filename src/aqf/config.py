"""Settings file loading and the typed view the engine reads per request."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigError
from .fixers import FixerKind

DEFAULT_CONFIG_NAME = "aqf.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "project": {
        "workspace_root": ".",
    },
    "fixers": {
        "codex-cli": False,
        "claude-cli": False,
    },
    "routing": {
        "enable-wsl-routes": True,
        "probe-timeout": 3,
        "run-timeout": 180,
        "max-output-chars": 12000,
    },
    "report": {
        "width": 100,
        "max-content-chars": 4000,
        "max-failure-lines": 8,
        "log": None,
    },
    "paths": {
        "db_path": "data/aqf.sqlite",
    },
}


class QuickFixSettings(BaseModel):
    """Resolved settings with explicit defaults."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    codex_cli: bool = False
    claude_cli: bool = False
    allow_bridge_routes: bool = True
    probe_timeout: float = Field(default=3.0, gt=0)
    run_timeout: float = Field(default=180.0, gt=0)
    max_output_chars: int = Field(default=12000, gt=0)
    box_width: int = Field(default=100, ge=20)
    max_content_chars: int = Field(default=4000, gt=0)
    max_failure_lines: int = Field(default=8, gt=0)
    report_log: Optional[str] = None

    def is_enabled(self, kind: FixerKind | str) -> bool:
        if FixerKind.parse(kind) is FixerKind.CODEX_CLI:
            return self.codex_cli
        return self.claude_cli

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "QuickFixSettings":
        """Read settings leniently: wrong-typed values fall back to the default."""
        fixers = _section(config, "fixers")
        routing = _section(config, "routing")
        report = _section(config, "report")
        defaults = cls()
        log_value = report.get("log")
        return cls(
            codex_cli=_parse_bool(fixers.get("codex-cli"), defaults.codex_cli),
            claude_cli=_parse_bool(fixers.get("claude-cli"), defaults.claude_cli),
            allow_bridge_routes=_parse_bool(
                routing.get("enable-wsl-routes"), defaults.allow_bridge_routes
            ),
            probe_timeout=_parse_number(routing.get("probe-timeout"), defaults.probe_timeout),
            run_timeout=_parse_number(routing.get("run-timeout"), defaults.run_timeout),
            max_output_chars=int(
                _parse_number(routing.get("max-output-chars"), defaults.max_output_chars)
            ),
            box_width=max(int(_parse_number(report.get("width"), defaults.box_width)), 20),
            max_content_chars=int(
                _parse_number(report.get("max-content-chars"), defaults.max_content_chars)
            ),
            max_failure_lines=int(
                _parse_number(report.get("max-failure-lines"), defaults.max_failure_lines)
            ),
            report_log=log_value.strip() if isinstance(log_value, str) and log_value.strip() else None,
        )


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name)
    return value if isinstance(value, Mapping) else {}


def _parse_bool(value: Any, fallback: bool) -> bool:
    return value if isinstance(value, bool) else fallback


def _parse_number(value: Any, fallback: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    return value if value > 0 else fallback


def copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration, returning an empty mapping when the file is absent."""
    if not config_path.exists():
        return {}
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {config_path}: {error}") from error
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration {config_path} must be a mapping at the top level.")
    return data


def write_config(config_path: Path, config_data: Mapping[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dict(config_data), handle, sort_keys=False)


def resolve_workspace_root(config: Mapping[str, Any], config_path: Path) -> Path:
    """Resolve the workspace root relative to the configuration file."""
    project = _section(config, "project")
    value = project.get("workspace_root")
    root = Path(value) if isinstance(value, str) and value.strip() else Path(".")
    if not root.is_absolute():
        root = (config_path.parent / root).resolve()
    return root


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "QuickFixSettings",
    "copy_config_template",
    "load_config",
    "resolve_workspace_root",
    "write_config",
]
