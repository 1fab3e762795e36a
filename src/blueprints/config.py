"""Configuration loading for Blueprints runs."""

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from blueprints.constants import (
    DEFAULT_AGENT_EXECUTABLE,
    DEFAULT_BUILDER_MODEL,
    DEFAULT_LOOP_SLEEP_SECS,
    DEFAULT_MAX_BUILDER_ITERS,
    DEFAULT_MAX_REVIEWER_ITERS,
    DEFAULT_REVIEWER_MODEL,
)
from blueprints.exceptions import WorkflowConfigError
from blueprints.models.workflow import AgentSettings, RunConfig, WorkflowConfig

logger = logging.getLogger(__name__)

VALID_TOP_LEVEL_KEYS = frozenset({"limits", "agent"})

# (json_dotted_path, env_var_name, hardcoded_default, value_type)
_CONFIG_KEYS: list[tuple[str, str, object, type]] = [
    ("limits.max_builder_iters",   "MAX_BUILDER_ITERS",          DEFAULT_MAX_BUILDER_ITERS,  int),
    ("limits.max_reviewer_iters",  "MAX_REVIEWER_ITERS",         DEFAULT_MAX_REVIEWER_ITERS, int),
    ("limits.loop_sleep_secs",     "LOOP_SLEEP_SECS",            DEFAULT_LOOP_SLEEP_SECS,    float),
    ("agent.executable",           "BLUEPRINTS_CODEX_BIN",       DEFAULT_AGENT_EXECUTABLE,   str),
    ("agent.reviewer_model",       "BLUEPRINTS_REVIEWER_MODEL",  DEFAULT_REVIEWER_MODEL,     str),
    ("agent.builder_model",        "BLUEPRINTS_BUILDER_MODEL",   DEFAULT_BUILDER_MODEL,      str),
]


def _get_json_value(data: dict, dotted_key: str) -> Optional[object]:
    """Retrieve a value from nested JSON using dotted key (e.g., 'limits.max_builder_iters')."""
    obj: object = data
    for part in dotted_key.split("."):
        if not isinstance(obj, dict) or part not in obj:
            return None
        obj = obj[part]
    return obj


def _coerce(value: object, typ: type, source: str) -> object:
    if typ is str:
        return str(value)
    if isinstance(value, bool):
        raise WorkflowConfigError(f"invalid {source} value: {value}")
    try:
        return typ(value)
    except (TypeError, ValueError):
        raise WorkflowConfigError(f"invalid {source} value: {value}")


def _parse_env(environ: Mapping[str, str], env_var: str, typ: type) -> Optional[object]:
    """Read env var; return None if unset or empty string (treated as unset)."""
    raw = environ.get(env_var)
    if raw is None or raw == "":
        return None
    return _coerce(raw.strip(), typ, env_var)


def _load_json_file(config_file: Path) -> dict:
    if not config_file.is_file():
        raise WorkflowConfigError(f"Config file not found: {config_file}")
    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise WorkflowConfigError(f"Invalid JSON in config file {config_file}: {e}")
    if not isinstance(data, dict):
        raise WorkflowConfigError(f"Config file {config_file} must contain a JSON object")

    unknown = set(data.keys()) - VALID_TOP_LEVEL_KEYS
    if unknown:
        raise WorkflowConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
    return data


def load_config(
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RunConfig:
    """Load config from an optional JSON file + env vars + hardcoded defaults.

    Precedence (highest to lowest): env vars > JSON file > hardcoded defaults.
    Empty env vars are treated as unset.

    Raises:
        WorkflowConfigError: If the file is missing or malformed, a value cannot
            be parsed, or the resulting limits are invalid.
    """
    if environ is None:
        environ = os.environ

    json_data: dict = {}
    if config_file is not None:
        json_data = _load_json_file(Path(config_file))

    values: dict[str, object] = {}
    for json_path, env_var, default, typ in _CONFIG_KEYS:
        value = default
        json_val = _get_json_value(json_data, json_path)
        if json_val is not None:
            value = _coerce(json_val, typ, json_path)
        env_val = _parse_env(environ, env_var, typ)
        if env_val is not None:
            value = env_val
        values[env_var] = value

    workflow = WorkflowConfig(
        max_reviewer_iters=values["MAX_REVIEWER_ITERS"],
        max_builder_iters=values["MAX_BUILDER_ITERS"],
        loop_sleep=values["LOOP_SLEEP_SECS"],
    )
    agent = AgentSettings(
        executable=values["BLUEPRINTS_CODEX_BIN"],
        reviewer_model=values["BLUEPRINTS_REVIEWER_MODEL"],
        builder_model=values["BLUEPRINTS_BUILDER_MODEL"],
    )
    logger.debug(
        f"Loaded config: max_reviewer_iters={workflow.max_reviewer_iters} "
        f"max_builder_iters={workflow.max_builder_iters} loop_sleep={workflow.loop_sleep}"
    )
    return RunConfig(workflow=workflow, agent=agent)
