import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from dataspec_core.errors import ConfigError
from dataspec_core.issues import to_lines
from dataspec_core.schema import load_schema, schema_issues

logger = logging.getLogger(__name__)

WORKSPACE_DIR = "dataspec"
CONFIG_FILENAMES = ("dataspec.config.json", "dataspec.config.yaml", "dataspec.config.yml")

DEFAULTS: Dict[str, Any] = {
    "version": "1.0",
    "databases": [],
    "aiTools": ["cursor", "windsurf"],
    "templates": {
        "defaultDialect": "hive",
        "outputDir": "./dataspec/templates",
    },
    "validation": {
        "strictMode": True,
        "customRules": [],
    },
}


@dataclass(frozen=True)
class ProjectConfig:
    project_name: str
    version: str = "1.0"
    default_dialect: str = "hive"
    output_dir: str = "./dataspec/templates"
    strict_mode: bool = True
    ai_tools: Tuple[str, ...] = ()
    source: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


def _merge(defaults: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def find_config(root: str = ".") -> Optional[Path]:
    """Locate the project configuration file under ``<root>/dataspec``."""
    workspace = Path(root) / WORKSPACE_DIR
    for name in CONFIG_FILENAMES:
        candidate = workspace / name
        if candidate.is_file():
            return candidate
    return None


def config_from_dict(data: Dict[str, Any], source: Optional[str] = None) -> ProjectConfig:
    """Validate *data* against the bundled config schema and fill in defaults."""
    if not isinstance(data, dict):
        raise ConfigError("Config must parse to an object/map at root.")

    issues = schema_issues(data, load_schema("config"))
    if issues:
        where = source or "config"
        raise ConfigError(f"Invalid configuration in {where}:\n" + "\n".join(to_lines(issues)))

    merged = _merge(DEFAULTS, data)
    return ProjectConfig(
        project_name=merged["projectName"],
        version=str(merged["version"]),
        default_dialect=merged["templates"]["defaultDialect"],
        output_dir=merged["templates"]["outputDir"],
        strict_mode=bool(merged["validation"]["strictMode"]),
        ai_tools=tuple(merged["aiTools"]),
        source=source,
        raw=merged,
    )


def load_config(root: str = ".", path: Optional[str] = None) -> ProjectConfig:
    """Load the project config; with no file present, defaults named after the root directory apply."""
    config_path = Path(path) if path else find_config(root)
    if config_path is None:
        logger.debug("No config file under %s, using defaults", root)
        return config_from_dict({"projectName": Path(root).resolve().name or "dataspec"})

    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            # safe_load reads JSON as well as YAML.
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid config file {config_path}: {exc}") from exc

    logger.debug("Loaded config from %s", config_path)
    return config_from_dict(data if data is not None else {}, source=str(config_path))


def default_config(project_name: str, dialect: str = "hive") -> Dict[str, Any]:
    payload = _merge(DEFAULTS, {"projectName": project_name})
    payload["templates"]["defaultDialect"] = dialect
    ordered = {"version": payload.pop("version"), "projectName": payload.pop("projectName")}
    ordered.update(payload)
    return ordered


def write_config(root: str, project_name: str, dialect: str = "hive") -> Path:
    """Write ``dataspec/dataspec.config.json`` unless a config already exists."""
    existing = find_config(root)
    if existing is not None:
        return existing
    target = Path(root) / WORKSPACE_DIR / CONFIG_FILENAMES[0]
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        json.dumps(default_config(project_name, dialect), indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    return target


def output_path(config: ProjectConfig, root: str, *parts: str) -> Path:
    base = Path(config.output_dir)
    if not base.is_absolute():
        base = Path(root) / base
    return base.joinpath(*parts)

