"""Locate definition documents inside a DataSpec workspace.

Layout::

    dataspec/
      tables/<database.table>.md
      metrics/<metric name>.md
      checks/<database.table>.check.md
"""

from pathlib import Path
from typing import List

from dataspec_core.errors import DefinitionNotFoundError

TABLES_DIR = Path("dataspec") / "tables"
METRICS_DIR = Path("dataspec") / "metrics"
CHECKS_DIR = Path("dataspec") / "checks"

DEFINITION_SUFFIX = ".md"
CHECK_SUFFIX = ".check.md"

KINDS = ("table", "metric")


def _discover(directory: Path, suffix: str) -> List[str]:
    if not directory.is_dir():
        return []
    names = []
    for entry in directory.iterdir():
        if not entry.is_file() or not entry.name.endswith(suffix):
            continue
        # Check files share the .md suffix; keep them out of table listings.
        if suffix == DEFINITION_SUFFIX and entry.name.endswith(CHECK_SUFFIX):
            continue
        names.append(entry.name[: -len(suffix)])
    return sorted(names)


def discover_tables(root: str = ".") -> List[str]:
    return _discover(Path(root) / TABLES_DIR, DEFINITION_SUFFIX)


def discover_metrics(root: str = ".") -> List[str]:
    return _discover(Path(root) / METRICS_DIR, DEFINITION_SUFFIX)


def discover_checks(root: str = ".") -> List[str]:
    return _discover(Path(root) / CHECKS_DIR, CHECK_SUFFIX)


def table_path(name: str, root: str = ".") -> Path:
    return Path(root) / TABLES_DIR / f"{name}{DEFINITION_SUFFIX}"


def metric_path(name: str, root: str = ".") -> Path:
    return Path(root) / METRICS_DIR / f"{name}{DEFINITION_SUFFIX}"


def check_path(name: str, root: str = ".") -> Path:
    return Path(root) / CHECKS_DIR / f"{name}{CHECK_SUFFIX}"


def definition_path(kind: str, name: str, root: str = ".") -> Path:
    if kind == "table":
        return table_path(name, root)
    if kind == "metric":
        return metric_path(name, root)
    raise ValueError(f"Unknown definition kind '{kind}'. Use one of: {', '.join(KINDS)}.")


def resolve_definition(kind: str, name: str, root: str = ".") -> Path:
    """Path of an existing definition; a name that is already a file path is returned as is."""
    as_given = Path(name)
    if as_given.suffix == DEFINITION_SUFFIX and as_given.is_file():
        return as_given
    path = definition_path(kind, name, root)
    if not path.is_file():
        raise DefinitionNotFoundError(f"No {kind} definition named '{name}' (looked for {path}).")
    return path
