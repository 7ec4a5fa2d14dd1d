from pathlib import Path

from dataspec_core.models import MetricDefinition, TableDefinition
from dataspec_core.parsers import parse_metric, parse_table


def read_definition(path: str) -> str:
    definition_path = Path(path)
    if not definition_path.exists():
        raise FileNotFoundError(f"Definition file not found: {path}")

    with definition_path.open("r", encoding="utf-8") as handle:
        return handle.read()


def load_table(path: str) -> TableDefinition:
    return parse_table(read_definition(path))


def load_metric(path: str) -> MetricDefinition:
    return parse_metric(read_definition(path))
