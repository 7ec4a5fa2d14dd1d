import logging
import re
from collections import Counter
from typing import Callable, List, Optional, Sequence

from dataspec_core.issues import Issue, ValidationResult
from dataspec_core.models import MetricDefinition, TableDefinition, is_placeholder
from dataspec_core.schema import load_schema, schema_issues

logger = logging.getLogger(__name__)

TABLE_NAME = re.compile(r"^[a-z_]+\.[a-z_]+$")
FIELD_NAME = re.compile(r"^[a-z_][a-z0-9_]*$")
ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MAX_TABLE_NAME_LENGTH = 50
MIN_DESCRIPTION_LENGTH = 10
MIN_FIELD_DESCRIPTION_LENGTH = 2

TableCheck = Callable[[TableDefinition], List[Issue]]
MetricCheck = Callable[[MetricDefinition], List[Issue]]


def _issue(severity: str, kind: str, message: str, path: Optional[str] = None) -> Issue:
    return Issue(severity=severity, kind=kind, message=message, path=path)


# ── Table checks ──────────────────────────────────────────────────────────────


def _check_table_schema(table: TableDefinition) -> List[Issue]:
    return schema_issues(table.to_dict(), load_schema("table"))


def _check_table_name(table: TableDefinition) -> List[Issue]:
    issues: List[Issue] = []
    if not TABLE_NAME.match(table.name):
        issues.append(
            _issue(
                "error",
                "INVALID_TABLE_NAME",
                f"Table name '{table.name}' must follow database.table_name using lowercase letters and underscores.",
                "name",
            )
        )
    if len(table.table) > MAX_TABLE_NAME_LENGTH:
        issues.append(
            _issue(
                "warning",
                "TABLE_NAME_TOO_LONG",
                f"Table name '{table.table}' exceeds {MAX_TABLE_NAME_LENGTH} characters.",
                "name",
            )
        )
    return issues


def _check_fields(table: TableDefinition) -> List[Issue]:
    issues: List[Issue] = []

    counts = Counter(item.name for item in table.fields)
    duplicates: List[str] = []
    for item in table.fields:
        if counts[item.name] > 1 and item.name not in duplicates:
            duplicates.append(item.name)
    if duplicates:
        issues.append(
            _issue(
                "error",
                "DUPLICATE_FIELD_NAMES",
                f"Duplicate field names: {', '.join(duplicates)}",
                "fields",
            )
        )

    for index, item in enumerate(table.fields):
        if not FIELD_NAME.match(item.name):
            issues.append(
                _issue(
                    "error",
                    "INVALID_FIELD_NAME",
                    f"Field name '{item.name}' must contain only lowercase letters, digits and underscores.",
                    f"fields[{index}].name",
                )
            )
        if len(item.description) < MIN_FIELD_DESCRIPTION_LENGTH:
            issues.append(
                _issue(
                    "warning",
                    "INSUFFICIENT_FIELD_DESCRIPTION",
                    f"Field '{item.name}' description is too short.",
                    f"fields[{index}].description",
                )
            )
    return issues


def _check_owner(table: TableDefinition) -> List[Issue]:
    if is_placeholder(table.owner):
        return [_issue("error", "NO_OWNER", "Table owner must be specified.", "owner")]
    return []


def _check_description(table: TableDefinition) -> List[Issue]:
    # Advisory twin of the schema's minLength.
    if not table.description or len(table.description) < MIN_DESCRIPTION_LENGTH:
        return [
            _issue(
                "warning",
                "INSUFFICIENT_DESCRIPTION",
                f"Table description needs at least {MIN_DESCRIPTION_LENGTH} characters.",
                "description",
            )
        ]
    return []


def _check_data_sources(table: TableDefinition) -> List[Issue]:
    if not table.data_sources or all(is_placeholder(source) for source in table.data_sources):
        return [
            _issue(
                "error",
                "NO_DATA_SOURCES",
                "At least one valid upstream data source must be specified.",
                "data_sources",
            )
        ]
    return []


TABLE_CHECKS: Sequence[TableCheck] = (
    _check_table_schema,
    _check_table_name,
    _check_fields,
    _check_owner,
    _check_description,
    _check_data_sources,
)


def table_issues(table: TableDefinition) -> List[Issue]:
    if not isinstance(table, TableDefinition):
        raise TypeError(f"Expected a TableDefinition, got {type(table).__name__}.")
    issues: List[Issue] = []
    for check in TABLE_CHECKS:
        found = check(table)
        logger.debug("%s on %s: %d issue(s)", check.__name__, table.name, len(found))
        issues.extend(found)
    return issues


def validate_table(table: TableDefinition) -> ValidationResult:
    return ValidationResult.from_issues(table_issues(table))


# ── Metric checks ─────────────────────────────────────────────────────────────


def _check_metric_schema(metric: MetricDefinition) -> List[Issue]:
    return schema_issues(metric.to_dict(), load_schema("metric"))


def _check_metric_owner(metric: MetricDefinition) -> List[Issue]:
    if is_placeholder(metric.owner):
        return [_issue("error", "NO_OWNER", "Metric owner must be specified.", "owner")]
    return []


def _check_business_definition(metric: MetricDefinition) -> List[Issue]:
    text = metric.business_definition or ""
    if len(text) < MIN_DESCRIPTION_LENGTH:
        return [
            _issue(
                "warning",
                "INSUFFICIENT_BUSINESS_DEFINITION",
                f"Business definition needs at least {MIN_DESCRIPTION_LENGTH} characters.",
                "business_definition",
            )
        ]
    return []


def _check_formula(metric: MetricDefinition) -> List[Issue]:
    if not metric.formula or not metric.formula.strip():
        return [_issue("error", "NO_FORMULA", "Metric formula must be specified.", "formula")]
    return []


def _check_metric_data_source(metric: MetricDefinition) -> List[Issue]:
    if is_placeholder(metric.data_source):
        return [_issue("error", "NO_DATA_SOURCE", "Metric data source must be specified.", "data_source")]
    return []


def _check_dimensions(metric: MetricDefinition) -> List[Issue]:
    if not metric.dimensions:
        return [_issue("warning", "EMPTY_DIMENSIONS", "Metric declares no dimensions.", "dimensions")]
    return []


def _check_change_history(metric: MetricDefinition) -> List[Issue]:
    issues: List[Issue] = []
    for index, entry in enumerate(metric.change_history):
        if not ISO_DATE.match(entry.date):
            issues.append(
                _issue(
                    "warning",
                    "INVALID_CHANGE_DATE",
                    f"Change history date '{entry.date}' should use YYYY-MM-DD.",
                    f"change_history[{index}].date",
                )
            )
    return issues


METRIC_CHECKS: Sequence[MetricCheck] = (
    _check_metric_schema,
    _check_metric_owner,
    _check_business_definition,
    _check_formula,
    _check_metric_data_source,
    _check_dimensions,
    _check_change_history,
)


def metric_issues(metric: MetricDefinition) -> List[Issue]:
    if not isinstance(metric, MetricDefinition):
        raise TypeError(f"Expected a MetricDefinition, got {type(metric).__name__}.")
    issues: List[Issue] = []
    for check in METRIC_CHECKS:
        issues.extend(check(metric))
    return issues


def validate_metric(metric: MetricDefinition) -> ValidationResult:
    return ValidationResult.from_issues(metric_issues(metric))
