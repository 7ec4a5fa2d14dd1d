"""Batch validation of every definition in a workspace for ``dataspec validate --all``.

Each discovered table and metric document is read, parsed and run through
its validator. Parse failures are recorded per document instead of aborting
the run. In strict mode a definition with warnings counts as failed.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from dataspec_core.discovery import KINDS, definition_path, discover_metrics, discover_tables
from dataspec_core.errors import DataSpecError
from dataspec_core.issues import Issue, issues_as_json, to_lines
from dataspec_core.loader import read_definition
from dataspec_core.parsers import parse_metric, parse_table
from dataspec_core.validators import metric_issues, table_issues

logger = logging.getLogger(__name__)


class DefinitionOutcome:
    """Validation outcome for one definition document."""

    __slots__ = ("name", "kind", "path", "issues", "parse_error")

    def __init__(
        self,
        name: str,
        kind: str,
        path: str,
        issues: Optional[List[Issue]] = None,
        parse_error: Optional[str] = None,
    ) -> None:
        self.name = name
        self.kind = kind
        self.path = path
        self.issues = list(issues or [])
        self.parse_error = parse_error

    @property
    def errors(self) -> List[Issue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> List[Issue]:
        return [issue for issue in self.issues if issue.severity == "warning"]

    def passed(self, strict: bool = False) -> bool:
        if self.parse_error is not None or self.errors:
            return False
        return not (strict and self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        if self.parse_error is not None:
            return {"name": self.name, "type": self.kind, "parseError": self.parse_error}
        return {
            "name": self.name,
            "type": self.kind,
            "errors": issues_as_json(self.errors),
            "warnings": issues_as_json(self.warnings),
        }


def check_definition(kind: str, name: str, root: str = ".") -> DefinitionOutcome:
    path = definition_path(kind, name, root)
    try:
        content = read_definition(str(path))
        if kind == "table":
            issues = table_issues(parse_table(content))
        else:
            issues = metric_issues(parse_metric(content))
    except (DataSpecError, OSError) as exc:
        logger.debug("Could not parse %s %s: %s", kind, name, exc)
        return DefinitionOutcome(name, kind, str(path), parse_error=str(exc))
    return DefinitionOutcome(name, kind, str(path), issues=issues)


def validate_definitions(root: str = ".", kinds: Sequence[str] = KINDS) -> List[DefinitionOutcome]:
    """Validate every discovered definition of the requested kinds, tables first."""
    outcomes: List[DefinitionOutcome] = []
    if "table" in kinds:
        outcomes.extend(check_definition("table", name, root) for name in discover_tables(root))
    if "metric" in kinds:
        outcomes.extend(check_definition("metric", name, root) for name in discover_metrics(root))
    return outcomes


def _summary(outcomes: List[DefinitionOutcome], kind: str, strict: bool) -> Dict[str, int]:
    scoped = [outcome for outcome in outcomes if outcome.kind == kind]
    passed = sum(1 for outcome in scoped if outcome.passed(strict))
    return {
        "total": len(scoped),
        "passed": passed,
        "failed": len(scoped) - passed,
        "warnings": sum(len(outcome.warnings) for outcome in scoped),
    }


def failed_count(outcomes: List[DefinitionOutcome], strict: bool = False) -> int:
    return sum(1 for outcome in outcomes if not outcome.passed(strict))


def report_as_json(
    outcomes: List[DefinitionOutcome],
    strict: bool = False,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    moment = timestamp or datetime.now(timezone.utc)
    return {
        "status": "failed" if failed_count(outcomes, strict) else "success",
        "data": {
            "tables": _summary(outcomes, "table", strict),
            "metrics": _summary(outcomes, "metric", strict),
        },
        "errors": [outcome.to_dict() for outcome in outcomes if not outcome.passed(strict)],
        "timestamp": moment.isoformat(),
    }


def format_report(outcomes: List[DefinitionOutcome], strict: bool = False, verbose: bool = False) -> str:
    """Human-readable batch report."""
    lines: List[str] = []
    for outcome in outcomes:
        icon = "✓" if outcome.passed(strict) else "✗"
        if outcome.parse_error is not None:
            lines.append(f"  [{icon}] {outcome.kind} {outcome.name}: parse failed: {outcome.parse_error}")
            continue
        lines.append(f"  [{icon}] {outcome.kind} {outcome.name}")
        if verbose:
            lines.extend(f"      {line}" for line in to_lines(outcome.issues))

    lines.append("")
    for kind, label in (("table", "Tables"), ("metric", "Metrics")):
        summary = _summary(outcomes, kind, strict)
        if not summary["total"]:
            continue
        lines.append(
            f"{label}: {summary['total']} total, {summary['passed']} passed, "
            f"{summary['failed']} failed, {summary['warnings']} warnings"
        )

    failed = failed_count(outcomes, strict)
    if not outcomes:
        lines.append("No definitions found.")
    elif failed:
        lines.append(f"Validation failed for {failed} definition(s).")
        if not verbose:
            lines.append("Use --verbose to see each issue.")
    else:
        lines.append("All definitions passed validation.")
    return "\n".join(lines)
