from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional


@dataclass(frozen=True)
class Issue:
    severity: str
    kind: str
    message: str
    path: Optional[str] = None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)

    @classmethod
    def from_issues(cls, issues: Iterable[Issue]) -> "ValidationResult":
        pooled = list(issues)
        errors = [issue for issue in pooled if issue.severity == "error"]
        warnings = [issue for issue in pooled if issue.severity == "warning"]
        return cls(valid=not errors, errors=errors, warnings=warnings, issues=pooled)


def has_errors(issues: Iterable[Issue]) -> bool:
    return any(issue.severity == "error" for issue in issues)


def to_lines(issues: List[Issue]) -> List[str]:
    lines = []
    for issue in issues:
        location = issue.path or "/"
        lines.append(f"[{issue.severity.upper()}] {issue.kind} {location}: {issue.message}")
    return lines


def issues_as_json(issues: List[Issue]) -> List[Dict[str, Any]]:
    return [
        {
            "severity": issue.severity,
            "type": issue.kind,
            "message": issue.message,
            "path": issue.path,
        }
        for issue in issues
    ]
