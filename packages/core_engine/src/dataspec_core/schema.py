import json
import re
from pathlib import Path
from typing import Any, Dict, List

from jsonschema import Draft202012Validator

from dataspec_core.issues import Issue

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"
BUNDLED_SCHEMAS = {"table", "metric", "config"}
_REQUIRED_RE = re.compile(r"^'(?P<name>[^']+)' is a required property")


def load_schema(schema_path: str) -> Dict[str, Any]:
    """Load a JSON schema by bundled name (``table``, ``metric``, ``config``) or file path."""
    if schema_path in BUNDLED_SCHEMAS:
        path = SCHEMA_DIR / f"{schema_path}.schema.json"
    else:
        path = Path(schema_path)
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _to_dotted_path(parts: List[Any]) -> str:
    formatted = ""
    for part in parts:
        if isinstance(part, int):
            formatted += f"[{part}]"
        elif formatted:
            formatted += f".{part}"
        else:
            formatted = str(part)
    return formatted


def schema_issues(record: Dict[str, Any], schema: Dict[str, Any]) -> List[Issue]:
    validator = Draft202012Validator(schema)
    issues: List[Issue] = []

    for error in sorted(validator.iter_errors(record), key=lambda e: [str(p) for p in e.absolute_path]):
        parts = list(error.absolute_path)
        if error.validator == "required":
            missing = _REQUIRED_RE.match(error.message)
            if missing:
                parts.append(missing.group("name"))
        issues.append(
            Issue(
                severity="error",
                kind="SCHEMA_ERROR",
                message=error.message,
                path=_to_dotted_path(parts) or None,
            )
        )

    return issues
