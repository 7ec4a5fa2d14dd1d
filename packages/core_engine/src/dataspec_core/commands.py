"""Slash-command registry used by AI assistant integrations.

An invocation such as ``/dataspec:generate ddl dw.sales_daily --dialect hive``
is split into a command id and raw arguments, the arguments are parsed
against the command's declared parameters, and the handler receives the
parsed values plus a :class:`CommandContext`. Every outcome, including an
unknown or deprecated command, comes back as a :class:`CommandResult`.
"""

import difflib
import logging
import shlex
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from dataspec_core.config import ProjectConfig, load_config, output_path
from dataspec_core.discovery import metric_path, resolve_definition, table_path
from dataspec_core.errors import DataSpecError, DefinitionNotFoundError
from dataspec_core.generators import SUPPORTED_DIALECTS, SQLGenerator
from dataspec_core.issues import issues_as_json
from dataspec_core.loader import read_definition
from dataspec_core.parsers import parse_metric, parse_table
from dataspec_core.report import failed_count, report_as_json, validate_definitions
from dataspec_core.templates import metric_template, table_template
from dataspec_core.validators import metric_issues, table_issues

logger = logging.getLogger(__name__)

COMMAND_PREFIX = "/dataspec:"
PARAMETER_TYPES = ("string", "number", "boolean", "choice", "array")
CATEGORIES = ("project", "table", "metric", "generate", "validate", "search", "config", "help")
MAX_SUGGESTIONS = 3


@dataclass(frozen=True)
class ParameterDefinition:
    name: str
    type: str = "string"
    required: bool = False
    description: str = ""
    default: Any = None
    choices: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.type not in PARAMETER_TYPES:
            raise ValueError(f"Unknown parameter type '{self.type}' for {self.name}.")


@dataclass(frozen=True)
class ParseError:
    parameter: str
    message: str
    code: str


@dataclass
class ParseResult:
    success: bool
    args: Dict[str, Any] = field(default_factory=dict)
    errors: List[ParseError] = field(default_factory=list)
    unrecognized: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CommandError:
    code: str
    message: str
    severity: str = "error"
    suggestions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message, "severity": self.severity}
        if self.suggestions:
            payload["suggestions"] = list(self.suggestions)
        return payload


@dataclass
class CommandResult:
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    errors: List[CommandError] = field(default_factory=list)
    execution_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "errors": [error.to_dict() for error in self.errors],
            "executionTime": self.execution_time,
        }


@dataclass
class CommandContext:
    root: str = "."
    config: Optional[ProjectConfig] = None

    def project_config(self) -> ProjectConfig:
        if self.config is None:
            self.config = load_config(self.root)
        return self.config


Handler = Callable[[Dict[str, Any], CommandContext], CommandResult]


@dataclass(frozen=True)
class CommandDefinition:
    id: str
    name: str
    description: str
    category: str
    handler: Handler
    parameters: Tuple[ParameterDefinition, ...] = ()
    examples: Tuple[str, ...] = ()
    aliases: Tuple[str, ...] = ()
    version: str = "0.2.0"
    deprecated: bool = False
    deprecated_message: Optional[str] = None


def _failure(message: str, code: str, detail: Optional[str] = None, suggestions: Sequence[str] = ()) -> CommandResult:
    return CommandResult(
        success=False,
        message=message,
        errors=[CommandError(code=code, message=detail or message, suggestions=tuple(suggestions))],
    )


# ── Parameter parsing ─────────────────────────────────────────────────────────


def _option_name(raw: str) -> str:
    return raw.replace("-", "_")


def _coerce(value: str, parameter: ParameterDefinition) -> Any:
    if parameter.type == "number":
        try:
            number = float(value)
        except ValueError:
            raise ValueError(f'"{value}" is not a valid number') from None
        return int(number) if number.is_integer() else number
    if parameter.type == "boolean":
        lowered = value.lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
        raise ValueError(f'"{value}" is not a valid boolean value')
    if parameter.type == "array":
        return [item.strip() for item in value.split(",") if item.strip()]
    if parameter.type == "choice" and value not in parameter.choices:
        raise ValueError(f'"{value}" is not one of: {", ".join(parameter.choices)}')
    return value


def parse_parameters(args: Sequence[str], parameters: Sequence[ParameterDefinition]) -> ParseResult:
    """Parse raw arguments against declared parameters.

    Named options accept ``--name value``, ``--name=value``, ``--flag`` and
    ``--no-flag``; kebab-case names map to snake_case. Bare arguments fill the
    remaining non-boolean parameters in declaration order. Unknown options and
    surplus positionals are reported in ``unrecognized`` rather than as errors.
    """
    by_name = {parameter.name: parameter for parameter in parameters}
    result = ParseResult(success=True)
    positionals: List[str] = []

    index = 0
    while index < len(args):
        token = args[index]
        index += 1
        if not token.startswith("--"):
            positionals.append(token)
            continue

        body = token[2:]
        inline: Optional[str] = None
        if "=" in body:
            body, inline = body.split("=", 1)

        negated = False
        name = _option_name(body)
        parameter = by_name.get(name)
        if parameter is None and name.startswith("no_") and inline is None:
            candidate = by_name.get(name[3:])
            if candidate is not None and candidate.type == "boolean":
                parameter, negated = candidate, True
        if parameter is None:
            result.unrecognized.append(token)
            continue

        if parameter.type == "boolean" and inline is None:
            result.args[parameter.name] = not negated
            continue

        if inline is None:
            if index >= len(args):
                result.errors.append(
                    ParseError(parameter.name, f"Parameter --{body} requires a value", "MISSING_VALUE")
                )
                continue
            inline = args[index]
            index += 1

        try:
            result.args[parameter.name] = _coerce(inline, parameter)
        except ValueError as exc:
            code = "INVALID_CHOICE" if parameter.type == "choice" else "INVALID_VALUE"
            result.errors.append(ParseError(parameter.name, f"Invalid value for --{body}: {exc}", code))

    open_slots = [p for p in parameters if p.type != "boolean" and p.name not in result.args]
    for value in positionals:
        if not open_slots:
            result.unrecognized.append(value)
            continue
        parameter = open_slots.pop(0)
        try:
            result.args[parameter.name] = _coerce(value, parameter)
        except ValueError as exc:
            code = "INVALID_CHOICE" if parameter.type == "choice" else "INVALID_VALUE"
            result.errors.append(ParseError(parameter.name, f"Invalid value for {parameter.name}: {exc}", code))

    for parameter in parameters:
        if parameter.name in result.args or any(e.parameter == parameter.name for e in result.errors):
            continue
        if parameter.default is not None:
            result.args[parameter.name] = parameter.default
        elif parameter.required:
            result.errors.append(
                ParseError(
                    parameter.name,
                    f"Required parameter --{parameter.name} is missing",
                    "REQUIRED_PARAMETER_MISSING",
                )
            )

    result.success = not result.errors
    return result


def parse_invocation(text: str) -> Tuple[str, List[str]]:
    """Split ``/dataspec:<command> args...`` into the command id and its arguments."""
    tokens = shlex.split(text)
    if not tokens:
        raise ValueError("Empty command invocation.")
    head = tokens[0]
    if head.startswith(COMMAND_PREFIX):
        head = head[len(COMMAND_PREFIX):]
    elif head.startswith("/"):
        head = head[1:]
    if not head:
        raise ValueError(f"No command name in invocation: {text!r}")
    return head, tokens[1:]


def format_parameter_help(parameters: Sequence[ParameterDefinition]) -> str:
    lines = ["Parameters:"]
    for parameter in parameters:
        flag = "Required" if parameter.required else "Optional"
        extra = ""
        if parameter.default is not None:
            extra += f" [default: {parameter.default}]"
        if parameter.choices:
            extra += f" [choices: {', '.join(parameter.choices)}]"
        lines.append(f"  --{parameter.name.replace('_', '-'):<20} {parameter.type:<10} {flag}{extra}")
        if parameter.description:
            lines.append(f"      {parameter.description}")
    return "\n".join(lines)


# ── Registry ──────────────────────────────────────────────────────────────────


class CommandRegistry:
    def __init__(self) -> None:
        self._commands: Dict[str, CommandDefinition] = {}

    def register(self, command: CommandDefinition) -> None:
        if command.category not in CATEGORIES:
            raise ValueError(f"Invalid command category '{command.category}' for {command.id}.")
        if command.id in self._commands:
            logger.debug("Command %s already registered, overwriting", command.id)
        self._commands[command.id] = command
        logger.debug("Registered command %s (%s)", command.id, command.category)

    def get(self, command_id: str) -> Optional[CommandDefinition]:
        if command_id in self._commands:
            return self._commands[command_id]
        for command in self._commands.values():
            if command_id in command.aliases:
                return command
        return None

    def all(self) -> List[CommandDefinition]:
        return list(self._commands.values())

    def by_category(self, category: str) -> List[CommandDefinition]:
        return [command for command in self._commands.values() if command.category == category]

    def search(self, query: str) -> List[CommandDefinition]:
        """Commands matching *query* by id, name, description or alias, best match first."""
        needle = query.lower()
        scored = [(self._score(command, needle), command) for command in self._commands.values()]
        matches = [(score, command) for score, command in scored if score > 0]
        matches.sort(key=lambda item: item[0], reverse=True)
        return [command for _, command in matches]

    @staticmethod
    def _score(command: CommandDefinition, needle: str) -> int:
        score = 0
        if command.id == needle:
            score += 100
        elif needle in command.id:
            score += 80
        name = command.name.lower()
        if name == needle:
            score += 90
        elif needle in name:
            score += 70
        if needle in command.description.lower():
            score += 30
        for alias in command.aliases:
            if alias.lower() == needle:
                score += 95
            elif needle in alias.lower():
                score += 75
        return score

    def suggestions(self, command_id: str) -> List[str]:
        ids = list(self._commands)
        close = difflib.get_close_matches(command_id, ids, n=MAX_SUGGESTIONS, cutoff=0.5)
        for candidate in ids:
            if candidate not in close and (command_id.lower() in candidate or candidate in command_id.lower()):
                close.append(candidate)
        return [f"{COMMAND_PREFIX}{candidate}" for candidate in close[:MAX_SUGGESTIONS]]

    def execute(
        self,
        command_id: str,
        args: Sequence[str] = (),
        context: Optional[CommandContext] = None,
    ) -> CommandResult:
        command = self.get(command_id)
        if command is None:
            return _failure(
                f"Unknown command: {command_id}",
                "COMMAND_NOT_FOUND",
                f"Command '{command_id}' is not registered",
                self.suggestions(command_id),
            )

        if command.deprecated:
            alternatives = [
                f"{COMMAND_PREFIX}{other.id}"
                for other in self.by_category(command.category)
                if not other.deprecated and other.id != command.id
            ]
            return CommandResult(
                success=False,
                message=f"Deprecated command: {command_id}",
                errors=[
                    CommandError(
                        code="COMMAND_DEPRECATED",
                        message=command.deprecated_message or f"Command '{command_id}' is deprecated",
                        severity="warning",
                        suggestions=tuple(alternatives[:MAX_SUGGESTIONS]),
                    )
                ],
            )

        parsed = parse_parameters(args, command.parameters)
        if not parsed.success:
            return CommandResult(
                success=False,
                message=f"Invalid parameters for {command.id}",
                errors=[CommandError(code=error.code, message=error.message) for error in parsed.errors],
            )
        if parsed.unrecognized:
            logger.debug("Ignoring unrecognized arguments for %s: %s", command.id, parsed.unrecognized)

        started = time.perf_counter()
        try:
            result = command.handler(parsed.args, context or CommandContext())
        except (DataSpecError, OSError) as exc:
            result = _failure(f"Command execution failed: {exc}", "EXECUTION_ERROR", str(exc))
        result.execution_time = time.perf_counter() - started
        return result

    def run(self, invocation: str, context: Optional[CommandContext] = None) -> CommandResult:
        command_id, args = parse_invocation(invocation)
        return self.execute(command_id, args, context)


# ── Built-in commands ─────────────────────────────────────────────────────────


def _define(args: Dict[str, Any], context: CommandContext) -> CommandResult:
    kind = args["type"]
    name = args["name"]

    if kind == "table":
        if "." not in name:
            return _failure(
                "Invalid table name format",
                "INVALID_TABLE_NAME",
                "Table name must be in format: database.table_name",
                [f"{COMMAND_PREFIX}define table dw.{name}"],
            )
        path = table_path(name, context.root)
        content = table_template(name, owner=args.get("owner"), description=args.get("description"))
    else:
        path = metric_path(name, context.root)
        content = metric_template(name, owner=args.get("owner"), description=args.get("description"))

    if path.exists():
        return _failure(
            f"{kind.capitalize()} {name} already exists",
            f"{kind.upper()}_EXISTS",
            f"Definition file already exists: {path}",
            [f"{COMMAND_PREFIX}validate {name} --kind {kind}"],
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return CommandResult(
        success=True,
        message=f"{kind.capitalize()} {name} defined successfully",
        data={"type": kind, "name": name, "path": str(path)},
    )


def _validate(args: Dict[str, Any], context: CommandContext) -> CommandResult:
    strict = args.get("strict")
    if strict is None:
        strict = context.project_config().strict_mode

    if args.get("all"):
        outcomes = validate_definitions(context.root)
        payload = report_as_json(outcomes, strict=strict)
        failed = failed_count(outcomes, strict)
        return CommandResult(
            success=not failed,
            message="All definitions passed validation." if not failed else f"{failed} definition(s) failed validation.",
            data=payload,
        )

    target = args.get("target")
    if not target:
        return _failure("Target is required", "MISSING_TARGET", "Provide a definition name or use --all")

    kind = args["kind"]
    try:
        path = resolve_definition(kind, target, context.root)
    except DefinitionNotFoundError as exc:
        return _failure(f"Definition not found: {target}", "DEFINITION_NOT_FOUND", str(exc))

    content = read_definition(str(path))
    try:
        issues = table_issues(parse_table(content)) if kind == "table" else metric_issues(parse_metric(content))
    except DataSpecError as exc:
        return _failure(f"Could not parse {target}", "PARSE_ERROR", str(exc))

    errors = [issue for issue in issues if issue.severity == "error"]
    warnings = [issue for issue in issues if issue.severity == "warning"]
    passed = not errors and not (strict and warnings)
    return CommandResult(
        success=passed,
        message=f"{target} passed validation." if passed else f"{target} failed validation.",
        data={
            "name": target,
            "type": kind,
            "path": str(path),
            "errors": issues_as_json(errors),
            "warnings": issues_as_json(warnings),
        },
    )


def _generate(args: Dict[str, Any], context: CommandContext) -> CommandResult:
    output_type = args["type"]
    target = args["target"]
    config = context.project_config()
    dialect = args.get("dialect") or config.default_dialect

    try:
        path = resolve_definition("table", target, context.root)
    except DefinitionNotFoundError as exc:
        return _failure(f"Definition not found: {target}", "DEFINITION_NOT_FOUND", str(exc))

    table = parse_table(read_definition(str(path)))
    issues = table_issues(table)
    blocking = [issue for issue in issues if issue.severity == "error"]
    if blocking and not args.get("force"):
        return CommandResult(
            success=False,
            message=f"{target} has validation errors; fix them or pass --force",
            errors=[CommandError(code=issue.kind, message=issue.message) for issue in blocking],
        )

    generator = SQLGenerator(dialect)
    comments = args.get("comments", True)
    if output_type == "ddl":
        sql = generator.generate_ddl(table, include_comments=comments)
    elif output_type == "etl":
        sql = generator.generate_etl(table, include_comments=comments)
    else:
        sql = generator.generate_check_sql(table)

    if args.get("output"):
        destination = Path(args["output"])
        if not destination.is_absolute():
            destination = Path(context.root) / destination
    else:
        destination = output_path(config, context.root, "sql", f"{table.name}.{output_type}.sql")
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(sql, encoding="utf-8")

    return CommandResult(
        success=True,
        message=f"Generated {output_type} for {table.name}: {destination}",
        data={"type": output_type, "name": table.name, "dialect": generator.dialect, "path": str(destination), "sql": sql},
    )


DEFINE_COMMAND = CommandDefinition(
    id="define",
    name="dataspec define",
    description="Define data tables or metrics",
    category="table",
    handler=_define,
    parameters=(
        ParameterDefinition("type", "choice", True, "Type of definition: table or metric", choices=("table", "metric")),
        ParameterDefinition("name", "string", True, "Table name (database.table) or metric name"),
        ParameterDefinition("owner", "string", False, "Data owner name"),
        ParameterDefinition("description", "string", False, "Brief description"),
    ),
    examples=(
        "/dataspec:define table dw.sales_daily",
        '/dataspec:define metric 销售额 --owner "张三"',
    ),
)

VALIDATE_COMMAND = CommandDefinition(
    id="validate",
    name="dataspec validate",
    description="Validate one definition or every definition in the project",
    category="validate",
    handler=_validate,
    parameters=(
        ParameterDefinition("target", "string", False, "Table or metric name"),
        ParameterDefinition("kind", "choice", False, "Definition kind", default="table", choices=("table", "metric")),
        ParameterDefinition("all", "boolean", False, "Validate every definition"),
        ParameterDefinition("strict", "boolean", False, "Treat warnings as failures"),
    ),
    examples=(
        "/dataspec:validate dw.sales_daily",
        "/dataspec:validate --all --strict",
    ),
    aliases=("check",),
)

GENERATE_COMMAND = CommandDefinition(
    id="generate",
    name="dataspec generate",
    description="Generate DDL, ETL or data-quality check SQL from a table definition",
    category="generate",
    handler=_generate,
    parameters=(
        ParameterDefinition("type", "choice", True, "Output type", choices=("ddl", "etl", "check")),
        ParameterDefinition("target", "string", True, "Table name (database.table)"),
        ParameterDefinition("dialect", "choice", False, "SQL dialect override", choices=SUPPORTED_DIALECTS),
        ParameterDefinition("output", "string", False, "Output file path"),
        ParameterDefinition("comments", "boolean", False, "Include comments (use --no-comments to drop them)", default=True),
        ParameterDefinition("force", "boolean", False, "Generate even when validation reports errors"),
    ),
    examples=(
        "/dataspec:generate ddl dw.sales_daily",
        "/dataspec:generate etl dw.sales_daily --dialect maxcompute --output etl/sales.sql",
    ),
    aliases=("gen",),
)

BUILTIN_COMMANDS = (DEFINE_COMMAND, VALIDATE_COMMAND, GENERATE_COMMAND)


def default_registry() -> CommandRegistry:
    registry = CommandRegistry()
    for command in BUILTIN_COMMANDS:
        registry.register(command)
    return registry
