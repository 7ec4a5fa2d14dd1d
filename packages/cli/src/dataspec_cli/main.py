import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dataspec_core import (
    SUPPORTED_DIALECTS,
    CommandContext,
    ConfigError,
    DataSpecError,
    DefinitionNotFoundError,
    ExtractionError,
    Issue,
    SQLGenerator,
    default_registry,
    format_report,
    has_errors,
    issues_as_json,
    load_config,
    metric_path,
    metric_report,
    metric_issues,
    metric_template,
    parse_invocation,
    read_definition,
    report_as_json,
    resolve_definition,
    table_issues,
    table_path,
    table_report,
    table_template,
    to_lines,
    validate_definitions,
    write_assistant_commands,
    write_config,
)
from dataspec_core.config import WORKSPACE_DIR
from dataspec_core.discovery import CHECKS_DIR, METRICS_DIR, TABLES_DIR

WORKSPACE_DIRS = (TABLES_DIR, METRICS_DIR, CHECKS_DIR, Path(WORKSPACE_DIR) / "templates" / "sql")


def _print_issues(issues: List[Issue]) -> None:
    if not issues:
        print("No issues found.")
        return
    for line in to_lines(issues):
        print(line)


def _fail(message: str, code: int = 2) -> int:
    print(message, file=sys.stderr)
    return code


def _strict(args: argparse.Namespace, root: str) -> bool:
    if args.strict is not None:
        return args.strict
    return load_config(root).strict_mode


def cmd_init(args: argparse.Namespace) -> int:
    root = Path(args.path).resolve()
    created = []
    for directory in WORKSPACE_DIRS:
        target = root / directory
        target.mkdir(parents=True, exist_ok=True)
        created.append(target)

    config_path = write_config(str(root), args.name or root.name, args.dialect)
    created.append(config_path)

    try:
        config = load_config(str(root))
        created.extend(write_assistant_commands(str(root), config.ai_tools))
    except ConfigError as exc:
        return _fail(str(exc))

    print(f"Initialized DataSpec workspace at {root}")
    for path in created:
        print(f"- {path}")
    return 0


def cmd_new(args: argparse.Namespace) -> int:
    if args.kind == "table":
        if "." not in args.name:
            return _fail(f"Table name must be in format database.table_name: {args.name}")
        path = table_path(args.name, args.path)
        content = table_template(args.name, owner=args.owner, description=args.description)
    else:
        path = metric_path(args.name, args.path)
        content = metric_template(args.name, owner=args.owner, description=args.description)

    if path.exists() and not args.overwrite:
        return _fail(f"Definition already exists: {path}. Use --overwrite to replace it.", 1)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    print(f"Created {args.kind} definition: {path}")
    return 0


def cmd_parse(args: argparse.Namespace) -> int:
    try:
        content = read_definition(args.file)
    except FileNotFoundError as exc:
        return _fail(str(exc))

    try:
        if args.kind == "metric":
            report = metric_report(content)
        elif args.kind == "table":
            report = table_report(content)
        else:
            try:
                report = table_report(content)
            except ExtractionError:
                report = metric_report(content)
    except ExtractionError as exc:
        return _fail(f"Parse failed: {exc}", 1)

    payload = {"record": report.record.to_dict(), "sections": report.sections}
    output = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.out:
        Path(args.out).write_text(output + "\n", encoding="utf-8")
        print(f"Wrote parsed definition: {args.out}")
    else:
        print(output)
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    root = args.path
    try:
        strict = _strict(args, root)
    except ConfigError as exc:
        return _fail(str(exc))

    if args.all:
        kinds = (args.kind,) if args.kind else ("table", "metric")
        outcomes = validate_definitions(root, kinds)
        if args.output_json:
            print(json.dumps(report_as_json(outcomes, strict=strict), indent=2, ensure_ascii=False))
        else:
            print(format_report(outcomes, strict=strict, verbose=args.verbose))
        failed = [outcome for outcome in outcomes if not outcome.passed(strict)]
        return 1 if failed else 0

    if not args.target:
        return _fail("Provide a definition name or path, or use --all.")

    kind = args.kind or "table"
    try:
        path = resolve_definition(kind, args.target, root)
        content = read_definition(str(path))
        if kind == "table":
            issues = table_issues(table_report(content).record)
        else:
            issues = metric_issues(metric_report(content).record)
    except DefinitionNotFoundError as exc:
        return _fail(str(exc))
    except ExtractionError as exc:
        return _fail(f"Parse failed: {exc}", 1)

    if args.output_json:
        payload = {
            "name": args.target,
            "type": kind,
            "path": str(path),
            "issues": issues_as_json(issues),
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        _print_issues(issues)

    warnings = [issue for issue in issues if issue.severity == "warning"]
    if has_errors(issues) or (strict and warnings):
        return 1
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    root = args.path
    try:
        config = load_config(root)
        path = resolve_definition("table", args.target, root)
        table = table_report(read_definition(str(path))).record
    except (ConfigError, DefinitionNotFoundError) as exc:
        return _fail(str(exc))
    except ExtractionError as exc:
        return _fail(f"Parse failed: {exc}", 1)

    issues = table_issues(table)
    if has_errors(issues) and not args.force:
        _print_issues(issues)
        print("Generation refused: definition has validation errors. Use --force to bypass.")
        return 1

    generator = SQLGenerator(args.dialect or config.default_dialect)
    if args.output_type == "ddl":
        sql = generator.generate_ddl(table, include_comments=not args.no_comments)
    elif args.output_type == "etl":
        sql = generator.generate_etl(table, include_comments=not args.no_comments)
    else:
        sql = generator.generate_check_sql(table)

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(sql, encoding="utf-8")
        print(f"Wrote {generator.dialect} {args.output_type}: {args.out}")
    else:
        print(sql, end="")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    try:
        command_id, command_args = parse_invocation(args.invocation)
    except ValueError as exc:
        return _fail(str(exc))

    registry = default_registry()
    result = registry.execute(command_id, command_args, CommandContext(root=args.path))

    if args.output_json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(result.message)
        for error in result.errors:
            print(f"  [{error.severity.upper()}] {error.code}: {error.message}")
            for suggestion in error.suggestions:
                print(f"    try: {suggestion}")
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dataspec", description="DataSpec definition toolkit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging and per-issue detail")
    sub = parser.add_subparsers(dest="command", required=True)

    init_parser = sub.add_parser("init", help="Initialize a DataSpec workspace")
    init_parser.add_argument("--path", default=".", help="Workspace path")
    init_parser.add_argument("--name", help="Project name (default: directory name)")
    init_parser.add_argument("--dialect", choices=SUPPORTED_DIALECTS, default="hive", help="Default SQL dialect")
    init_parser.set_defaults(func=cmd_init)

    new_parser = sub.add_parser("new", help="Create a table or metric definition from the template")
    new_parser.add_argument("kind", choices=["table", "metric"], help="Definition kind")
    new_parser.add_argument("name", help="Table name (database.table) or metric name")
    new_parser.add_argument("--owner", help="Owner to fill in")
    new_parser.add_argument("--description", help="Description to fill in")
    new_parser.add_argument("--path", default=".", help="Workspace path")
    new_parser.add_argument("--overwrite", action="store_true", help="Replace an existing definition")
    new_parser.set_defaults(func=cmd_new)

    parse_parser = sub.add_parser("parse", help="Parse a definition document to JSON")
    parse_parser.add_argument("file", help="Path to the Markdown definition")
    parse_parser.add_argument("--kind", choices=["auto", "table", "metric"], default="auto", help="Definition kind")
    parse_parser.add_argument("--out", help="Output file for the parsed JSON")
    parse_parser.set_defaults(func=cmd_parse)

    validate_parser = sub.add_parser("validate", help="Validate one definition or the whole workspace")
    validate_parser.add_argument("target", nargs="?", help="Definition name or path")
    validate_parser.add_argument("--kind", choices=["table", "metric"], help="Definition kind (default: table)")
    validate_parser.add_argument("--all", action="store_true", help="Validate every definition in the workspace")
    validate_parser.add_argument("--path", default=".", help="Workspace path")
    strict_group = validate_parser.add_mutually_exclusive_group()
    strict_group.add_argument("--strict", dest="strict", action="store_true", default=None, help="Count warnings as failures")
    strict_group.add_argument("--no-strict", dest="strict", action="store_false", help="Only errors fail validation")
    validate_parser.add_argument("--output-json", action="store_true", help="Print a JSON report")
    validate_parser.set_defaults(func=cmd_validate)

    generate_parser = sub.add_parser("generate", help="Generate SQL from a table definition")
    generate_parser.add_argument("output_type", choices=["ddl", "etl", "check"], help="What to generate")
    generate_parser.add_argument("target", help="Table name or definition path")
    generate_parser.add_argument("--dialect", choices=SUPPORTED_DIALECTS, help="SQL dialect (default: from config)")
    generate_parser.add_argument("--no-comments", action="store_true", help="Omit header and COMMENT clauses")
    generate_parser.add_argument("--out", help="Output SQL file")
    generate_parser.add_argument("--force", action="store_true", help="Generate even when validation fails")
    generate_parser.add_argument("--path", default=".", help="Workspace path")
    generate_parser.set_defaults(func=cmd_generate)

    run_parser = sub.add_parser("run", help="Execute a slash command, e.g. '/dataspec:generate ddl dw.orders'")
    run_parser.add_argument("invocation", help="Quoted slash-command invocation")
    run_parser.add_argument("--path", default=".", help="Workspace path")
    run_parser.add_argument("--output-json", action="store_true", help="Print the command result as JSON")
    run_parser.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    try:
        return args.func(args)
    except DataSpecError as exc:
        return _fail(str(exc))


if __name__ == "__main__":
    raise SystemExit(main())
