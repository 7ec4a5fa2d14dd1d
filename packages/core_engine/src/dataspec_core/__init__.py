from dataspec_core.assistants import SUPPORTED_TOOLS, get_configurator, write_assistant_commands
from dataspec_core.commands import (
    CommandContext,
    CommandDefinition,
    CommandRegistry,
    CommandResult,
    ParameterDefinition,
    default_registry,
    parse_invocation,
    parse_parameters,
)
from dataspec_core.config import ProjectConfig, find_config, load_config, write_config
from dataspec_core.discovery import (
    discover_checks,
    discover_metrics,
    discover_tables,
    metric_path,
    resolve_definition,
    table_path,
)
from dataspec_core.errors import (
    ConfigError,
    DataSpecError,
    DefinitionNotFoundError,
    ExtractionError,
    UnsupportedDialectError,
)
from dataspec_core.generators import (
    SUPPORTED_DIALECTS,
    SQLGenerator,
    generate_check_sql,
    generate_ddl,
    generate_etl,
)
from dataspec_core.issues import Issue, ValidationResult, has_errors, issues_as_json, to_lines
from dataspec_core.loader import load_metric, load_table, read_definition
from dataspec_core.models import (
    ChangeEntry,
    FieldDefinition,
    MetricDefinition,
    TableDefinition,
    is_placeholder,
)
from dataspec_core.parsers import ParseReport, metric_report, parse_metric, parse_table, table_report
from dataspec_core.report import format_report, report_as_json, validate_definitions
from dataspec_core.schema import load_schema, schema_issues
from dataspec_core.templates import metric_template, table_template
from dataspec_core.validators import metric_issues, table_issues, validate_metric, validate_table

__all__ = [
    "ChangeEntry",
    "CommandContext",
    "CommandDefinition",
    "CommandRegistry",
    "CommandResult",
    "ConfigError",
    "DataSpecError",
    "default_registry",
    "DefinitionNotFoundError",
    "discover_checks",
    "discover_metrics",
    "discover_tables",
    "ExtractionError",
    "FieldDefinition",
    "find_config",
    "format_report",
    "generate_check_sql",
    "generate_ddl",
    "generate_etl",
    "get_configurator",
    "has_errors",
    "Issue",
    "issues_as_json",
    "is_placeholder",
    "load_config",
    "load_metric",
    "load_schema",
    "load_table",
    "metric_issues",
    "metric_path",
    "metric_report",
    "metric_template",
    "MetricDefinition",
    "ParameterDefinition",
    "parse_invocation",
    "parse_metric",
    "parse_parameters",
    "parse_table",
    "ParseReport",
    "ProjectConfig",
    "read_definition",
    "report_as_json",
    "resolve_definition",
    "schema_issues",
    "SQLGenerator",
    "SUPPORTED_DIALECTS",
    "SUPPORTED_TOOLS",
    "table_issues",
    "table_path",
    "table_report",
    "table_template",
    "TableDefinition",
    "to_lines",
    "UnsupportedDialectError",
    "validate_definitions",
    "validate_metric",
    "validate_table",
    "ValidationResult",
    "write_assistant_commands",
    "write_config",
]
