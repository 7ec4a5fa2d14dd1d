import shutil
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "packages" / "core_engine" / "src"))

from dataspec_core import ConfigError, write_config
from dataspec_core.commands import (
    GENERATE_COMMAND,
    CommandContext,
    CommandDefinition,
    CommandResult,
    ParameterDefinition,
    default_registry,
    format_parameter_help,
    parse_invocation,
    parse_parameters,
)

FIXTURES = ROOT / "tests" / "fixtures"


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def workspace(tmp_path):
    tables = tmp_path / "dataspec" / "tables"
    metrics = tmp_path / "dataspec" / "metrics"
    tables.mkdir(parents=True)
    metrics.mkdir(parents=True)
    shutil.copy(FIXTURES / "sales_daily.table.md", tables / "dw.sales_daily.md")
    shutil.copy(FIXTURES / "gmv.metric.md", metrics / "GMV.md")
    return tmp_path


def _codes(result):
    return [error.code for error in result.errors]


class TestParameterParsing:
    def test_positionals_fill_declared_order(self):
        parsed = parse_parameters(["ddl", "dw.t", "--dialect=mysql", "--no-comments"], GENERATE_COMMAND.parameters)
        assert parsed.success
        assert parsed.args == {"type": "ddl", "target": "dw.t", "dialect": "mysql", "comments": False}

    def test_boolean_flag_and_default(self):
        parsed = parse_parameters(["etl", "dw.t", "--force"], GENERATE_COMMAND.parameters)
        assert parsed.args["force"] is True
        assert parsed.args["comments"] is True

    def test_option_before_positionals(self):
        parsed = parse_parameters(["--dialect", "hive", "check", "dw.t"], GENERATE_COMMAND.parameters)
        assert parsed.args["type"] == "check"
        assert parsed.args["target"] == "dw.t"
        assert parsed.args["dialect"] == "hive"

    def test_invalid_choice(self):
        parsed = parse_parameters(["sql", "dw.t"], GENERATE_COMMAND.parameters)
        assert not parsed.success
        assert [(error.parameter, error.code) for error in parsed.errors] == [("type", "INVALID_CHOICE")]

    def test_required_parameters_missing(self):
        parsed = parse_parameters([], GENERATE_COMMAND.parameters)
        assert not parsed.success
        assert {error.parameter for error in parsed.errors} == {"type", "target"}
        assert {error.code for error in parsed.errors} == {"REQUIRED_PARAMETER_MISSING"}

    def test_missing_option_value(self):
        parsed = parse_parameters(["ddl", "dw.t", "--dialect"], GENERATE_COMMAND.parameters)
        assert [error.code for error in parsed.errors] == ["MISSING_VALUE"]

    def test_unrecognized_arguments_are_collected(self):
        parsed = parse_parameters(["ddl", "dw.t", "extra", "--bogus"], GENERATE_COMMAND.parameters)
        assert parsed.success
        assert parsed.unrecognized == ["--bogus", "extra"]

    def test_type_coercion(self):
        parameters = (
            ParameterDefinition("limit", "number"),
            ParameterDefinition("ratio", "number"),
            ParameterDefinition("tags", "array"),
            ParameterDefinition("output_dir", "string"),
            ParameterDefinition("strict", "boolean"),
        )
        parsed = parse_parameters(
            ["--limit", "10", "--ratio=2.5", "--tags", "a, b,,c", "--output-dir", "out", "--strict=no"],
            parameters,
        )
        assert parsed.success
        assert parsed.args == {"limit": 10, "ratio": 2.5, "tags": ["a", "b", "c"], "output_dir": "out", "strict": False}

    def test_bad_number(self):
        parsed = parse_parameters(["--limit", "many"], (ParameterDefinition("limit", "number"),))
        assert [error.code for error in parsed.errors] == ["INVALID_VALUE"]

    def test_unknown_parameter_type_rejected(self):
        with pytest.raises(ValueError):
            ParameterDefinition("x", "date")

    def test_help_lists_choices_and_defaults(self):
        text = format_parameter_help(GENERATE_COMMAND.parameters)
        assert "--type" in text
        assert "[choices: ddl, etl, check]" in text
        assert "[default: True]" in text


class TestInvocation:
    def test_prefixed_invocation_with_quotes(self):
        assert parse_invocation('/dataspec:define metric 销售额 --owner "张 三"') == (
            "define",
            ["metric", "销售额", "--owner", "张 三"],
        )

    def test_short_prefix(self):
        assert parse_invocation("/validate dw.t") == ("validate", ["dw.t"])

    @pytest.mark.parametrize("text", ["", "   ", "/dataspec:"])
    def test_empty_invocation(self, text):
        with pytest.raises(ValueError):
            parse_invocation(text)


class TestRegistry:
    def test_unknown_command_suggests_close_ids(self, registry):
        result = registry.execute("generat")
        assert not result.success
        assert _codes(result) == ["COMMAND_NOT_FOUND"]
        assert "/dataspec:generate" in result.errors[0].suggestions

    def test_alias_resolves(self, registry):
        assert registry.get("gen").id == "generate"
        assert registry.get("check").id == "validate"
        assert registry.get("nope") is None

    def test_categories(self, registry):
        assert [command.id for command in registry.by_category("generate")] == ["generate"]
        with pytest.raises(ValueError):
            registry.register(CommandDefinition("x", "x", "x", "misc", handler=lambda args, ctx: None))

    def test_search_ranks_best_match_first(self, registry):
        assert registry.search("gen")[0].id == "generate"
        assert [command.id for command in registry.search("define")][0] == "define"
        assert registry.search("zzz") == []

    def test_deprecated_command(self, registry):
        registry.register(
            CommandDefinition(
                id="lint",
                name="dataspec lint",
                description="Old validation entry point",
                category="validate",
                handler=lambda args, ctx: CommandResult(True, "ok"),
                deprecated=True,
                deprecated_message="Use validate instead",
            )
        )
        result = registry.execute("lint")
        assert not result.success
        error = result.errors[0]
        assert (error.code, error.severity, error.message) == ("COMMAND_DEPRECATED", "warning", "Use validate instead")
        assert error.suggestions == ("/dataspec:validate",)

    def test_invalid_parameters(self, registry, tmp_path):
        result = registry.execute("generate", ["ddl"], CommandContext(str(tmp_path)))
        assert result.message == "Invalid parameters for generate"
        assert _codes(result) == ["REQUIRED_PARAMETER_MISSING"]

    def test_handler_errors_become_results(self, registry):
        def broken(args, context):
            raise ConfigError("bad config")

        registry.register(CommandDefinition("boom", "dataspec boom", "Always fails", "config", handler=broken))
        result = registry.execute("boom")
        assert not result.success
        assert _codes(result) == ["EXECUTION_ERROR"]
        assert result.execution_time >= 0
        assert result.to_dict()["errors"][0]["message"] == "bad config"


class TestDefineCommand:
    def test_define_table(self, registry, tmp_path):
        result = registry.run("/dataspec:define table dw.orders --owner 张三", CommandContext(str(tmp_path)))
        assert result.success, result.message
        path = tmp_path / "dataspec" / "tables" / "dw.orders.md"
        assert result.data["path"] == str(path)
        content = path.read_text(encoding="utf-8")
        assert content.startswith("# 表定义：dw.orders")
        assert "张三" in content

    def test_define_existing_table(self, registry, workspace):
        result = registry.run("/dataspec:define table dw.sales_daily", CommandContext(str(workspace)))
        assert _codes(result) == ["TABLE_EXISTS"]

    def test_table_name_needs_database(self, registry, tmp_path):
        result = registry.run("/dataspec:define table orders", CommandContext(str(tmp_path)))
        assert _codes(result) == ["INVALID_TABLE_NAME"]
        assert result.errors[0].suggestions == ("/dataspec:define table dw.orders",)

    def test_define_metric(self, registry, tmp_path):
        result = registry.run('/dataspec:define metric 退款率 --description "退款订单占比"', CommandContext(str(tmp_path)))
        assert result.success
        content = (tmp_path / "dataspec" / "metrics" / "退款率.md").read_text(encoding="utf-8")
        assert "退款订单占比" in content


class TestValidateCommand:
    def test_valid_table(self, registry, workspace):
        result = registry.run("/dataspec:validate dw.sales_daily", CommandContext(str(workspace)))
        assert result.success, result.data
        assert result.data["errors"] == []

    def test_metric_by_kind(self, registry, workspace):
        result = registry.run("/dataspec:check GMV --kind metric --no-strict", CommandContext(str(workspace)))
        assert result.success
        assert result.data["type"] == "metric"

    def test_template_fails(self, registry, tmp_path):
        context = CommandContext(str(tmp_path))
        registry.run("/dataspec:define table dw.orders", context)
        result = registry.run("/dataspec:validate dw.orders --no-strict", context)
        assert not result.success
        assert "NO_OWNER" in [error["type"] for error in result.data["errors"]]

    def test_missing_target(self, registry, tmp_path):
        result = registry.run("/dataspec:validate", CommandContext(str(tmp_path)))
        assert _codes(result) == ["MISSING_TARGET"]

    def test_unknown_target(self, registry, tmp_path):
        result = registry.run("/dataspec:validate dw.nothing", CommandContext(str(tmp_path)))
        assert _codes(result) == ["DEFINITION_NOT_FOUND"]

    def test_unparseable_document(self, registry, workspace):
        (workspace / "dataspec" / "tables" / "dw.broken.md").write_text("no title\n", encoding="utf-8")
        result = registry.run("/dataspec:validate dw.broken", CommandContext(str(workspace)))
        assert _codes(result) == ["PARSE_ERROR"]

    def test_validate_all(self, registry, workspace):
        result = registry.run("/dataspec:validate --all --no-strict", CommandContext(str(workspace)))
        assert result.success
        assert result.data["status"] == "success"
        assert result.data["data"]["tables"]["total"] == 1
        assert result.data["data"]["metrics"]["total"] == 1


class TestGenerateCommand:
    def test_default_output_location(self, registry, workspace):
        result = registry.run("/dataspec:generate ddl dw.sales_daily", CommandContext(str(workspace)))
        assert result.success, result.message
        target = workspace / "dataspec" / "templates" / "sql" / "dw.sales_daily.ddl.sql"
        assert result.data["path"] == str(target)
        assert result.data["dialect"] == "hive"
        assert target.read_text(encoding="utf-8") == result.data["sql"]
        assert "STORED AS PARQUET" in result.data["sql"]

    def test_dialect_and_output_override(self, registry, workspace):
        result = registry.run(
            "/dataspec:gen etl dw.sales_daily --dialect mysql --output out/sales.sql",
            CommandContext(str(workspace)),
        )
        assert result.success
        written = (workspace / "out" / "sales.sql").read_text(encoding="utf-8")
        assert "INSERT INTO `dw_sales_daily`" in written

    def test_config_dialect_used(self, registry, workspace):
        write_config(str(workspace), "warehouse", dialect="maxcompute")
        result = registry.run("/dataspec:generate ddl dw.sales_daily --no-comments", CommandContext(str(workspace)))
        assert result.data["dialect"] == "maxcompute"
        assert "LIFECYCLE 365" in result.data["sql"]
        assert "COMMENT" not in result.data["sql"]

    def test_check_sql(self, registry, workspace):
        result = registry.run("/dataspec:generate check dw.sales_daily", CommandContext(str(workspace)))
        assert "-- 1. Row count check" in result.data["sql"]

    def test_errors_block_generation_unless_forced(self, registry, tmp_path):
        context = CommandContext(str(tmp_path))
        registry.run("/dataspec:define table dw.orders", context)

        blocked = registry.run("/dataspec:generate ddl dw.orders", context)
        assert not blocked.success
        assert "NO_OWNER" in _codes(blocked)

        forced = registry.run("/dataspec:generate ddl dw.orders --force", context)
        assert forced.success
        assert "CREATE TABLE IF NOT EXISTS dw.orders" in forced.data["sql"]

    def test_unknown_table(self, registry, tmp_path):
        result = registry.run("/dataspec:generate ddl dw.none", CommandContext(str(tmp_path)))
        assert _codes(result) == ["DEFINITION_NOT_FOUND"]
