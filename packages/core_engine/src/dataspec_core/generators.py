import logging
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple, Type

from dataspec_core.errors import UnsupportedDialectError
from dataspec_core.models import FieldDefinition, TableDefinition

logger = logging.getLogger(__name__)

BIZDATE = "${bizdate}"
DEFAULT_SOURCE = "source_table"
DATE_PARTITION = "dt"
FIELD_TODO = "TODO: fill in field logic"

# One entry of a comma-separated block: SQL text plus an optional trailing comment.
BlockItem = Tuple[str, Optional[str]]


def _literal(value: Optional[str]) -> str:
    """Quote *value* as a SQL string literal."""
    return "'" + str(value or "").replace("'", "''") + "'"


def _today(generated_on: Optional[date]) -> str:
    return (generated_on or date.today()).isoformat()


def _has_date_partition(table: TableDefinition) -> bool:
    return DATE_PARTITION in table.partition_keys


def _bare(lines: Sequence[str]) -> List[BlockItem]:
    return [(line, None) for line in lines]


def _join_block(items: Sequence[BlockItem], indent: str = "    ") -> List[str]:
    """Indent *items* and put commas between them; a trailing comment goes after the comma."""
    out: List[str] = []
    for idx, (sql, comment) in enumerate(items):
        comma = "," if idx < len(items) - 1 else ""
        line = f"{indent}{sql}{comma}"
        if comment:
            line += f"  -- {comment}"
        out.append(line)
    return out


class DialectRenderer:
    """Renders DDL and ETL text for one SQL dialect."""

    name = ""
    label = ""
    type_map: Dict[str, str] = {}
    default_type = "STRING"

    def map_type(self, field_type: str) -> str:
        return self.type_map.get(str(field_type or "").strip().upper(), self.default_type)

    def table_name(self, table: TableDefinition) -> str:
        return table.name

    def header(self, title: str, table: TableDefinition, generated_on: Optional[date]) -> List[str]:
        lines = [f"-- {title}", f"-- Table: {table.name}"]
        if table.display_name:
            lines.append(f"-- Display name: {table.display_name}")
        lines.append(f"-- Owner: {table.owner or ''}")
        lines.append(f"-- Generated: {_today(generated_on)}")
        lines.append("")
        return lines

    def render_ddl(self, table: TableDefinition, include_comments: bool = True, generated_on: Optional[date] = None) -> str:
        raise NotImplementedError

    def render_etl(self, table: TableDefinition, include_comments: bool = True, generated_on: Optional[date] = None) -> str:
        raise NotImplementedError


class HiveRenderer(DialectRenderer):
    name = "hive"
    label = "Hive"
    type_map = {
        "STRING": "STRING",
        "INT": "INT",
        "BIGINT": "BIGINT",
        "DECIMAL": "DECIMAL(18,2)",
        "DATE": "STRING",
        "TIMESTAMP": "TIMESTAMP",
        "BOOLEAN": "BOOLEAN",
        "DOUBLE": "DOUBLE",
        "FLOAT": "FLOAT",
    }
    default_type = "STRING"
    comment_partitions = False

    def _column(self, field: FieldDefinition, include_comments: bool) -> str:
        column = f"{field.name} {self.map_type(field.type)}"
        if include_comments and field.description:
            column += f" COMMENT {_literal(field.description)}"
        return column

    def _partition_column(self, key: str, table: TableDefinition, include_comments: bool) -> str:
        field = table.field(key)
        column = f"{key} {self.map_type(field.type) if field else self.default_type}"
        if self.comment_partitions and include_comments and field and field.description:
            column += f" COMMENT {_literal(field.description)}"
        return column

    def storage_clauses(self, table: TableDefinition, generated_on: Optional[date]) -> List[str]:
        return [
            "STORED AS PARQUET",
            "TBLPROPERTIES (",
            f"    'owner' = {_literal(table.owner)},",
            f"    'created_date' = {_literal(_today(generated_on))}",
            ");",
        ]

    def render_ddl(self, table: TableDefinition, include_comments: bool = True, generated_on: Optional[date] = None) -> str:
        lines: List[str] = []
        if include_comments:
            lines.extend(self.header(f"{self.label} DDL", table, generated_on))

        lines.append(f"CREATE TABLE IF NOT EXISTS {self.table_name(table)} (")
        lines.extend(_join_block(_bare([self._column(f, include_comments) for f in table.regular_fields()])))
        lines.append(")")

        if include_comments and table.display_name:
            lines.append(f"COMMENT {_literal(table.display_name)}")

        if table.partition_keys:
            lines.append("PARTITIONED BY (")
            lines.extend(
                _join_block(_bare([self._partition_column(k, table, include_comments) for k in table.partition_keys]))
            )
            lines.append(")")

        lines.extend(self.storage_clauses(table, generated_on))
        return "\n".join(lines) + "\n"

    def inner_select_extras(self, table: TableDefinition) -> List[str]:
        return []

    def footer(self, include_comments: bool) -> List[str]:
        return []

    def render_etl(self, table: TableDefinition, include_comments: bool = True, generated_on: Optional[date] = None) -> str:
        regular = table.regular_fields()
        dated = _has_date_partition(table)

        lines: List[str] = []
        if include_comments:
            lines.extend(self.header(f"{self.label} ETL template", table, generated_on))

        lines.append(f"INSERT OVERWRITE TABLE {self.table_name(table)}")
        if dated:
            lines.append(f"PARTITION ({DATE_PARTITION} = '{BIZDATE}')")

        lines.append("SELECT")
        outer: List[BlockItem] = [(f.name, f.description if include_comments else None) for f in regular]
        lines.extend(_join_block(outer))

        lines.append("FROM (")
        lines.append("    SELECT")
        inner: List[BlockItem] = [(f"NULL AS {f.name}", FIELD_TODO) for f in regular]
        inner.extend(_bare(self.inner_select_extras(table)))
        lines.extend(_join_block(inner, indent="        "))
        lines.append(f"    FROM {table.data_sources[0] if table.data_sources else DEFAULT_SOURCE}")
        if dated:
            lines.append(f"    WHERE {DATE_PARTITION} = '{BIZDATE}'")
        lines.append(") t;")

        lines.extend(self.footer(include_comments))
        return "\n".join(lines) + "\n"


class MaxComputeRenderer(HiveRenderer):
    name = "maxcompute"
    label = "MaxCompute"
    type_map = {
        "STRING": "STRING",
        "INT": "BIGINT",
        "BIGINT": "BIGINT",
        "DECIMAL": "DECIMAL(18,2)",
        "DATE": "STRING",
        "TIMESTAMP": "DATETIME",
        "BOOLEAN": "BOOLEAN",
        "DOUBLE": "DOUBLE",
        "FLOAT": "DOUBLE",
        "ARRAY": "ARRAY<STRING>",
        "MAP": "MAP<STRING, STRING>",
        "STRUCT": "STRUCT<field1:STRING>",
    }
    default_type = "STRING"
    comment_partitions = True

    def storage_clauses(self, table: TableDefinition, generated_on: Optional[date]) -> List[str]:
        return [
            "LIFECYCLE 365",
            "TBLPROPERTIES (",
            f"    'owner' = {_literal(table.owner)},",
            f"    'created_date' = {_literal(_today(generated_on))},",
            f"    'update_frequency' = {_literal(table.update_frequency or 'daily')},",
            f"    'data_source' = {_literal(','.join(table.data_sources))}",
            ");",
        ]

    def inner_select_extras(self, table: TableDefinition) -> List[str]:
        if _has_date_partition(table):
            return [f"'{BIZDATE}' AS {DATE_PARTITION}"]
        return []

    def footer(self, include_comments: bool) -> List[str]:
        if not include_comments:
            return []
        return [
            "",
            "-- MaxCompute best practices:",
            "-- 1. Use partitioned tables to limit the data scanned",
            "-- 2. Set a lifecycle to keep storage costs under control",
            "-- 3. Prefer INSERT OVERWRITE over INSERT INTO",
            "-- 4. Use dynamic partitions for large table operations",
        ]


class MySQLRenderer(DialectRenderer):
    name = "mysql"
    label = "MySQL"
    type_map = {
        "STRING": "VARCHAR(255)",
        "INT": "INT",
        "BIGINT": "BIGINT",
        "DECIMAL": "DECIMAL(18,2)",
        "DATE": "DATE",
        "TIMESTAMP": "DATETIME",
        "BOOLEAN": "TINYINT(1)",
        "DOUBLE": "DOUBLE",
        "FLOAT": "FLOAT",
    }
    default_type = "VARCHAR(255)"

    def table_name(self, table: TableDefinition) -> str:
        # No catalog addressing: database and table collapse into one identifier.
        return f"`{table.name.replace('.', '_')}`"

    def render_ddl(self, table: TableDefinition, include_comments: bool = True, generated_on: Optional[date] = None) -> str:
        lines: List[str] = []
        if include_comments:
            lines.extend(self.header(f"{self.label} DDL", table, generated_on))

        columns: List[str] = []
        for field in table.fields:
            column = f"`{field.name}` {self.map_type(field.type)}"
            if not field.nullable:
                column += " NOT NULL"
            if include_comments and field.description:
                column += f" COMMENT {_literal(field.description)}"
            columns.append(column)

        lines.append(f"CREATE TABLE IF NOT EXISTS {self.table_name(table)} (")
        lines.extend(_join_block(_bare(columns)))
        tail = ") ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"
        if include_comments and table.display_name:
            tail += f" COMMENT={_literal(table.display_name)}"
        lines.append(tail + ";")
        return "\n".join(lines) + "\n"

    def render_etl(self, table: TableDefinition, include_comments: bool = True, generated_on: Optional[date] = None) -> str:
        dated = _has_date_partition(table)
        lines: List[str] = []
        if include_comments:
            lines.extend(self.header(f"{self.label} ETL template", table, generated_on))

        column_list = ", ".join(f"`{field.name}`" for field in table.fields)
        lines.append(f"INSERT INTO {self.table_name(table)} ({column_list})")
        lines.append("SELECT")
        mappings: List[BlockItem] = []
        for field in table.fields:
            if field.name == DATE_PARTITION and dated:
                mappings.append((f"'{BIZDATE}' AS `{field.name}`", None))
            else:
                mappings.append((f"NULL AS `{field.name}`", FIELD_TODO))
        lines.extend(_join_block(mappings))
        lines.append(f"FROM {table.data_sources[0] if table.data_sources else DEFAULT_SOURCE}")
        if dated:
            lines.append(f"WHERE {DATE_PARTITION} = '{BIZDATE}'")
        lines[-1] += ";"
        return "\n".join(lines) + "\n"


class ClickHouseRenderer(DialectRenderer):
    """Skeleton output only; ClickHouse column and engine rendering is not implemented."""

    name = "clickhouse"
    label = "ClickHouse"
    default_type = "String"

    def table_name(self, table: TableDefinition) -> str:
        return table.name.replace(".", "_")

    def render_ddl(self, table: TableDefinition, include_comments: bool = True, generated_on: Optional[date] = None) -> str:
        return (
            f"-- {self.label} DDL\n"
            "-- TODO: implement ClickHouse DDL generation\n\n"
            f"CREATE TABLE IF NOT EXISTS {self.table_name(table)} (...) ENGINE = MergeTree();\n"
        )

    def render_etl(self, table: TableDefinition, include_comments: bool = True, generated_on: Optional[date] = None) -> str:
        return (
            f"-- {self.label} ETL template\n"
            "-- TODO: implement ClickHouse ETL generation\n\n"
            f"INSERT INTO {self.table_name(table)} VALUES (...);\n"
        )


RENDERERS: Dict[str, Type[DialectRenderer]] = {
    HiveRenderer.name: HiveRenderer,
    MySQLRenderer.name: MySQLRenderer,
    ClickHouseRenderer.name: ClickHouseRenderer,
    MaxComputeRenderer.name: MaxComputeRenderer,
}
SUPPORTED_DIALECTS = tuple(RENDERERS)


def get_renderer(dialect: str) -> DialectRenderer:
    """Renderer for one of the supported dialect names, matched exactly."""
    if dialect not in RENDERERS:
        raise UnsupportedDialectError(str(dialect), RENDERERS.keys())
    return RENDERERS[dialect]()


def _filter(table: TableDefinition) -> str:
    return f"WHERE {DATE_PARTITION} = '{BIZDATE}';" if _has_date_partition(table) else ""


def render_check_sql(table: TableDefinition, generated_on: Optional[date] = None) -> str:
    """Data-quality check script: row count, null counts, duplicate placeholder, day-over-day change."""
    where = _filter(table)
    lines: List[str] = [
        "-- Data quality checks",
        f"-- Table: {table.name}",
        f"-- Owner: {table.owner or ''}",
        f"-- Generated: {_today(generated_on)}",
        "",
        "-- 1. Row count check",
        "SELECT",
        f"    {_literal(table.name)} AS table_name,",
        f"    '{BIZDATE}' AS dt,",
        "    COUNT(*) AS row_count,",
        "    CASE",
        "        WHEN COUNT(*) = 0 THEN 'CRITICAL'",
        "        WHEN COUNT(*) < 100 THEN 'WARNING'",
        "        ELSE 'OK'",
        "    END AS status",
    ]
    lines.append(f"FROM {table.name}" + ("" if where else ";"))
    if where:
        lines.append(where)
    lines.append("")

    required = [field for field in table.fields if not field.nullable]
    if required:
        lines.extend(
            [
                "-- 2. Required field null check",
                "SELECT",
                f"    {_literal(table.name)} AS table_name,",
                f"    '{BIZDATE}' AS dt,",
            ]
        )
        lines.extend(
            _join_block(
                _bare([f"SUM(CASE WHEN {f.name} IS NULL THEN 1 ELSE 0 END) AS {f.name}_null_count" for f in required])
            )
        )
        lines.append(f"FROM {table.name}" + ("" if where else ";"))
        if where:
            lines.append(where)
        lines.append("")

    lines.extend(
        [
            "-- 3. Duplicate check",
            "-- TODO: check duplicates against the business primary key",
            "",
        ]
    )

    if _has_date_partition(table):
        lines.extend(
            [
                "-- 4. Day-over-day row count fluctuation check",
                "WITH today_count AS (",
                "    SELECT COUNT(*) AS cnt",
                f"    FROM {table.name}",
                f"    WHERE dt = '{BIZDATE}'",
                "),",
                "yesterday_count AS (",
                "    SELECT COUNT(*) AS cnt",
                f"    FROM {table.name}",
                f"    WHERE dt = DATE_SUB('{BIZDATE}', 1)",
                ")",
                "SELECT",
                f"    {_literal(table.name)} AS table_name,",
                f"    '{BIZDATE}' AS dt,",
                "    t.cnt AS today_count,",
                "    y.cnt AS yesterday_count,",
                "    ROUND((t.cnt - y.cnt) * 100.0 / NULLIF(y.cnt, 0), 2) AS change_percent,",
                "    CASE",
                "        WHEN ABS((t.cnt - y.cnt) * 100.0 / NULLIF(y.cnt, 0)) > 50 THEN 'CRITICAL'",
                "        WHEN ABS((t.cnt - y.cnt) * 100.0 / NULLIF(y.cnt, 0)) > 20 THEN 'WARNING'",
                "        ELSE 'OK'",
                "    END AS status",
                "FROM today_count t, yesterday_count y;",
            ]
        )

    return "\n".join(lines).rstrip("\n") + "\n"


class SQLGenerator:
    """Dispatches generation to the renderer of the requested (or default) dialect."""

    def __init__(self, dialect: str = "hive") -> None:
        self._dialect = get_renderer(dialect).name

    @property
    def dialect(self) -> str:
        return self._dialect

    def renderer(self, dialect: Optional[str] = None) -> DialectRenderer:
        renderer = get_renderer(dialect or self._dialect)
        logger.debug("Rendering with %s dialect", renderer.name)
        return renderer

    def generate_ddl(
        self,
        table: TableDefinition,
        dialect: Optional[str] = None,
        include_comments: bool = True,
        generated_on: Optional[date] = None,
    ) -> str:
        return self.renderer(dialect).render_ddl(table, include_comments=include_comments, generated_on=generated_on)

    def generate_etl(
        self,
        table: TableDefinition,
        dialect: Optional[str] = None,
        include_comments: bool = True,
        generated_on: Optional[date] = None,
    ) -> str:
        return self.renderer(dialect).render_etl(table, include_comments=include_comments, generated_on=generated_on)

    def generate_check_sql(self, table: TableDefinition, generated_on: Optional[date] = None) -> str:
        return render_check_sql(table, generated_on=generated_on)


def generate_ddl(
    table: TableDefinition,
    dialect: str = "hive",
    include_comments: bool = True,
    generated_on: Optional[date] = None,
) -> str:
    return SQLGenerator(dialect).generate_ddl(table, include_comments=include_comments, generated_on=generated_on)


def generate_etl(
    table: TableDefinition,
    dialect: str = "hive",
    include_comments: bool = True,
    generated_on: Optional[date] = None,
) -> str:
    return SQLGenerator(dialect).generate_etl(table, include_comments=include_comments, generated_on=generated_on)


def generate_check_sql(table: TableDefinition, generated_on: Optional[date] = None) -> str:
    return render_check_sql(table, generated_on=generated_on)
