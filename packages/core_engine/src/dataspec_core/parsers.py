import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from dataspec_core.errors import ExtractionError
from dataspec_core.markdown import (
    Document,
    Section,
    bullet_items,
    first_code_block,
    is_key_value,
    key_value,
    normalize_label,
    pipe_table_rows,
    prose,
)
from dataspec_core.models import (
    PLACEHOLDER_RE,
    ChangeEntry,
    FieldDefinition,
    MetricDefinition,
    TableDefinition,
    is_placeholder,
)

logger = logging.getLogger(__name__)

TABLE_TITLE = ("表定义", "table definition")
METRIC_TITLE = ("指标定义", "metric definition")

# Key-value labels
DISPLAY_NAME = ("中文名", "display name")
OWNER = ("负责人", "owner")
BUSINESS_OWNER = ("业务口径负责人", "business owner")
UPDATE_FREQUENCY = ("更新频率", "update frequency")
DATA_SOURCE_KEY = ("数据来源", "data sources", "data source")
MAIN_TABLE = ("主表", "main table")
DESCRIPTION_KEY = ("描述", "description")
PARTITION_KEY = ("分区键", "partition key", "partition keys")
CATEGORY = ("指标分类", "category")

# Section headings
DESCRIPTION_SECTION = ("表描述", "table description")
FIELDS_SECTION = ("字段定义", "field definitions")
PARTITION_SECTION = ("分区字段", "partition")
INDEXES_SECTION = ("索引", "indexes")
DATA_SOURCES_SECTION = ("数据来源", "data sources")
CONSUMERS_SECTION = ("下游消费", "consumers")
QUALITY_SECTION = ("数据质量规则", "data quality rules", "quality rules")
BUSINESS_DEFINITION_SECTION = ("业务定义", "business definition")
FORMULA_SECTION = ("业务口径", "business formula")
FORMULA_FALLBACK_SECTION = ("计算公式", "calculation formula")
SQL_SECTION = ("SQL 逻辑", "sql logic")
SQL_FALLBACK_SECTION = ("技术实现", "implementation")
DIMENSIONS_SECTION = ("维度", "dimensions")
RELATED_SECTION = ("相关指标", "related metrics")
HISTORY_SECTION = ("变更历史", "change history")

REQUIRED_MARKERS = {"是", "yes", "y", "true"}
LIST_SEPARATORS = re.compile(r"[,，、]")
LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
LINK_LABEL_RE = re.compile(r"\[(.+?)\]")
COLON_RE = re.compile(r"[：:]")

FOUND = "found"
EMPTY = "empty"
MISSING = "missing"

Record = Union[TableDefinition, MetricDefinition]


@dataclass(frozen=True)
class ParseReport:
    """A parsed record plus how each optional section was resolved."""

    record: Record
    sections: Dict[str, str] = field(default_factory=dict)

    def missing(self) -> List[str]:
        return [name for name, status in self.sections.items() if status != FOUND]


def _clean_value(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = PLACEHOLDER_RE.sub("", value).strip()
    return cleaned or None


def _clean_item(text: str) -> str:
    text = LINK_RE.sub(r"\1", text)
    text = text.replace("**", "")
    text = PLACEHOLDER_RE.sub("", text)
    return text.strip()


def _split_items(values: List[str]) -> Tuple[str, ...]:
    items: List[str] = []
    for value in values:
        for part in LIST_SEPARATORS.split(value):
            cleaned = _clean_item(part)
            if cleaned and not is_placeholder(cleaned):
                items.append(cleaned)
    return tuple(items)


def _title(doc: Document, labels: Tuple[str, ...]) -> Optional[str]:
    wanted = [normalize_label(label) for label in labels]
    for heading in doc.headings(level=1):
        match = re.match(r"^(?P<label>[^:：]+)[：:]\s*(?P<rest>.*)$", heading.title)
        if match and normalize_label(match.group("label")) in wanted:
            rest = match.group("rest").strip()
            if rest:
                return rest
    return None


class _Extraction:
    """Shared bookkeeping for one parse: the scanned document and section statuses."""

    def __init__(self, content: str) -> None:
        self.doc = Document(content)
        self.sections: Dict[str, str] = {}

    def mark(self, name: str, value) -> None:
        if value is None:
            status = MISSING
        elif isinstance(value, (tuple, list, str)) and not value:
            status = EMPTY
        else:
            status = FOUND
        self.sections[name] = status
        if status != FOUND:
            logger.debug("Section %s %s", name, status)

    def section(self, aliases: Tuple[str, ...]) -> Optional[Section]:
        return self.doc.find_section(aliases)

    def value(self, labels: Tuple[str, ...]) -> Optional[str]:
        return _clean_value(self.doc.key_value(labels))

    def bullets(self, aliases: Tuple[str, ...]) -> Optional[List[str]]:
        section = self.section(aliases)
        if section is None:
            return None
        return bullet_items(self.doc.body(section))

    def code_block(self, primary: Tuple[str, ...], fallback: Tuple[str, ...]) -> Optional[str]:
        for aliases in (primary, fallback):
            section = self.section(aliases)
            if section is None:
                continue
            block = first_code_block(self.doc.body(section, include_subsections=True))
            if block:
                return block
        return None


# ── Table definitions ─────────────────────────────────────────────────────────


def _update_frequency(value: Optional[str]) -> str:
    text = (value or "").lower()
    if "realtime" in text or "实时" in text:
        return "realtime"
    if "hourly" in text or "小时" in text:
        return "hourly"
    if "weekly" in text or "周" in text:
        return "weekly"
    return "daily"


def _table_description(ex: _Extraction) -> Optional[str]:
    section = ex.section(DESCRIPTION_SECTION)
    if section is not None:
        text = _clean_value(prose(ex.doc.body(section)))
        if text:
            return text
    return ex.value(DESCRIPTION_KEY)


def _fields(ex: _Extraction) -> Optional[Tuple[FieldDefinition, ...]]:
    section = ex.section(FIELDS_SECTION)
    if section is None:
        return None
    fields: List[FieldDefinition] = []
    for cells in pipe_table_rows(ex.doc.body(section, include_subsections=True)):
        if sum(1 for cell in cells if cell) < 3:
            continue
        padded = cells + [""] * (5 - len(cells))
        name, field_type, description, required, example = padded[:5]
        fields.append(
            FieldDefinition(
                name=name,
                type=field_type or "STRING",
                description=description,
                nullable=required.strip().lower() not in REQUIRED_MARKERS,
                example=example or None,
            )
        )
    return tuple(fields)


def _partition_keys(ex: _Extraction) -> Optional[Tuple[str, ...]]:
    section = ex.section(PARTITION_SECTION)
    if section is None:
        return None
    body = ex.doc.body(section)
    declared = key_value(body, PARTITION_KEY)
    if declared is not None:
        return _split_items([declared])
    return _split_items([item for item in bullet_items(body) if not is_key_value(f"- {item}")])


def _data_sources(ex: _Extraction) -> Optional[Tuple[str, ...]]:
    declared = ex.doc.key_value(DATA_SOURCE_KEY)
    if declared is not None:
        return _split_items([declared])
    items = ex.bullets(DATA_SOURCES_SECTION)
    if items is None:
        return None
    return _split_items(items)


def _plain_list(ex: _Extraction, aliases: Tuple[str, ...]) -> Optional[Tuple[str, ...]]:
    items = ex.bullets(aliases)
    if items is None:
        return None
    cleaned = (_clean_item(item) for item in items)
    return tuple(item for item in cleaned if item)


def table_report(content: str) -> ParseReport:
    """Parse a table definition document and report how each section resolved."""
    ex = _Extraction(content)
    title = _title(ex.doc, TABLE_TITLE)
    if not title:
        raise ExtractionError("Table name not found: expected a '# 表定义：<database.table>' heading.")
    name = title.split()[0]

    display_name = ex.value(DISPLAY_NAME)
    description = _table_description(ex)
    owner = ex.value(OWNER)
    frequency_raw = ex.value(UPDATE_FREQUENCY)
    fields = _fields(ex)
    partition_keys = _partition_keys(ex)
    index_items = ex.bullets(INDEXES_SECTION)
    indexes = _split_items(index_items) if index_items is not None else None
    data_sources = _data_sources(ex)
    consumers = _plain_list(ex, CONSUMERS_SECTION)
    quality_rules = _plain_list(ex, QUALITY_SECTION)

    for section_name, value in (
        ("display_name", display_name),
        ("description", description),
        ("owner", owner),
        ("update_frequency", frequency_raw),
        ("fields", fields),
        ("partition_keys", partition_keys),
        ("indexes", indexes),
        ("data_sources", data_sources),
        ("consumers", consumers),
        ("quality_rules", quality_rules),
    ):
        ex.mark(section_name, value)

    table = TableDefinition(
        name=name,
        display_name=display_name,
        description=description,
        owner=owner,
        update_frequency=_update_frequency(frequency_raw),
        fields=fields or (),
        partition_keys=partition_keys or (),
        indexes=indexes or (),
        data_sources=data_sources or (),
        consumers=consumers or (),
        quality_rules=quality_rules or (),
    )
    logger.debug("Parsed table %s with %d field(s)", table.name, len(table.fields))
    return ParseReport(record=table, sections=ex.sections)


def parse_table(content: str) -> TableDefinition:
    return table_report(content).record


# ── Metric definitions ────────────────────────────────────────────────────────


def _related_metrics(ex: _Extraction) -> Optional[Tuple[str, ...]]:
    items = ex.bullets(RELATED_SECTION)
    if items is None:
        return None
    metrics: List[str] = []
    for item in items:
        if is_placeholder(_clean_item(item)):
            continue
        link = LINK_LABEL_RE.search(item)
        label = link.group(1).strip() if link else _clean_item(item)
        if label and not is_placeholder(label):
            metrics.append(label)
    return tuple(metrics)


def _change_history(ex: _Extraction) -> Optional[Tuple[ChangeEntry, ...]]:
    items = ex.bullets(HISTORY_SECTION)
    if items is None:
        return None
    history: List[ChangeEntry] = []
    for item in items:
        parts = COLON_RE.split(item, maxsplit=1)
        if len(parts) < 2:
            continue
        history.append(ChangeEntry(date=parts[0].strip(), description=parts[1].strip()))
    return tuple(history)


def metric_report(content: str) -> ParseReport:
    """Parse a metric definition document and report how each section resolved."""
    ex = _Extraction(content)
    name = _title(ex.doc, METRIC_TITLE)
    if not name:
        raise ExtractionError("Metric name not found: expected a '# 指标定义：<name>' heading.")

    category = ex.value(CATEGORY)
    definition_section = ex.section(BUSINESS_DEFINITION_SECTION)
    business_definition = (
        _clean_value(prose(ex.doc.body(definition_section))) if definition_section is not None else None
    )
    owner = ex.value(BUSINESS_OWNER) or ex.value(OWNER)
    formula = _clean_value(ex.code_block(FORMULA_SECTION, FORMULA_FALLBACK_SECTION))
    sql_logic = _clean_value(ex.code_block(SQL_SECTION, SQL_FALLBACK_SECTION))
    data_source = ex.value(MAIN_TABLE) or ex.value(DATA_SOURCE_KEY)
    dimensions = _plain_list(ex, DIMENSIONS_SECTION)
    related_metrics = _related_metrics(ex)
    change_history = _change_history(ex)

    for section_name, value in (
        ("category", category),
        ("business_definition", business_definition),
        ("owner", owner),
        ("formula", formula),
        ("sql_logic", sql_logic),
        ("data_source", data_source),
        ("dimensions", dimensions),
        ("related_metrics", related_metrics),
        ("change_history", change_history),
    ):
        ex.mark(section_name, value)

    metric = MetricDefinition(
        name=name,
        category=category,
        business_definition=business_definition,
        owner=owner,
        formula=formula,
        sql_logic=sql_logic,
        data_source=data_source,
        dimensions=dimensions or (),
        related_metrics=related_metrics or (),
        change_history=change_history or (),
    )
    logger.debug("Parsed metric %s", metric.name)
    return ParseReport(record=metric, sections=ex.sections)


def parse_metric(content: str) -> MetricDefinition:
    return metric_report(content).record
