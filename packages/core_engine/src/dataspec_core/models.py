import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

PLACEHOLDER = "[请填写]"
UNSPECIFIED = "未指定"
UPDATE_FREQUENCIES = ("realtime", "hourly", "daily", "weekly")
TABLE_FORMAT = "dataspec-table"
METRIC_FORMAT = "dataspec-metric"
FORMAT_VERSION = "1.0"

# Matches the bare sentinel as well as hinted variants such as "[请填写上游数据源]".
PLACEHOLDER_RE = re.compile(r"\[请填写[^\]]*\]")


def is_placeholder(value: Optional[str]) -> bool:
    """True when *value* is absent, blank, a fill-in placeholder or the unspecified marker."""
    if value is None:
        return True
    text = str(value).strip()
    if not text or text == UNSPECIFIED:
        return True
    return bool(PLACEHOLDER_RE.search(text)) and not PLACEHOLDER_RE.sub("", text).strip()


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    type: str = "STRING"
    description: str = ""
    nullable: bool = True
    example: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "nullable": self.nullable,
        }
        if self.example is not None:
            payload["example"] = self.example
        return payload


@dataclass(frozen=True)
class TableDefinition:
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    owner: Optional[str] = None
    update_frequency: str = "daily"
    fields: Tuple[FieldDefinition, ...] = ()
    partition_keys: Tuple[str, ...] = ()
    indexes: Tuple[str, ...] = ()
    data_sources: Tuple[str, ...] = ()
    consumers: Tuple[str, ...] = ()
    quality_rules: Tuple[str, ...] = ()

    @property
    def database(self) -> str:
        return self.name.split(".", 1)[0] if "." in self.name else ""

    @property
    def table(self) -> str:
        return self.name.split(".", 1)[-1]

    def field(self, name: str) -> Optional[FieldDefinition]:
        for item in self.fields:
            if item.name == name:
                return item
        return None

    def regular_fields(self) -> Tuple[FieldDefinition, ...]:
        """Fields that are not partition columns, in declaration order."""
        return tuple(item for item in self.fields if item.name not in self.partition_keys)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "metadata": {"format": TABLE_FORMAT, "version": FORMAT_VERSION},
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "owner": self.owner,
            "update_frequency": self.update_frequency,
            "fields": [item.to_dict() for item in self.fields],
            "partition_keys": list(self.partition_keys),
            "indexes": list(self.indexes),
            "data_sources": list(self.data_sources),
            "consumers": list(self.consumers),
            "quality_rules": list(self.quality_rules),
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(frozen=True)
class ChangeEntry:
    date: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {"date": self.date, "description": self.description}


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    category: Optional[str] = None
    business_definition: Optional[str] = None
    owner: Optional[str] = None
    formula: Optional[str] = None
    sql_logic: Optional[str] = None
    data_source: Optional[str] = None
    dimensions: Tuple[str, ...] = ()
    related_metrics: Tuple[str, ...] = ()
    change_history: Tuple[ChangeEntry, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "metadata": {"format": METRIC_FORMAT, "version": FORMAT_VERSION},
            "name": self.name,
            "category": self.category,
            "business_definition": self.business_definition,
            "owner": self.owner,
            "formula": self.formula,
            "sql_logic": self.sql_logic,
            "data_source": self.data_source,
            "dimensions": list(self.dimensions),
            "related_metrics": list(self.related_metrics),
            "change_history": [entry.to_dict() for entry in self.change_history],
        }
        return {key: value for key, value in payload.items() if value is not None}
