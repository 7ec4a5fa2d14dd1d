import json
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "packages" / "core_engine" / "src"))

from dataspec_core import (
    ConfigError,
    DefinitionNotFoundError,
    discover_checks,
    discover_metrics,
    discover_tables,
    find_config,
    load_config,
    metric_path,
    resolve_definition,
    table_path,
    write_config,
)
from dataspec_core.config import output_path
from dataspec_core.discovery import check_path, definition_path


class ConfigTests(unittest.TestCase):
    def test_defaults_without_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config = load_config(tmp)
            self.assertEqual(Path(tmp).resolve().name, config.project_name)
            self.assertEqual("hive", config.default_dialect)
            self.assertEqual("./dataspec/templates", config.output_dir)
            self.assertTrue(config.strict_mode)
            self.assertIsNone(config.source)

    def test_write_then_load_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = write_config(tmp, "销售数仓", dialect="maxcompute")
            self.assertEqual(Path(tmp) / "dataspec" / "dataspec.config.json", path)
            payload = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual("销售数仓", payload["projectName"])

            config = load_config(tmp)
            self.assertEqual("销售数仓", config.project_name)
            self.assertEqual("maxcompute", config.default_dialect)
            self.assertEqual(str(path), config.source)

    def test_write_keeps_existing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            first = write_config(tmp, "one")
            second = write_config(tmp, "two")
            self.assertEqual(first, second)
            self.assertEqual("one", load_config(tmp).project_name)

    def test_yaml_partial_sections_merge_with_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "dataspec" / "dataspec.config.yaml"
            config_path.parent.mkdir(parents=True)
            config_path.write_text(
                "projectName: warehouse\n"
                "templates:\n"
                "  defaultDialect: mysql\n"
                "validation:\n"
                "  strictMode: false\n",
                encoding="utf-8",
            )
            self.assertEqual(config_path, find_config(tmp))
            config = load_config(tmp)
            self.assertEqual("mysql", config.default_dialect)
            self.assertEqual("./dataspec/templates", config.output_dir)
            self.assertFalse(config.strict_mode)

    def test_unmodelled_sections_stay_in_raw(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "dataspec" / "dataspec.config.yaml"
            config_path.parent.mkdir(parents=True)
            config_path.write_text(
                "projectName: warehouse\n"
                "databases:\n"
                "  - {name: dw, type: hive}\n"
                "validation:\n"
                "  customRules: [owner_required]\n",
                encoding="utf-8",
            )
            config = load_config(tmp)
            self.assertEqual([{"name": "dw", "type": "hive"}], config.raw["databases"])
            self.assertEqual(["owner_required"], config.raw["validation"]["customRules"])
            self.assertFalse(hasattr(config, "databases"))
            self.assertFalse(hasattr(config, "custom_rules"))

    def test_invalid_dialect_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "dataspec" / "dataspec.config.yaml"
            config_path.parent.mkdir(parents=True)
            config_path.write_text("projectName: x\ntemplates:\n  defaultDialect: oracle\n", encoding="utf-8")
            with self.assertRaises(ConfigError) as ctx:
                load_config(tmp)
            self.assertIn("templates.defaultDialect", str(ctx.exception))

    def test_missing_project_name_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "custom.yaml"
            config_path.write_text("version: '1.0'\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_config(tmp, path=str(config_path))

    def test_malformed_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "broken.yaml"
            config_path.write_text("projectName: [unclosed\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_config(tmp, path=str(config_path))

    def test_explicit_path_must_exist(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ConfigError):
                load_config(tmp, path=str(Path(tmp) / "missing.json"))

    def test_output_path_relative_to_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config = load_config(tmp)
            target = output_path(config, tmp, "sql", "dw.t.ddl.sql")
            self.assertEqual(Path(tmp) / "dataspec" / "templates" / "sql" / "dw.t.ddl.sql", target)


class DiscoveryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name
        base = Path(self.root) / "dataspec"
        for sub in ("tables", "metrics", "checks"):
            (base / sub).mkdir(parents=True)
        (base / "tables" / "dw.sales_daily.md").write_text("# 表定义：dw.sales_daily\n", encoding="utf-8")
        (base / "tables" / "ods.orders.md").write_text("# 表定义：ods.orders\n", encoding="utf-8")
        (base / "tables" / "notes.txt").write_text("ignored", encoding="utf-8")
        (base / "metrics" / "GMV.md").write_text("# 指标定义：GMV\n", encoding="utf-8")
        (base / "checks" / "dw.sales_daily.check.md").write_text("# checks\n", encoding="utf-8")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_discover(self) -> None:
        self.assertEqual(["dw.sales_daily", "ods.orders"], discover_tables(self.root))
        self.assertEqual(["GMV"], discover_metrics(self.root))
        self.assertEqual(["dw.sales_daily"], discover_checks(self.root))

    def test_missing_directories_yield_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as empty:
            self.assertEqual([], discover_tables(empty))
            self.assertEqual([], discover_metrics(empty))
            self.assertEqual([], discover_checks(empty))

    def test_paths(self) -> None:
        self.assertEqual(Path(self.root) / "dataspec" / "tables" / "dw.x.md", table_path("dw.x", self.root))
        self.assertEqual(Path(self.root) / "dataspec" / "metrics" / "GMV.md", metric_path("GMV", self.root))
        self.assertEqual(
            Path(self.root) / "dataspec" / "checks" / "dw.x.check.md", check_path("dw.x", self.root)
        )
        with self.assertRaises(ValueError):
            definition_path("check", "dw.x", self.root)

    def test_resolve_by_name_and_path(self) -> None:
        by_name = resolve_definition("table", "dw.sales_daily", self.root)
        self.assertTrue(by_name.is_file())
        by_path = resolve_definition("table", str(by_name), "/nonexistent")
        self.assertEqual(by_name, by_path)

    def test_resolve_unknown_raises(self) -> None:
        with self.assertRaises(DefinitionNotFoundError):
            resolve_definition("metric", "missing", self.root)
        with self.assertRaises(FileNotFoundError):
            resolve_definition("table", "dw.missing", self.root)


if __name__ == "__main__":
    unittest.main()
