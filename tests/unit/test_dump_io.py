"""
Unit tests for dump file parsing and discovery.
"""

import io
import json
from pathlib import Path

import pytest

from tableload.core.errors import DumpFormatError
from tableload.loader.dump_io import (
    detect_format,
    discover_dump_files,
    iter_tables,
    parse_documents,
    read_dump_file,
)


class TestParseDocuments:
    """Tests for parse_documents."""

    def test_yaml_multiple_documents(self, sample_dump_yaml):
        documents = parse_documents(sample_dump_yaml, "yaml")

        assert len(documents) == 2
        assert documents[0]["widgets"]["columns"] == ["id", "name", "count", "active"]
        assert documents[1]["empty_table"] is None

    def test_yaml_from_stream(self):
        documents = parse_documents(io.StringIO("t:\n  columns: [a]\n  records: [[1]]\n"))

        assert documents == [{"t": {"columns": ["a"], "records": [[1]]}}]

    def test_json_object(self):
        text = json.dumps({"t": {"columns": ["a"], "records": [[1]]}})

        assert parse_documents(text, "json") == [{"t": {"columns": ["a"], "records": [[1]]}}]

    def test_json_array_is_several_documents(self):
        text = json.dumps([{"t": {"columns": ["a"], "records": []}}, {"u": None}])

        assert len(parse_documents(text, "json")) == 2

    def test_invalid_yaml(self):
        with pytest.raises(DumpFormatError, match="Invalid YAML"):
            parse_documents("t: [unclosed", "yaml")

    def test_invalid_json(self):
        with pytest.raises(DumpFormatError, match="Invalid JSON"):
            parse_documents("{not json", "json")

    def test_document_must_be_mapping(self):
        with pytest.raises(DumpFormatError):
            parse_documents("- just\n- a list\n", "yaml")

    def test_unknown_format(self):
        with pytest.raises(DumpFormatError, match="Unsupported dump format"):
            parse_documents("", "csv")


class TestIterTables:
    """Tests for iter_tables."""

    def test_skips_null_tables(self):
        tables = list(iter_tables({"a": None, "b": {"columns": ["x"], "records": [[1]]}}))

        assert [t.table_name for t in tables] == ["b"]

    def test_missing_records(self):
        with pytest.raises(DumpFormatError, match="Missing 'records'"):
            list(iter_tables({"t": {"columns": ["x"]}}))

    def test_columns_must_be_list(self):
        with pytest.raises(DumpFormatError):
            list(iter_tables({"t": {"columns": "x", "records": []}}))

    @pytest.mark.parametrize("records", [[1, 2], ["abc"], [[1], None]])
    def test_records_must_be_lists_or_mappings(self, records):
        with pytest.raises(DumpFormatError, match="must be a list or mapping"):
            list(iter_tables({"t": {"columns": ["x"], "records": records}}))

    def test_mapping_records_are_accepted(self):
        tables = list(iter_tables({"t": {"columns": ["x", "y"], "records": [{"y": 2, "x": 1}]}}))

        assert tables[0].records == [[1, 2]]

    def test_table_data_must_be_mapping(self):
        with pytest.raises(DumpFormatError):
            list(iter_tables({"t": [1, 2, 3]}))


class TestDumpFiles:
    """Tests for reading and discovering dump files."""

    def test_detect_format(self):
        assert detect_format(Path("dump.YML")) == "yaml"
        assert detect_format(Path("dump.json")) == "json"

    def test_detect_format_unknown(self):
        with pytest.raises(DumpFormatError):
            detect_format(Path("dump.csv"))

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(DumpFormatError, match="not found"):
            read_dump_file(tmp_path / "missing.yml")

    def test_read_json_file(self, tmp_path):
        path = tmp_path / "items.json"
        path.write_text(json.dumps({"items": {"columns": ["id"], "records": [[1]]}}), encoding="utf-8")

        assert read_dump_file(path) == [{"items": {"columns": ["id"], "records": [[1]]}}]

    def test_discover_sorted_dump_files(self, tmp_path):
        (tmp_path / "b.yml").write_text("", encoding="utf-8")
        (tmp_path / "a.json").write_text("{}", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("", encoding="utf-8")
        (tmp_path / "sub.yml").mkdir()

        assert [p.name for p in discover_dump_files(tmp_path)] == ["a.json", "b.yml"]

    def test_discover_missing_dir(self, tmp_path):
        assert discover_dump_files(tmp_path / "nope") == []
