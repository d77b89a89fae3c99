"""
Unit tests for the Loader.

A fake connection records every statement instead of talking to a database.
"""

import io
from unittest.mock import Mock, call, patch

import pytest

from tableload.core.connection import DatabaseConnection
from tableload.core.errors import (
    ColumnNotFoundError,
    DumpFormatError,
    RecordShapeError,
    StatementError,
    UnsupportedOperationError,
)
from tableload.core.models import ColumnInfo, TableData
from tableload.loader import Loader


class FakeConnection(DatabaseConnection):
    """Connection that records statements and quotes from lookup tables."""

    backend = "fake"

    def __init__(
        self,
        columns=None,
        identifier_quotes=None,
        value_quotes=None,
        failing=(),
        supports_reset=False,
    ):
        super().__init__()
        self._columns = columns or {}
        self.identifier_quotes = identifier_quotes or {}
        self.value_quotes = value_quotes or {}
        self.failing = set(failing)
        self._supports_reset = supports_reset
        self.executed = []
        self.quote_calls = []
        self.reset_calls = []
        self.events = []

    def _execute(self, sql):
        self.executed.append(sql)
        if sql in self.failing:
            raise StatementError(sql, "rejected by fake")
        return None

    def quote_identifier(self, name):
        return self.identifier_quotes.get(name, name)

    def quote_value(self, value, column):
        self.quote_calls.append((value, column))
        return self.value_quotes.get((value, column.name), f"'{value}'")

    def columns(self, table_name):
        return self._columns.get(table_name, [])

    def supports_pk_sequence_reset(self):
        return self._supports_reset

    def reset_pk_sequence(self, table_name):
        if not self._supports_reset:
            return super().reset_pk_sequence(table_name)
        self.reset_calls.append(table_name)

    def _begin(self):
        self.events.append("begin")

    def _commit(self):
        self.events.append("commit")

    def _rollback(self):
        self.events.append("rollback")


@pytest.fixture
def mca():
    return ColumnInfo(name="a", data_type="integer")


@pytest.fixture
def mcb():
    return ColumnInfo(name="b", data_type="integer")


class TestClearTable:
    """Tests for Loader.clear_table."""

    def test_truncates_the_table(self):
        """Test that a successful TRUNCATE is the only statement."""
        conn = FakeConnection()
        Loader(conn).clear_table("mytable")

        assert conn.executed == ["TRUNCATE mytable"]
        assert "DELETE FROM mytable" not in conn.executed

    def test_deletes_when_truncate_fails(self):
        """Test fallback to DELETE when TRUNCATE raises."""
        conn = FakeConnection(failing={"TRUNCATE mytable"})
        Loader(conn).clear_table("mytable")

        assert conn.executed == ["TRUNCATE mytable", "DELETE FROM mytable"]
        assert conn.executed.count("DELETE FROM mytable") == 1

    def test_delete_failure_propagates(self):
        """Test that a failing DELETE fallback is not swallowed."""
        conn = FakeConnection(failing={"TRUNCATE mytable", "DELETE FROM mytable"})

        with pytest.raises(StatementError):
            Loader(conn).clear_table("mytable")

    def test_truncate_runs_under_savepoint_in_transaction(self):
        """Test that a failed TRUNCATE is rolled back to a savepoint before DELETE."""
        conn = FakeConnection(failing={"TRUNCATE mytable"})

        with conn.transaction():
            Loader(conn).clear_table("mytable")

        assert conn.executed == [
            "SAVEPOINT tableload_truncate",
            "TRUNCATE mytable",
            "ROLLBACK TO SAVEPOINT tableload_truncate",
            "DELETE FROM mytable",
        ]
        assert conn.events == ["begin", "commit"]

    def test_uses_connection_truncate_statement(self):
        """Test that engines can supply their own TRUNCATE spelling."""
        conn = FakeConnection()
        conn.truncate_statement = lambda quoted: f"TRUNCATE TABLE {quoted}"

        Loader(conn).clear_table("mytable")

        assert conn.executed == ["TRUNCATE TABLE mytable"]

    def test_quotes_table_name(self):
        """Test that the table name goes through identifier quoting."""
        conn = FakeConnection(identifier_quotes={"order": '"order"'})
        Loader(conn).clear_table("order")

        assert conn.executed == ['TRUNCATE "order"']


class TestResetPkSequence:
    """Tests for Loader.reset_pk_sequence."""

    def test_resets_when_supported(self):
        """Test that a sequence-resettable connection is asked to reset."""
        conn = FakeConnection(supports_reset=True)
        Loader(conn).reset_pk_sequence("mytable")

        assert conn.reset_calls == ["mytable"]

    def test_noop_when_unsupported(self):
        """Test that other connections are left alone."""
        conn = FakeConnection(supports_reset=False)
        Loader(conn).reset_pk_sequence("mytable")

        assert conn.reset_calls == []
        assert conn.executed == []

    def test_disabled_by_loader_option(self):
        """Test that reset_sequences=False skips the reset."""
        conn = FakeConnection(supports_reset=True)
        Loader(conn, reset_sequences=False).reset_pk_sequence("mytable")

        assert conn.reset_calls == []

    def test_base_connection_rejects_reset(self):
        """Test that calling reset on an unsupported connection raises."""
        conn = FakeConnection(supports_reset=False)

        with pytest.raises(UnsupportedOperationError):
            conn.reset_pk_sequence("mytable")


class TestInsertRecords:
    """Tests for Loader.insert_records."""

    def test_inserts_one_statement_per_record(self, mca, mcb):
        """Test INSERT statement shape and order."""
        conn = FakeConnection(
            columns={"mytable": [mca, mcb]},
            value_quotes={(1, "a"): "'1'", (2, "b"): "'2'", (3, "a"): "'3'", (4, "b"): "'4'"},
        )

        inserted = Loader(conn).insert_records("mytable", ["a", "b"], [[1, 2], [3, 4]])

        assert inserted == 2
        assert conn.executed == [
            "INSERT INTO mytable (a,b) VALUES ('1','2')",
            "INSERT INTO mytable (a,b) VALUES ('3','4')",
        ]

    def test_quotes_reserved_word_columns(self, mca):
        """Test that a column named like a keyword is quoted."""
        mccount = ColumnInfo(name="count", data_type="integer")
        conn = FakeConnection(
            columns={"mytable": [mca, mccount]},
            identifier_quotes={"count": '"count"'},
            value_quotes={(1, "a"): "'1'", (2, "count"): "'2'", (3, "a"): "'3'", (4, "count"): "'4'"},
        )

        Loader(conn).insert_records("mytable", ["a", "count"], [[1, 2], [3, 4]])

        assert conn.executed == [
            "INSERT INTO mytable (a,\"count\") VALUES ('1','2')",
            "INSERT INTO mytable (a,\"count\") VALUES ('3','4')",
        ]

    def test_values_quoted_with_metadata_matched_by_name(self, mca, mcb):
        """Test that metadata is looked up by name, not position."""
        conn = FakeConnection(columns={"mytable": [mcb, mca]})

        Loader(conn).insert_records("mytable", ["a", "b"], [[1, 2]])

        assert conn.quote_calls[0][1] is mca
        assert conn.quote_calls[1][1] is mcb

    def test_unknown_column_aborts_before_inserting(self, mca):
        """Test that a missing column is fatal and nothing is written."""
        conn = FakeConnection(columns={"mytable": [mca]})

        with pytest.raises(ColumnNotFoundError) as exc_info:
            Loader(conn).insert_records("mytable", ["a", "missing"], [[1, 2]])

        assert exc_info.value.column_name == "missing"
        assert conn.executed == []

    def test_insert_failure_stops_remaining_rows(self, mca, mcb):
        """Test that a failing row propagates and later rows are not attempted."""
        first = "INSERT INTO mytable (a,b) VALUES ('1','2')"
        conn = FakeConnection(columns={"mytable": [mca, mcb]}, failing={first})

        with pytest.raises(StatementError):
            Loader(conn).insert_records("mytable", ["a", "b"], [[1, 2], [3, 4]])

        assert conn.executed == [first]

    def test_record_length_mismatch(self, mca, mcb):
        """Test that a short record is rejected."""
        conn = FakeConnection(columns={"mytable": [mca, mcb]})

        with pytest.raises(RecordShapeError):
            Loader(conn).insert_records("mytable", ["a", "b"], [[1, 2], [3]])

        assert len(conn.executed) == 1

    def test_no_columns_is_noop(self):
        """Test that a dump without a column list inserts nothing."""
        conn = FakeConnection()

        assert Loader(conn).insert_records("mytable", None, []) == 0
        assert conn.executed == []

    def test_column_metadata_is_cached(self, mca):
        """Test that column metadata is fetched once per table."""
        conn = FakeConnection(columns={"mytable": [mca]})
        conn.columns = Mock(return_value=[mca])
        loader = Loader(conn)

        loader.insert_records("mytable", ["a"], [[1]])
        loader.insert_records("mytable", ["a"], [[2]])

        conn.columns.assert_called_once_with("mytable")


class TestLoadTable:
    """Tests for Loader.load_table."""

    def test_clears_inserts_and_resets_in_order(self):
        """Test that load_table runs the three steps in order, once each."""
        loader = Loader(FakeConnection())
        manager = Mock()

        with patch.object(loader, "clear_table") as clear_table, \
                patch.object(loader, "insert_records", return_value=2) as insert_records, \
                patch.object(loader, "reset_pk_sequence") as reset_pk_sequence:
            manager.attach_mock(clear_table, "clear_table")
            manager.attach_mock(insert_records, "insert_records")
            manager.attach_mock(reset_pk_sequence, "reset_pk_sequence")

            loader.load_table("mytable", {"columns": ["a", "b"], "records": [[1, 2], [3, 4]]})

        assert manager.mock_calls == [
            call.clear_table("mytable"),
            call.insert_records("mytable", ["a", "b"], [[1, 2], [3, 4]]),
            call.reset_pk_sequence("mytable"),
        ]

    def test_runs_in_one_transaction(self, mca, mcb):
        """Test that the table load commits once."""
        conn = FakeConnection(columns={"mytable": [mca, mcb]}, supports_reset=True)

        rows = Loader(conn).load_table("mytable", TableData("mytable", ["a", "b"], [[1, 2]]))

        assert rows == 1
        assert conn.events == ["begin", "commit"]
        assert conn.reset_calls == ["mytable"]

    def test_rolls_back_on_insert_failure(self, mca, mcb):
        """Test that an insert failure rolls the table load back."""
        failing = "INSERT INTO mytable (a,b) VALUES ('3','4')"
        conn = FakeConnection(columns={"mytable": [mca, mcb]}, failing={failing}, supports_reset=True)

        with pytest.raises(StatementError):
            Loader(conn).load_table("mytable", {"columns": ["a", "b"], "records": [[1, 2], [3, 4]]})

        assert conn.events == ["begin", "rollback"]
        assert conn.reset_calls == []

    def test_joins_enclosing_transaction(self, mca):
        """Test that an outer transaction is reused, not nested."""
        conn = FakeConnection(columns={"mytable": [mca]})
        loader = Loader(conn)

        with conn.transaction():
            loader.load_table("mytable", {"columns": ["a"], "records": [[1]]})
            loader.load_table("mytable", {"columns": ["a"], "records": [[2]]})

        assert conn.events == ["begin", "commit"]

    def test_truncate_disabled(self, mca):
        """Test that truncate=False appends without clearing."""
        conn = FakeConnection(columns={"mytable": [mca]})

        Loader(conn, truncate=False).load_table("mytable", {"columns": ["a"], "records": [[1]]})

        assert conn.executed == ["INSERT INTO mytable (a) VALUES ('1')"]

    def test_dry_run_writes_nothing(self, mca):
        """Test that dry run validates without executing."""
        conn = FakeConnection(columns={"mytable": [mca]})

        rows = Loader(conn, dry_run=True).load_table("mytable", {"columns": ["a"], "records": [[1], [2]]})

        assert rows == 2
        assert conn.executed == []
        assert conn.events == []

    def test_dry_run_still_detects_unknown_columns(self, mca):
        """Test that dry run reports column mismatches."""
        conn = FakeConnection(columns={"mytable": [mca]})

        with pytest.raises(ColumnNotFoundError):
            Loader(conn, dry_run=True).load_table("mytable", {"columns": ["zzz"], "records": []})

    def test_mapping_records_are_unhashed(self, mca, mcb):
        """Test that records given as dicts follow the column order."""
        conn = FakeConnection(columns={"mytable": [mca, mcb]})

        Loader(conn, truncate=False).load_table(
            "mytable", {"columns": ["a", "b"], "records": [{"b": 2, "a": 1}]}
        )

        assert conn.executed == ["INSERT INTO mytable (a,b) VALUES ('1','2')"]


class TestLoadDocuments:
    """Tests for loading whole dumps."""

    def test_load_yaml_stream(self, sample_dump_yaml):
        """Test that a YAML dump loads every table in one transaction."""
        widgets = [
            ColumnInfo(name="id", data_type="integer"),
            ColumnInfo(name="name", data_type="text"),
            ColumnInfo(name="count", data_type="integer"),
            ColumnInfo(name="active", data_type="boolean"),
        ]
        conn = FakeConnection(columns={"widgets": widgets})

        results = Loader(conn).load(io.StringIO(sample_dump_yaml))

        assert results == {"widgets": 2}
        assert conn.events == ["begin", "commit"]
        inserts = [sql for sql in conn.executed if sql.startswith("INSERT")]
        assert len(inserts) == 2

    def test_excluded_tables_are_skipped(self, sample_dump_yaml):
        """Test that migration bookkeeping tables are not restored."""
        conn = FakeConnection(columns={"widgets": [
            ColumnInfo(name=name) for name in ("id", "name", "count", "active")
        ]})

        Loader(conn).load(sample_dump_yaml)

        assert not any("schema_migrations" in sql for sql in conn.executed)

    def test_table_split_across_documents_is_cleared_once(self, mca):
        """Test that later documents for the same table append."""
        conn = FakeConnection(columns={"mytable": [mca]})
        documents = [
            {"mytable": {"columns": ["a"], "records": [[1]]}},
            {"mytable": {"columns": ["a"], "records": [[2]]}},
        ]

        results = Loader(conn).load_documents(documents)

        assert results == {"mytable": 2}
        statements = [sql for sql in conn.executed if "SAVEPOINT" not in sql]
        assert statements == [
            "TRUNCATE mytable",
            "INSERT INTO mytable (a) VALUES ('1')",
            "INSERT INTO mytable (a) VALUES ('2')",
        ]

    def test_invalid_dump_raises(self):
        """Test that malformed dumps are reported as DumpFormatError."""
        conn = FakeConnection()

        with pytest.raises(DumpFormatError):
            Loader(conn).load("mytable: {columns: [a]}")

        assert conn.events == ["begin", "rollback"]
        assert conn.executed == []
