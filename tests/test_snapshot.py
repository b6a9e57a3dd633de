"""Tests for DatabaseSnapshot acquisition, content loading and comparison."""

import logging
from typing import Any
from unittest.mock import MagicMock

import pytest

from db_snapshot.schema.matchers import RegexIndexMatcher
from db_snapshot.schema.models import TableDescription
from db_snapshot.snapshot.errors import DatabaseSnapshotError
from db_snapshot.snapshot.options import CompareOptions
from db_snapshot.snapshot.rules import SkipColumns
from db_snapshot.snapshot.snapshot import (
    DatabaseSnapshot,
    construct_count_statement,
    construct_select_statement,
)


def _users_table() -> TableDescription:
    return TableDescription(
        name="users",
        primary_key_column="id",
        column_descriptions=["name=id, type=INTEGER", "name=name, type=TEXT", "name=updated_at, type=TEXT"],
        indexes={"idx_users_name": "COLUMN_NAME=name, NON_UNIQUE=true"},
        index_properties={
            "idx_users_name": {
                "INDEX_NAME": "idx_users_name",
                "COLUMN_NAME": "name",
                "NON_UNIQUE": "true",
            }
        },
    )


def _audit_table() -> TableDescription:
    return TableDescription(
        name="audit",
        primary_key_column="id",
        column_descriptions=["name=id, type=INTEGER", "name=action, type=TEXT"],
    )


def _make_source(
    tables: list[TableDescription],
    rows: dict[str, list[dict[str, Any]]],
    sorted_columns: bool = False,
) -> MagicMock:
    """Create a mock data source answering the queries a snapshot issues."""
    source = MagicMock()
    source.description = "mock database"
    source.requires_sorted_columns = sorted_columns
    source.quote_identifier.side_effect = lambda name: name
    source.get_table_descriptions.side_effect = lambda excluded: [
        t.model_copy(deep=True) for t in tables
    ]

    def _select(sql: str) -> list[dict[str, Any]]:
        head, table_name = sql.rsplit(" FROM ", 1)
        table_rows = rows.get(table_name, [])
        if head == "SELECT COUNT(*)":
            return [{"COUNT(*)": len(table_rows)}]
        selected = head[len("SELECT "):]
        if selected == "*":
            return [dict(r) for r in table_rows]
        return [{c: r[c] for c in selected.split(", ")} for r in table_rows]

    source.select_rows.side_effect = _select
    return source


def _rows(*names: str) -> list[dict[str, Any]]:
    return [
        {"id": i, "name": name, "updated_at": f"2024-01-0{i}"}
        for i, name in enumerate(names, start=1)
    ]


def _take(name: str, source: MagicMock, **rules: Any) -> DatabaseSnapshot:
    snapshot = DatabaseSnapshot(name, source)
    for table in rules.get("skip_tables", []):
        snapshot.skip_tables(table)
    snapshot.take_snapshot()
    return snapshot


class TestConstruction:
    """Verify snapshot naming rules."""

    def test_name_is_trimmed(self) -> None:
        assert DatabaseSnapshot("  before ").name == "before"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, name: str) -> None:
        with pytest.raises(DatabaseSnapshotError):
            DatabaseSnapshot(name)

    def test_take_without_source_raises(self) -> None:
        with pytest.raises(DatabaseSnapshotError, match="No data source"):
            DatabaseSnapshot("before").take_snapshot()

    def test_skip_columns_requires_columns(self) -> None:
        with pytest.raises(DatabaseSnapshotError):
            DatabaseSnapshot("before").skip_table_columns("users")


class TestStatements:
    """Verify row and count queries."""

    def test_select_star_by_default(self) -> None:
        assert construct_select_statement(_users_table()) == "SELECT * FROM users"

    def test_explicit_columns_when_skipping(self) -> None:
        sql = construct_select_statement(
            _users_table(), SkipColumns(table="users", columns=["UPDATED_AT"])
        )
        assert sql == "SELECT id, name FROM users"

    def test_sorted_columns(self) -> None:
        table = TableDescription(
            name="t", column_descriptions=["name=b", "name=a", "name=c"], schema_name="app"
        )
        assert construct_select_statement(table, sorted_columns=True) == "SELECT a, b, c FROM app.t"

    def test_all_columns_skipped(self) -> None:
        table = TableDescription(name="t", column_descriptions=["name=a"])
        assert construct_select_statement(table, SkipColumns(table="t", columns=["a"])) is None

    def test_count_statement(self) -> None:
        table = TableDescription(name="t", schema_name="app")
        assert construct_count_statement(table) == "SELECT COUNT(*) FROM app.t"

    def test_names_quoted(self) -> None:
        table = TableDescription(
            name="order", schema_name="App", column_descriptions=["name=id", "name=group"]
        )

        def quote(name: str) -> str:
            return f'"{name}"'

        assert construct_select_statement(table, quote=quote) == 'SELECT * FROM "App"."order"'
        assert (
            construct_select_statement(table, sorted_columns=True, quote=quote)
            == 'SELECT "group", "id" FROM "App"."order"'
        )
        assert construct_count_statement(table, quote) == 'SELECT COUNT(*) FROM "App"."order"'

    def test_live_queries_use_source_quoting(self) -> None:
        source = _make_source([_users_table()], {"users": _rows("alice")})
        snapshot = _take("before", source)
        snapshot.load_table_rows(snapshot.get_table("users"))
        snapshot.load_table_row_count(snapshot.get_table("users"))
        quoted = [c.args[0] for c in source.quote_identifier.call_args_list]
        assert quoted.count("users") == 2


class TestTakeSnapshot:
    """Verify acquisition."""

    def test_tables_loaded_and_tagged(self) -> None:
        snapshot = _take("before", _make_source([_users_table(), _audit_table()], {}))
        assert [t.name for t in snapshot.tables] == ["users", "audit"]
        assert all(t.snapshot_name == "before" for t in snapshot.tables)
        assert snapshot.is_taken

    def test_skipped_table_excluded(self) -> None:
        """A whole-table skip removes the table even if the source returns it."""
        source = _make_source([_users_table(), _audit_table()], {})
        snapshot = _take("before", source, skip_tables=["AUDIT"])
        assert [t.name for t in snapshot.tables] == ["users"]
        source.get_table_descriptions.assert_called_once_with({"audit"})

    def test_no_tables_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            _take("before", _make_source([], {}))
        assert "No tables found" in caplog.text

    def test_index_attributes_stripped(self) -> None:
        snapshot = DatabaseSnapshot("before", _make_source([_users_table()], {}))
        snapshot.skip_index_attributes("users", "idx_users_name", "NON_UNIQUE")
        snapshot.take_snapshot()
        assert snapshot.get_table("users").indexes["idx_users_name"] == "COLUMN_NAME=name"

    def test_indexes_skipped_by_properties(self) -> None:
        snapshot = DatabaseSnapshot("before", _make_source([_users_table()], {}))
        snapshot.skip_table_indexes("users", {"COLUMN_NAME": "name"})
        snapshot.take_snapshot()
        assert snapshot.get_table("users").indexes == {}

    def test_failed_metadata_load_leaves_snapshot_not_taken(self) -> None:
        source = _make_source([_users_table()], {})
        snapshot = _take("before", source)
        source.get_table_descriptions.side_effect = RuntimeError("connection lost")

        with pytest.raises(RuntimeError):
            snapshot.take_snapshot()
        assert not snapshot.is_taken
        assert snapshot.tables == []

        other = _take("after", _make_source([_users_table()], {}))
        with pytest.raises(DatabaseSnapshotError, match="is not taken"):
            snapshot.compare(other)


class TestLoadTableRows:
    """Verify row loading honours column and row rules."""

    def test_rows_as_strings(self) -> None:
        snapshot = _take("before", _make_source([_users_table()], {"users": _rows("alice")}))
        rows = snapshot.load_table_rows(snapshot.get_table("users"))
        assert rows == ["id=1|name=alice|updated_at=2024-01-01"]

    def test_skipped_columns_left_out(self) -> None:
        snapshot = _take("before", _make_source([_users_table()], {"users": _rows("alice")}))
        rows = snapshot.load_table_rows(
            snapshot.get_table("users"), SkipColumns(table="users", columns=["updated_at"])
        )
        assert rows == ["id=1|name=alice"]

    def test_all_columns_skipped_issues_no_query(self, caplog: pytest.LogCaptureFixture) -> None:
        source = _make_source([_audit_table()], {"audit": [{"id": 1, "action": "x"}]})
        snapshot = _take("before", source)
        with caplog.at_level(logging.WARNING):
            rows = snapshot.load_table_rows(
                snapshot.get_table("audit"), SkipColumns(table="audit", columns=["id", "action"])
            )
        assert rows == []
        source.select_rows.assert_not_called()
        assert "all its columns are skipped" in caplog.text

    def test_row_count(self) -> None:
        snapshot = _take("before", _make_source([_users_table()], {"users": _rows("a", "b")}))
        assert snapshot.load_table_row_count(snapshot.get_table("users")) == 2


class TestCompare:
    """Verify snapshot comparison end to end with mock sources."""

    def test_identical_snapshots_are_equal(self) -> None:
        rows = {"users": _rows("alice", "bob")}
        first = _take("before", _make_source([_users_table()], rows))
        second = _take("after", _make_source([_users_table()], rows))
        first.compare(second)
        assert not first.equality.has_differences()

    def test_one_extra_row(self) -> None:
        first = _take("before", _make_source([_users_table()], {"users": _rows("alice")}))
        second = _take("after", _make_source([_users_table()], {"users": _rows("alice", "bob")}))
        with pytest.raises(DatabaseSnapshotError) as exc_info:
            first.compare(second)
        equality = exc_info.value.equality
        assert equality.get_rows_present_in_one_snapshot_only("after", "users") == [
            "id=2|name=bob|updated_at=2024-01-02"
        ]
        assert equality.get_rows_present_in_one_snapshot_only("before", "users") == []

    def test_skipped_column_ignores_value_changes(self) -> None:
        first_rows = [{"id": 1, "name": "alice", "updated_at": "monday"}]
        second_rows = [{"id": 1, "name": "alice", "updated_at": "tuesday"}]
        first = _take("before", _make_source([_users_table()], {"users": first_rows}))
        second = _take("after", _make_source([_users_table()], {"users": second_rows}))
        first.skip_table_columns("users", "updated_at")
        first.compare(second)

    def test_skipped_rows_ignored(self) -> None:
        first = _take("before", _make_source([_users_table()], {"users": _rows("alice")}))
        second = _take("after", _make_source([_users_table()], {"users": _rows("alice", "bob")}))
        second.skip_table_rows("users", "name", "b.*")
        first.compare(second)

    def test_table_in_one_snapshot_only(self) -> None:
        first = _take("before", _make_source([_users_table(), _audit_table()], {}))
        second = _take("after", _make_source([_users_table()], {}))
        with pytest.raises(DatabaseSnapshotError) as exc_info:
            first.compare(second)
        assert exc_info.value.equality.get_tables_present_in_one_snapshot_only("before") == [
            "audit"
        ]

    def test_table_skipped_on_other_side(self) -> None:
        """A whole-table skip declared on either snapshot excludes the table."""
        first = _take("before", _make_source([_users_table(), _audit_table()], {}))
        second = _take("after", _make_source([_users_table()], {}))
        second.skip_tables("audit")
        first.compare(second)

    def test_counts_only(self) -> None:
        """Content rule remembering counts compares counts, never rows."""
        first = _take("before", _make_source([_users_table()], {"users": _rows("a")}))
        second = _take("after", _make_source([_users_table()], {"users": _rows("b", "c")}))
        first.skip_table_content("users", remember_number_of_rows=True)
        with pytest.raises(DatabaseSnapshotError) as exc_info:
            first.compare(second)
        equality = exc_info.value.equality
        assert equality.get_different_number_of_rows("before", "users") == 1
        assert equality.get_different_number_of_rows("after", "users") == 2
        assert equality.get_rows_present_in_one_snapshot_only("before", "users") == []

    def test_content_skipped_entirely(self) -> None:
        first = _take("before", _make_source([_users_table()], {"users": _rows("a")}))
        second = _take("after", _make_source([_users_table()], {"users": _rows("b", "c")}))
        second.skip_table_content("users")
        first.compare(second)

    def test_expected_differences_reconciled(self) -> None:
        first = _take("before", _make_source([_users_table()], {"users": _rows("alice")}))
        second = _take("after", _make_source([_users_table()], {"users": _rows("alice", "bob")}))
        options = CompareOptions()
        options.set_expected_table_missing_rows_count("users", 1, 1)
        first.compare(second, options)

    def test_regex_matcher_string(self) -> None:
        renamed = _users_table()
        renamed.indexes = {"idx_users_name_2": renamed.indexes["idx_users_name"]}
        first = _take("before", _make_source([_users_table()], {}))
        second = _take("after", _make_source([renamed], {}))
        first.set_index_matcher(r"idx_users_[a-z]+")
        assert isinstance(first.index_matcher, RegexIndexMatcher)
        first.compare(second)

    def test_same_name_rejected(self) -> None:
        first = _take("same", _make_source([], {}))
        second = _take("same", _make_source([], {}))
        with pytest.raises(DatabaseSnapshotError, match="same name"):
            first.compare(second)

    def test_not_taken_rejected(self) -> None:
        first = _take("before", _make_source([], {}))
        with pytest.raises(DatabaseSnapshotError, match="not taken"):
            first.compare(DatabaseSnapshot("after", _make_source([], {})))

    def test_none_rejected(self) -> None:
        with pytest.raises(DatabaseSnapshotError):
            _take("before", _make_source([], {})).compare(None)

    def test_sources_disconnected_even_on_failure(self) -> None:
        first_source = _make_source([_users_table()], {"users": _rows("a")})
        second_source = _make_source([_users_table()], {"users": _rows("b")})
        first = _take("before", first_source)
        second = _take("after", second_source)
        with pytest.raises(DatabaseSnapshotError):
            first.compare(second)
        first_source.disconnect.assert_called_once()
        second_source.disconnect.assert_called_once()

    def test_disconnect_failure_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        first_source = _make_source([], {})
        first_source.disconnect.side_effect = RuntimeError("boom")
        first = _take("before", first_source)
        second = _take("after", _make_source([], {}))
        with caplog.at_level(logging.WARNING):
            first.compare(second)
        assert "boom" in caplog.text
