"""Tests for the DynamoDB table adapter.

Request planning is checked against a MagicMock table; reads and writes run
against moto's in-memory DynamoDB.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from conftest import EVENTS_SCHEMA, USERS_SCHEMA
from dualstore.db import IndexSchema, TableSchema, WideColumnTable, to_dynamo


@pytest.fixture
def mock_table():
    table = MagicMock()
    table.query.return_value = {"Items": [], "Count": 0}
    table.scan.return_value = {"Items": [], "Count": 0}
    return table


class TestTableSchema:
    """Tests for key handling and lookup planning."""

    def test_key_attributes(self):
        assert USERS_SCHEMA.key_attributes == ("id",)
        assert EVENTS_SCHEMA.key_attributes == ("user_id", "created_at")

    def test_sort_keys(self):
        assert USERS_SCHEMA.sort_keys() == frozenset()
        assert EVENTS_SCHEMA.sort_keys() == frozenset({"created_at", "score"})

    def test_key_of(self):
        assert EVENTS_SCHEMA.key_of({"user_id": "u", "created_at": "t", "kind": "x"}) == {
            "user_id": "u",
            "created_at": "t",
        }

    def test_key_of_missing(self):
        with pytest.raises(ValueError, match="created_at"):
            EVENTS_SCHEMA.key_of({"user_id": "u"})

    def test_plan_prefers_table_key(self):
        assert EVENTS_SCHEMA.plan({"user_id": "u", "kind": "x"}) == (None, {"user_id": "u"})

    def test_plan_includes_sort_key(self):
        assert EVENTS_SCHEMA.plan({"user_id": "u", "created_at": "t"}) == (
            None,
            {"user_id": "u", "created_at": "t"},
        )

    def test_plan_uses_index(self):
        assert USERS_SCHEMA.plan({"email": "a@x.com", "name": "A"}) == ("email-index", {"email": "a@x.com"})

    def test_plan_skips_index_without_its_sort_key(self):
        assert EVENTS_SCHEMA.plan({"kind": "run"}) == (None, {})
        assert EVENTS_SCHEMA.plan({"kind": "run", "score": 5}) == ("kind-index", {"kind": "run", "score": 5})

    def test_plan_falls_back_to_scan(self):
        assert USERS_SCHEMA.plan({"name": "A"}) == (None, {})


class TestItemQueryPlanning:
    """Tests for Query vs Scan requests."""

    def test_partition_key_uses_query(self, mock_table):
        table = WideColumnTable(USERS_SCHEMA, table=mock_table)
        table.query().where("id", "u-1").all()
        mock_table.query.assert_called_once()
        mock_table.scan.assert_not_called()
        assert "IndexName" not in mock_table.query.call_args.kwargs

    def test_index_key_uses_index_query(self, mock_table):
        table = WideColumnTable(USERS_SCHEMA, table=mock_table)
        table.query().where("email", "a@x.com").where("name", "A").all()
        kwargs = mock_table.query.call_args.kwargs
        assert kwargs["IndexName"] == "email-index"
        assert "FilterExpression" in kwargs

    def test_other_fields_use_scan(self, mock_table):
        table = WideColumnTable(USERS_SCHEMA, table=mock_table)
        table.query().where("name", "A").all()
        mock_table.query.assert_not_called()
        assert "FilterExpression" in mock_table.scan.call_args.kwargs

    def test_no_conditions_scan_everything(self, mock_table):
        table = WideColumnTable(USERS_SCHEMA, table=mock_table)
        table.query().all()
        assert mock_table.scan.call_args.kwargs == {}

    def test_follows_last_evaluated_key(self, mock_table):
        mock_table.scan.side_effect = [
            {"Items": [{"id": "1"}], "LastEvaluatedKey": {"id": "1"}},
            {"Items": [{"id": "2"}]},
        ]
        table = WideColumnTable(USERS_SCHEMA, table=mock_table)
        assert table.query().all() == [{"id": "1"}, {"id": "2"}]
        assert mock_table.scan.call_args_list[1].kwargs["ExclusiveStartKey"] == {"id": "1"}

    def test_count_sums_pages(self, mock_table):
        mock_table.scan.side_effect = [
            {"Count": 3, "LastEvaluatedKey": {"id": "3"}},
            {"Count": 2},
        ]
        table = WideColumnTable(USERS_SCHEMA, table=mock_table)
        assert table.query().count() == 5
        assert mock_table.scan.call_args_list[0].kwargs["Select"] == "COUNT"

    def test_limit_stops_reading(self, mock_table):
        mock_table.scan.side_effect = [
            {"Items": [{"id": "1"}, {"id": "2"}], "LastEvaluatedKey": {"id": "2"}},
            {"Items": [{"id": "3"}]},
        ]
        table = WideColumnTable(USERS_SCHEMA, table=mock_table)
        assert table.query().limit(1).all() == [{"id": "1"}]
        assert mock_table.scan.call_count == 1


class TestToDynamo:
    def test_floats_become_decimals(self):
        assert to_dynamo({"score": 1.5, "tags": [0.25]}) == {
            "score": Decimal("1.5"),
            "tags": [Decimal("0.25")],
        }

    def test_other_values_untouched(self):
        assert to_dynamo({"id": "a", "n": 3, "ok": True}) == {"id": "a", "n": 3, "ok": True}


class TestWideColumnTable:
    """Tests against moto DynamoDB."""

    def test_put_and_get(self, users_table):
        users_table.put({"id": "u-1", "email": "a@x.com", "score": 1.5})
        assert users_table.get({"id": "u-1"}) == {"id": "u-1", "email": "a@x.com", "score": Decimal("1.5")}

    def test_put_if_absent(self, users_table):
        assert users_table.put_if_absent({"id": "u-1", "email": "a@x.com"}) is True
        assert users_table.put_if_absent({"id": "u-1", "email": "b@x.com"}) is False
        assert users_table.get({"id": "u-1"})["email"] == "a@x.com"

    def test_update(self, users_table):
        users_table.put({"id": "u-1", "name": "Ada"})
        assert users_table.update({"id": "u-1"}, {"name": "Augusta", "role": "admin"}) is True
        assert users_table.get({"id": "u-1"}) == {"id": "u-1", "name": "Augusta", "role": "admin"}

    def test_update_missing_item(self, users_table):
        assert users_table.update({"id": "missing"}, {"name": "Ghost"}) is False
        assert users_table.get({"id": "missing"}) is None

    def test_update_without_fields(self, users_table):
        users_table.put({"id": "u-1", "name": "Ada"})
        assert users_table.update({"id": "u-1"}, {}) is False

    def test_delete_reports_existence(self, users_table):
        users_table.put({"id": "u-1"})
        assert users_table.delete({"id": "u-1"}) is True
        assert users_table.delete({"id": "u-1"}) is False

    def test_batch_put_and_delete(self, users_table):
        items = [{"id": f"u-{i}", "role": "member"} for i in range(30)]
        assert users_table.batch_put(items) == 30
        assert users_table.query().where("role", "member").count() == 30
        assert users_table.batch_delete(items[:10]) == 10
        assert users_table.query().count() == 20

    def test_index_query(self, users_table):
        users_table.batch_put([
            {"id": "u-1", "email": "a@x.com"},
            {"id": "u-2", "email": "b@x.com"},
        ])
        assert users_table.query().where("email", "b@x.com").first()["id"] == "u-2"

    def test_create_with_sort_key_and_numeric_index(self, dynamodb):
        schema = TableSchema(
            "scores",
            partition_key="player",
            sort_key="game",
            indexes=(IndexSchema("by-points", "league", "points"),),
            attribute_types={"points": "N"},
        )
        table = WideColumnTable(schema, resource=dynamodb)
        table.create()
        table.put({"player": "p", "game": "g", "league": "l", "points": 10})
        assert table.query().where("league", "l").first()["points"] == 10
