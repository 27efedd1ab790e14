"""Tests for WideColumnModelManager against moto DynamoDB."""

from unittest.mock import patch

import pytest

from dualstore.capabilities import WIDE_COLUMN
from dualstore.exceptions import MassUpdateNotAvailableError
from dualstore.managers import ModelManager, WideColumnModelManager


class TestCreateUpdateDelete:
    """Tests for single-item writes."""

    def test_create_generates_partition_key(self, item_manager, users_table):
        item = item_manager.create({"email": "a@x.com"})
        assert item["id"]
        assert users_table.get({"id": item["id"]}) == item

    def test_create_keeps_given_key(self, item_manager):
        assert item_manager.create({"id": "u-1", "email": "a@x.com"})["id"] == "u-1"

    def test_create_requires_sort_key(self, event_manager):
        with pytest.raises(ValueError, match="sort key 'created_at'"):
            event_manager.create({"user_id": "ada", "kind": "run"})

    def test_new_instance_is_plain_dict(self, item_manager, item_repository):
        assert item_manager.new_instance(email="a@x.com") == {"email": "a@x.com"}
        assert item_repository.count_by_params() == 0

    def test_update(self, item_manager, users_table):
        item = item_manager.create({"id": "u-1", "name": "Ada"})
        assert item_manager.update(item, {"name": "Augusta"}) is True
        assert item["name"] == "Augusta"
        assert users_table.get({"id": "u-1"})["name"] == "Augusta"

    def test_update_with_nothing(self, item_manager):
        item = item_manager.create({"id": "u-1"})
        assert item_manager.update(item, {}) is False
        assert item_manager.update(item, {"id": "u-1"}) is False

    def test_update_cannot_change_key(self, item_manager):
        item = item_manager.create({"id": "u-1"})
        with pytest.raises(ValueError, match="key attribute 'id'"):
            item_manager.update(item, {"id": "u-2"})

    def test_update_after_delete_returns_false(self, item_manager, users_table):
        item = item_manager.create({"id": "u-9", "name": "X"})
        item_manager.delete(item)
        assert item_manager.update(item, {"name": "Y"}) is False
        assert item["name"] == "X"
        assert users_table.get({"id": "u-9"}) is None

    def test_delete(self, item_manager):
        item = item_manager.create({"id": "u-1"})
        assert item_manager.delete(item) is True
        assert item_manager.delete(item) is False


class TestByParams:
    def test_delete_by_params(self, item_manager, item_repository):
        item_manager.bulk_create([{"role": "admin"}, {"role": "admin"}, {"role": "member"}])
        assert item_manager.delete_by_params({"role": "admin"}) is True
        assert item_repository.count_by_params() == 1
        assert item_manager.delete_by_params({"role": "admin"}) is False

    def test_bulk_delete_by_params(self, item_manager):
        item_manager.bulk_create([{"role": "member"} for _ in range(4)])
        assert item_manager.bulk_delete_by_params({"role": "member"}) == 4
        assert item_manager.bulk_delete_by_params({"role": "member"}) == 0

    def test_update_by_params(self, event_manager, event_repository):
        event_manager.bulk_create([
            {"user_id": "ada", "created_at": "2024-01-01", "kind": "run"},
            {"user_id": "ada", "created_at": "2024-01-02", "kind": "run"},
            {"user_id": "bob", "created_at": "2024-01-01", "kind": "ride"},
        ])
        assert event_manager.update_by_params({"kind": "jog"}, {"user_id": "ada"}) == 2
        assert event_repository.count_by_params({"kind": "jog"}) == 2
        assert event_manager.update_by_params({}, {"user_id": "ada"}) == 0


class TestBulkWrites:
    """Tests for bulk_create, insert_or_ignore and bulk_update."""

    def test_bulk_create(self, item_manager, item_repository):
        assert item_manager.bulk_create([{"email": f"u{i}@x.com"} for i in range(30)]) == 30
        assert item_repository.count_by_params() == 30

    def test_bulk_create_empty(self, item_manager):
        assert item_manager.bulk_create([]) == 0

    def test_insert_or_ignore_without_key(self, item_manager, item_repository):
        inserted = item_manager.insert_or_ignore([{"email": "a@x.com"}, {"email": "a@x.com"}])
        assert inserted == 1
        assert item_repository.count_by_params({"email": "a@x.com"}) == 1

    def test_insert_or_ignore_with_full_key(self, item_manager, item_repository):
        item_manager.create({"id": "u-1", "email": "a@x.com"})
        inserted = item_manager.insert_or_ignore([
            {"id": "u-1", "email": "changed@x.com"},
            {"id": "u-2", "email": "b@x.com"},
        ])
        assert inserted == 1
        assert item_repository.get_one({"id": "u-1"})["email"] == "a@x.com"

    def test_bulk_update(self, item_manager, users_table):
        item_manager.bulk_create([{"id": "u-1", "name": "Ada"}, {"id": "u-2", "name": "Bob"}])
        updated = item_manager.bulk_update([
            {"id": "u-1", "name": "Augusta"},
            {"id": "u-2", "role": "admin"},
            {"id": "u-3", "name": "Ghost"},
        ])
        assert updated == 2
        assert users_table.get({"id": "u-1"})["name"] == "Augusta"
        assert users_table.get({"id": "u-2"})["role"] == "admin"
        assert users_table.get({"id": "u-3"}) is None

    def test_bulk_update_skips_records_without_key_or_fields(self, item_manager, item_repository):
        item_manager.create({"id": "u-1", "name": "Ada"})
        assert item_manager.bulk_update([{"id": "u-1"}, {"name": "x"}]) == 0
        assert item_repository.count_by_params({"name": "x"}) == 0

    def test_bulk_update_by_index_field(self, item_manager, users_table):
        item_manager.create({"id": "u-1", "email": "a@x.com"})
        assert item_manager.bulk_update([{"email": "a@x.com", "name": "Ada"}], key_field="email") == 1
        assert users_table.get({"id": "u-1"})["name"] == "Ada"


class TestUpsert:
    def test_update_or_create_updates(self, item_manager, users_table):
        item_manager.create({"id": "u-1", "email": "a@x.com"})
        item = item_manager.update_or_create({"email": "a@x.com"}, {"name": "Ada"})
        assert item["id"] == "u-1"
        assert users_table.get({"id": "u-1"})["name"] == "Ada"

    def test_update_or_create_creates(self, item_manager, item_repository):
        item = item_manager.update_or_create({"email": "a@x.com"}, {"name": "Ada"})
        assert item["name"] == "Ada"
        assert item_repository.count_by_params() == 1

    def test_update_or_create_changes_only_the_match(self, item_manager, users_table):
        item_manager.bulk_create([
            {"id": "u-1", "email": "a@x.com", "name": "Ada"},
            {"id": "u-2", "email": "b@x.com", "name": "Bob"},
        ])
        item_manager.update_or_create({"email": "b@x.com"}, {"name": "Robert"})
        assert users_table.get({"id": "u-1"})["name"] == "Ada"
        assert users_table.get({"id": "u-2"})["name"] == "Robert"

    def test_update_or_create_after_concurrent_delete(self, item_manager, item_repository, users_table):
        stale = {"id": "gone", "email": "a@x.com"}
        with patch.object(item_manager, "find_by_params", side_effect=[stale, None]):
            item = item_manager.update_or_create({"email": "a@x.com"}, {"name": "Ada"})
        assert item["id"] != "gone"
        assert users_table.get({"id": "gone"}) is None
        assert item_repository.get_one({"email": "a@x.com"})["name"] == "Ada"
        assert item_repository.count_by_params() == 1

    def test_get_or_create(self, item_manager, item_repository):
        first = item_manager.get_or_create({"email": "a@x.com"}, {"name": "Ada"})
        second = item_manager.get_or_create({"email": "a@x.com"}, {"name": "Other"})
        assert second["id"] == first["id"]
        assert second["name"] == "Ada"
        assert item_repository.count_by_params() == 1


class TestRawMassUpdate:
    def test_empty_values_return_zero(self, item_manager):
        assert item_manager.raw_mass_update([]) == 0

    def test_never_available(self, item_manager):
        with pytest.raises(MassUpdateNotAvailableError) as exc_info:
            item_manager.raw_mass_update([{"id": "u-1", "name": "X"}])
        assert exc_info.value.model_name == "users"

    def test_declared_capability_still_unavailable(self, users_table):
        manager = WideColumnModelManager(users_table, capabilities=WIDE_COLUMN.enable(mass_update=True))
        with pytest.raises(MassUpdateNotAvailableError):
            manager.raw_mass_update([{"id": "u-1", "name": "X"}])

    def test_every_manager_must_provide_the_statement(self):
        assert "_mass_update" in ModelManager.__abstractmethods__
