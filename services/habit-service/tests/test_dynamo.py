"""
Tests for the DynamoDB storage gateway (moto)
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from app.config import TableConfig
from app.dynamo import HABITS, USERS, StorageGateway, completion_sort_key, isoformat_utc, python_dict
from app.exceptions import ConditionFailedError, StorageError


def test_get_missing_item_returns_none(gateway):
    assert gateway.get_item(USERS, {"userId": "nobody"}) is None


def test_put_and_get_converts_decimals(gateway):
    gateway.put_item(USERS, {"userId": "u1", "level": 3, "totalXP": 250, "stats": {"streak": 2}})

    item = gateway.get_item(USERS, {"userId": "u1"})

    assert item == {"userId": "u1", "level": 3, "totalXP": 250, "stats": {"streak": 2}}
    assert isinstance(item["totalXP"], int)


def test_put_if_not_exists_rejects_existing_key(gateway):
    gateway.put_item(USERS, {"userId": "u1", "totalXP": 10}, if_not_exists=True)

    with pytest.raises(ConditionFailedError):
        gateway.put_item(USERS, {"userId": "u1", "totalXP": 99}, if_not_exists=True)

    assert gateway.get_item(USERS, {"userId": "u1"})["totalXP"] == 10


def test_put_if_not_exists_is_scoped_to_full_key(gateway):
    gateway.put_item(HABITS, {"userId": "u1", "habitId": "h1", "name": "a"}, if_not_exists=True)
    gateway.put_item(HABITS, {"userId": "u1", "habitId": "h2", "name": "b"}, if_not_exists=True)

    assert len(gateway.query_partition(HABITS, "u1")) == 2


def test_update_item_adds_and_sets(gateway):
    gateway.put_item(USERS, {"userId": "u1", "level": 1, "totalXP": 40, "createdAt": "old"})

    updated = gateway.update_item(
        USERS,
        {"userId": "u1"},
        add={"totalXP": 70},
        set_fields={"level": 2, "updatedAt": "now"},
        set_if_absent={"createdAt": "new", "stats": {}},
    )

    assert updated == {
        "userId": "u1",
        "level": 2,
        "totalXP": 110,
        "createdAt": "old",
        "updatedAt": "now",
        "stats": {},
    }


def test_update_item_creates_missing_record(gateway):
    updated = gateway.update_item(
        USERS,
        {"userId": "u2"},
        add={"totalXP": 20},
        set_fields={"level": 1},
        set_if_absent={"createdAt": "now"},
    )

    assert updated["totalXP"] == 20
    assert updated["createdAt"] == "now"
    assert gateway.get_item(USERS, {"userId": "u2"})["level"] == 1


def test_update_item_condition(gateway):
    gateway.put_item(USERS, {"userId": "u1", "level": 1, "totalXP": 105})

    with pytest.raises(ConditionFailedError):
        gateway.update_item(
            USERS, {"userId": "u1"},
            set_fields={"level": 2},
            condition="totalXP = :observed",
            condition_values={":observed": 100},
        )
    assert gateway.get_item(USERS, {"userId": "u1"})["level"] == 1

    gateway.update_item(
        USERS, {"userId": "u1"},
        set_fields={"level": 2},
        condition="totalXP = :observed",
        condition_values={":observed": 105},
    )
    assert gateway.get_item(USERS, {"userId": "u1"})["level"] == 2


def test_update_item_requires_changes(gateway):
    with pytest.raises(ValueError):
        gateway.update_item(USERS, {"userId": "u1"})


def test_query_partition_only_returns_owner_items(gateway):
    gateway.put_item(HABITS, {"userId": "u1", "habitId": "h1"})
    gateway.put_item(HABITS, {"userId": "u1", "habitId": "h2"})
    gateway.put_item(HABITS, {"userId": "u2", "habitId": "h3"})

    habits = gateway.query_partition(HABITS, "u1")

    assert sorted(h["habitId"] for h in habits) == ["h1", "h2"]
    assert gateway.query_partition(HABITS, "nobody") == []


def test_delete_item(gateway):
    gateway.put_item(HABITS, {"userId": "u1", "habitId": "h1"})

    gateway.delete_item(HABITS, {"userId": "u1", "habitId": "h1"})

    assert gateway.get_item(HABITS, {"userId": "u1", "habitId": "h1"}) is None


def test_delete_item_condition(gateway):
    key = {"userId": "u1", "habitId": "h1"}
    gateway.put_item(HABITS, {**key, "createdAt": "2024-03-10T15:30:00.000Z"})

    with pytest.raises(ConditionFailedError):
        gateway.delete_item(HABITS, key, condition="createdAt = :mine",
                            condition_values={":mine": "2024-03-10T15:29:00.000Z"})
    assert gateway.get_item(HABITS, key) is not None

    gateway.delete_item(HABITS, key, condition="createdAt = :mine",
                        condition_values={":mine": "2024-03-10T15:30:00.000Z"})
    assert gateway.get_item(HABITS, key) is None


def test_unknown_table(gateway):
    with pytest.raises(ValueError):
        gateway.get_item("streaks", {"userId": "u1"})


def test_client_errors_become_storage_errors(gateway):
    table = Mock()
    table.get_item.side_effect = ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
        "GetItem",
    )
    gateway._tables[USERS] = table

    with pytest.raises(StorageError) as exc:
        gateway.get_item(USERS, {"userId": "u1"})

    assert not isinstance(exc.value, ConditionFailedError)
    assert exc.value.table == USERS
    assert exc.value.operation == "get_item"
    assert "slow down" not in exc.value.message


def test_connection_errors_become_storage_errors(gateway):
    table = Mock()
    table.update_item.side_effect = EndpointConnectionError(endpoint_url="http://localhost:4566")
    gateway._tables[USERS] = table

    with pytest.raises(StorageError):
        gateway.update_item(USERS, {"userId": "u1"}, add={"totalXP": 1})


def test_python_dict_keeps_fractions():
    assert python_dict({"a": Decimal("2"), "b": Decimal("2.5"), "c": [Decimal("1")]}) == {
        "a": 2, "b": 2.5, "c": [1],
    }


def test_completion_sort_key():
    assert completion_sort_key("2024-03-10", "habit-1") == "2024-03-10#habit-1"


def test_isoformat_utc():
    moment = datetime(2024, 3, 10, 17, 30, 0, 123456, tzinfo=timezone(timedelta(hours=2)))

    assert isoformat_utc(moment) == "2024-03-10T15:30:00.123Z"


def test_resource_and_tables_are_created_once_across_threads(settings):
    gateway = StorageGateway(TableConfig.from_settings(settings), settings)

    with patch("app.dynamo.boto3.session.Session") as session_cls:
        resource = session_cls.return_value.resource
        resource.return_value.Table.side_effect = lambda name: Mock(name=name)
        with ThreadPoolExecutor(max_workers=8) as pool:
            tables = list(pool.map(lambda _: gateway.table(USERS), range(64)))

    assert resource.call_count == 1
    assert all(table is tables[0] for table in tables)
