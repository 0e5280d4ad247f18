from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from roster_import.config.loader import UploadConfig
from roster_import.models.schema import EntityKind
from roster_import.store.base import StoreError
from roster_import.store.dynamodb import DynamoDBStore, from_dynamo, to_dynamo

TABLES = {
    EntityKind.STUDENTS: "test-students",
    EntityKind.TEACHERS: "test-teachers",
    EntityKind.GAMES: "test-games",
}


def _client_error(operation: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
        operation,
    )


def test_number_conversion_at_the_boundary():
    assert to_dynamo({"marks": 12.5, "ok": True, "tags": [1.5]}) == {
        "marks": Decimal("12.5"), "ok": True, "tags": [Decimal("1.5")],
    }
    assert from_dynamo({"marks": Decimal("12"), "ratio": Decimal("0.5")}) == {"marks": 12, "ratio": 0.5}
    assert type(from_dynamo(Decimal("12"))) is int


def test_get_items_builds_request_and_reads_unprocessed():
    resource = MagicMock()
    resource.batch_get_item.return_value = {
        "Responses": {"test-games": [{"game_id": "G1", "accumulated_click": Decimal("42")}]},
        "UnprocessedKeys": {"test-games": {"Keys": [{"game_id": "G2"}]}},
    }
    store = DynamoDBStore(resource, TABLES)

    result = store.get_items(EntityKind.GAMES, ["G1", "G2"])

    resource.batch_get_item.assert_called_once_with(
        RequestItems={"test-games": {"Keys": [{"game_id": "G1"}, {"game_id": "G2"}]}}
    )
    assert result.items == [{"game_id": "G1", "accumulated_click": 42}]
    assert result.unprocessed_keys == ["G2"]


def test_put_items_returns_unprocessed_records():
    resource = MagicMock()
    resource.batch_write_item.return_value = {
        "UnprocessedItems": {"test-students": [{"PutRequest": {"Item": {"student_id": "S2"}}}]}
    }
    store = DynamoDBStore(resource, TABLES)

    leftovers = store.put_items(
        EntityKind.STUDENTS, [{"student_id": "S1", "marks": 1.5}, {"student_id": "S2", "marks": 2}]
    )

    request = resource.batch_write_item.call_args.kwargs["RequestItems"]["test-students"]
    assert request[0] == {"PutRequest": {"Item": {"student_id": "S1", "marks": Decimal("1.5")}}}
    assert leftovers == [{"student_id": "S2"}]


def test_client_errors_become_store_errors():
    resource = MagicMock()
    resource.batch_write_item.side_effect = _client_error("BatchWriteItem")
    resource.batch_get_item.side_effect = _client_error("BatchGetItem")
    store = DynamoDBStore(resource, TABLES)

    with pytest.raises(StoreError, match="batch_write_item failed on test-games"):
        store.put_items(EntityKind.GAMES, [{"game_id": "G1"}])
    with pytest.raises(StoreError, match="batch_get_item failed"):
        store.get_items(EntityKind.GAMES, ["G1"])


def test_increment_counter_is_an_atomic_add():
    resource = MagicMock()
    table = resource.Table.return_value
    table.update_item.return_value = {"Attributes": {"accumulated_click": Decimal("43")}}
    store = DynamoDBStore(resource, TABLES)

    assert store.increment_counter(EntityKind.GAMES, "G1", "accumulated_click") == 43

    resource.Table.assert_called_once_with("test-games")
    kwargs = table.update_item.call_args.kwargs
    assert kwargs["Key"] == {"game_id": "G1"}
    assert kwargs["UpdateExpression"] == "ADD #f :inc"
    assert kwargs["ExpressionAttributeNames"] == {"#f": "accumulated_click"}
    assert kwargs["ExpressionAttributeValues"] == {":inc": 1}


def test_increment_counter_missing_record():
    resource = MagicMock()
    resource.Table.return_value.update_item.side_effect = _client_error("UpdateItem")
    store = DynamoDBStore(resource, TABLES)
    with pytest.raises(StoreError):
        store.increment_counter(EntityKind.GAMES, "G404", "accumulated_click")


def test_from_config_passes_region_and_endpoint():
    cfg = UploadConfig(table_names=TABLES, aws_region="ap-east-1", dynamodb_endpoint="http://localhost:8000")
    with patch("roster_import.store.dynamodb.boto3.resource") as mock_resource:
        store = DynamoDBStore.from_config(cfg)
    mock_resource.assert_called_once_with(
        "dynamodb", region_name="ap-east-1", endpoint_url="http://localhost:8000"
    )
    assert store.table_names[EntityKind.GAMES] == "test-games"
