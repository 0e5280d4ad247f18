from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..models.schema import EntityKind, get_schema
from .base import GetResult, StoreClient, StoreError

"""DynamoDB StoreClient (boto3 resource API).

One BatchGetItem / BatchWriteItem call per method call. Numbers are
converted at this boundary: floats go out as Decimal, Decimals come back as
int (integral) or float, so the record builder compares plain Python
numbers.
"""

__all__ = [
    "DynamoDBStore",
    "to_dynamo",
    "from_dynamo",
]


def to_dynamo(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(v) for v in value]
    return value


def from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    if isinstance(value, Mapping):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [from_dynamo(v) for v in value]
    return value


class DynamoDBStore(StoreClient):
    def __init__(self, resource: Any, table_names: Mapping[EntityKind, str]) -> None:
        self.resource = resource
        self.table_names = dict(table_names)

    @classmethod
    def from_config(cls, config: Any) -> DynamoDBStore:
        kwargs: dict[str, Any] = {}
        if config.aws_region:
            kwargs["region_name"] = config.aws_region
        if config.dynamodb_endpoint:
            kwargs["endpoint_url"] = config.dynamodb_endpoint
        resource = boto3.resource("dynamodb", **kwargs)
        return cls(resource, config.table_names)

    def _table_name(self, kind: EntityKind) -> str:
        return self.table_names[kind]

    def get_items(self, kind: EntityKind, keys: Sequence[str]) -> GetResult:
        table = self._table_name(kind)
        key_field = get_schema(kind).key_field
        request = {table: {"Keys": [{key_field: k} for k in keys]}}
        try:
            resp = self.resource.batch_get_item(RequestItems=request)
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"batch_get_item failed on {table}: {e}") from e
        items = [from_dynamo(i) for i in resp.get("Responses", {}).get(table, [])]
        unprocessed = resp.get("UnprocessedKeys", {}).get(table, {}).get("Keys", [])
        return GetResult(
            items=items,
            unprocessed_keys=[str(from_dynamo(k[key_field])) for k in unprocessed],
        )

    def put_items(self, kind: EntityKind, records: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        table = self._table_name(kind)
        request = {table: [{"PutRequest": {"Item": to_dynamo(r)}} for r in records]}
        try:
            resp = self.resource.batch_write_item(RequestItems=request)
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"batch_write_item failed on {table}: {e}") from e
        leftovers = resp.get("UnprocessedItems", {}).get(table, [])
        return [from_dynamo(req["PutRequest"]["Item"]) for req in leftovers if "PutRequest" in req]

    def increment_counter(self, kind: EntityKind, key: str, field_name: str, amount: int = 1) -> int:
        table = self.resource.Table(self._table_name(kind))
        key_field = get_schema(kind).key_field
        try:
            resp = table.update_item(
                Key={key_field: key},
                UpdateExpression="ADD #f :inc",
                ConditionExpression=f"attribute_exists({key_field})",
                ExpressionAttributeNames={"#f": field_name},
                ExpressionAttributeValues={":inc": amount},
                ReturnValues="UPDATED_NEW",
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"increment of {field_name} failed for {key}: {e}") from e
        return from_dynamo(resp.get("Attributes", {}).get(field_name, 0))
