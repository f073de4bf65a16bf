"""DynamoDB-backed record stores."""

from typing import Any, Dict, TYPE_CHECKING

from boto3.dynamodb.types import TypeSerializer

from .exceptions import RecordStoreError
from .error_handling import retry_aws_operation, with_error_handling

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.client import DynamoDBClient
else:
    DynamoDBClient = Any


class _SerializingStore:
    def __init__(self, client: Any):
        self._client = client
        self._serializer = TypeSerializer()

    def _serialize(self, values: Dict[str, Any]) -> Dict[str, Any]:
        return {name: self._serializer.serialize(value) for name, value in values.items()}

    def _update_request(
        self,
        table: str,
        key: Dict[str, Any],
        update_expression: str,
        expression_values: Dict[str, Any],
    ) -> Dict[str, Any]:
        return {
            "TableName": table,
            "Key": self._serialize(key),
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": self._serialize(expression_values),
        }


class DynamoDBRecordStore(_SerializingStore):
    """
    Record store on top of the low-level DynamoDB client.

    The client (unlike boto3 resources) is thread-safe, so one instance is
    shared across every concurrent item write in a run. Throttled calls are
    retried with backoff.
    """

    def __init__(self, client: DynamoDBClient):
        super().__init__(client)

    @retry_aws_operation()
    @with_error_handling(client_error=RecordStoreError)
    def put_item(self, table: str, item: Dict[str, Any]) -> None:
        self._client.put_item(TableName=table, Item=self._serialize(item))

    @retry_aws_operation()
    @with_error_handling(client_error=RecordStoreError)
    def update_item(
        self,
        table: str,
        key: Dict[str, Any],
        update_expression: str,
        expression_values: Dict[str, Any],
    ) -> None:
        self._client.update_item(
            **self._update_request(table, key, update_expression, expression_values)
        )


class AsyncDynamoDBRecordStore(_SerializingStore):
    """Awaitable record store over an aiobotocore DynamoDB client."""

    @retry_aws_operation()
    @with_error_handling(client_error=RecordStoreError)
    async def put_item(self, table: str, item: Dict[str, Any]) -> None:
        await self._client.put_item(TableName=table, Item=self._serialize(item))

    @retry_aws_operation()
    @with_error_handling(client_error=RecordStoreError)
    async def update_item(
        self,
        table: str,
        key: Dict[str, Any],
        update_expression: str,
        expression_values: Dict[str, Any],
    ) -> None:
        await self._client.update_item(
            **self._update_request(table, key, update_expression, expression_values)
        )
