"""
Distributed write locks backed by DynamoDB conditional writes.
"""
from .lock_service import LockService
from .lock_store import ConditionalWriteResult, DynamoDBLockStore, table_from_name

__all__: list[str] = [
    "ConditionalWriteResult",
    "DynamoDBLockStore",
    "LockService",
    "table_from_name",
]
