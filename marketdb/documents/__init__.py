"""Document access layer."""

from .DocumentCodec import DocumentCodec, ValueKind, date_to_timestamp, timestamp_to_date
from .TransactionContext import TransactionContext
from .CollectionService import CollectionService
from .SubcollectionService import SubcollectionService

__all__ = [
    "DocumentCodec",
    "ValueKind",
    "date_to_timestamp",
    "timestamp_to_date",
    "TransactionContext",
    "CollectionService",
    "SubcollectionService",
]
