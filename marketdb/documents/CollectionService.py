"""Generic service over one Firestore collection."""

from datetime import datetime
from typing import (
    Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional, Sequence,
    Type, TypeVar, Union,
)

import pydantic
from google.cloud import firestore
from google.cloud.firestore_v1 import DocumentSnapshot
from google.cloud.firestore_v1.base_query import FieldFilter

from marketdb.apis.Db import Db
from marketdb.documents.DocumentCodec import DocumentCodec, date_to_timestamp, timestamp_to_date
from marketdb.documents.scan import filter_documents, slice_page
from marketdb.documents.TransactionContext import TransactionContext
from marketdb.exceptions import LimitExceededError, NotFoundError, ValidationError
from marketdb.models.firestore_types import BaseDoc, DocLike, MANAGED_FIELDS
from marketdb.models.query_types import (
    BatchOperation,
    BatchUpdateItem,
    InMemoryScan,
    PaginatedResult,
    QueryOptions,
    ScanResult,
    WhereClause,
)
from marketdb.util.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20

# Operator names whose spelling differs in the Python client
_OPERATORS = {
    "array-contains": "array_contains",
    "array-contains-any": "array_contains_any",
}

_CURSORS = (
    ("startAfter", "start_after"),
    ("startAt", "start_at"),
    ("endBefore", "end_before"),
    ("endAt", "end_at"),
)

DocumentData = Union[Mapping[str, Any], pydantic.BaseModel]
M = TypeVar("M", bound=pydantic.BaseModel)
R = TypeVar("R")


def coerce_model(model_cls: Type[M], value: Any) -> M:
    """Accept a model instance, a mapping or None and return a validated model."""
    if isinstance(value, model_cls):
        return value
    try:
        return model_cls.model_validate(value if value is not None else {})
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid {model_cls.__name__}: {e}", details={"errors": e.errors()})


def apply_query_options(query, options: QueryOptions, codec: DocumentCodec):
    """Apply where, orderBy, cursors and limit, in that order, to a query."""
    for clause in options.where:
        query = query.where(filter=FieldFilter(
            clause.field,
            _OPERATORS.get(clause.operator, clause.operator),
            codec.encode(clause.value, clause.field),
        ))

    for order in options.orderBy:
        direction = firestore.Query.DESCENDING if order.direction == "desc" else firestore.Query.ASCENDING
        query = query.order_by(order.field, direction=direction)

    for option_name, method_name in _CURSORS:
        cursor = getattr(options, option_name)
        if cursor is not None:
            query = getattr(query, method_name)(_encode_cursor(cursor, codec))

    if options.limit:
        query = query.limit(options.limit)

    return query


def _encode_cursor(cursor: Any, codec: DocumentCodec) -> Any:
    if isinstance(cursor, DocumentSnapshot):
        return cursor
    if isinstance(cursor, tuple):
        cursor = list(cursor)
    return codec.encode(cursor)


def snapshot_to_model(snapshot, model: Type[DocLike], codec: DocumentCodec, **extra: Any) -> DocLike:
    data = codec.decode_document(snapshot.to_dict())
    data.update(extra)
    data["id"] = snapshot.id
    return model.model_validate(data)


def _require_id(doc_id: str) -> str:
    if not doc_id or not isinstance(doc_id, str):
        raise ValidationError("Document id is required", field="id")
    if "/" in doc_id:
        raise ValidationError(f"Document id must not contain '/': {doc_id}", field="id")
    return doc_id


class CollectionService(Generic[DocLike]):
    """CRUD, query, pagination, batch and transaction access to one collection.

    Subclasses may set collection_name and pydantic_model as class attributes
    instead of passing them to the constructor.
    """

    collection_name: str = None  # type: ignore
    pydantic_model: Type[DocLike] = BaseDoc  # type: ignore

    def __init__(
        self,
        db: Db,
        collection_name: Optional[str] = None,
        pydantic_model: Optional[Type[DocLike]] = None,
        codec: Optional[DocumentCodec] = None,
    ):
        self.db = db
        if collection_name:
            self.collection_name = collection_name
        if pydantic_model:
            self.pydantic_model = pydantic_model
        if not self.collection_name:
            raise ValidationError("You forgot to set collection_name.", field="collection_name")
        self.codec = codec or DocumentCodec()

    # References
    @property
    def path(self) -> str:
        return self.collection_name

    @property
    def collection_ref(self):
        return self.db.collection(self.collection_name)

    def document_ref(self, doc_id: Optional[str] = None):
        """Reference to a document; without an id the store generates one."""
        if doc_id is None:
            return self.collection_ref.document()
        return self.collection_ref.document(_require_id(doc_id))

    # Encoding
    def to_model(self, snapshot, **extra: Any) -> DocLike:
        return snapshot_to_model(snapshot, self.pydantic_model, self.codec, **extra)

    def encode_payload(self, data: DocumentData) -> Dict[str, Any]:
        """Encode caller data, dropping the fields the layer manages itself."""
        if isinstance(data, pydantic.BaseModel):
            data = data.model_dump(exclude_unset=True)
        payload = {key: value for key, value in data.items() if key not in MANAGED_FIELDS}
        return self.codec.encode_document(payload)

    def new_document(self, data: DocumentData, now: datetime, doc_id: str) -> Dict[str, Any]:
        """Encode a new document, stamping createdAt and updatedAt.

        Raises:
            ValidationError: If the stored document would not load as
                pydantic_model; nothing has been written at that point
        """
        stamp = date_to_timestamp(now)
        document = {**self.encode_payload(data), "createdAt": stamp, "updatedAt": stamp}
        coerce_model(self.pydantic_model, {**document, "id": doc_id})
        return document

    def update_payload(self, data: DocumentData, now: datetime) -> Dict[str, Any]:
        return {**self.encode_payload(data), "updatedAt": date_to_timestamp(now)}

    def next_updated_at(self, previous: Optional[Mapping[str, Any]]) -> datetime:
        """Current time, but never earlier than the stored updatedAt."""
        now = self.db.timestamp_now()
        stored = (previous or {}).get("updatedAt")
        if isinstance(stored, datetime):
            stored = timestamp_to_date(stored)
            if stored > now:
                return stored
        return now

    # CRUD
    def create(self, data: DocumentData, timeout: Optional[float] = None) -> DocLike:
        """Create a document with a store-generated id and return it as stored."""
        return self._write_new(self.document_ref(), data, timeout)

    def create_with_id(self, doc_id: str, data: DocumentData, timeout: Optional[float] = None) -> DocLike:
        """Create (or overwrite) the document with the given id and return it as stored."""
        return self._write_new(self.document_ref(doc_id), data, timeout)

    def _write_new(self, doc_ref, data: DocumentData, timeout: Optional[float]) -> DocLike:
        now = self.db.timestamp_now()
        doc_ref.set(self.new_document(data, now, doc_ref.id), **self.db.timeout_kwargs(timeout))
        logger.debug(f"Created document {self.path}/{doc_ref.id}")
        return self._read_back(doc_ref, timeout)

    def _read_back(self, doc_ref, timeout: Optional[float]) -> DocLike:
        snapshot = doc_ref.get(**self.db.timeout_kwargs(timeout))
        if not snapshot.exists:
            # Deleted by someone else between our write and the read
            raise NotFoundError(self.path, doc_ref.id)
        return self.to_model(snapshot)

    def get_by_id(self, doc_id: str, timeout: Optional[float] = None) -> Optional[DocLike]:
        snapshot = self.document_ref(doc_id).get(**self.db.timeout_kwargs(timeout))
        if not snapshot.exists:
            return None
        return self.to_model(snapshot)

    def get_many(self, doc_ids: Sequence[str], timeout: Optional[float] = None) -> List[DocLike]:
        """Fetch several documents in one round trip, in the order of doc_ids.

        Missing ids are left out of the result and repeated ids appear once.
        """
        unique_ids = list(dict.fromkeys(doc_ids))
        if not unique_ids:
            return []
        snapshots = self.db.get_all([self.document_ref(doc_id) for doc_id in unique_ids], timeout)
        found = {snapshot.id: snapshot for snapshot in snapshots if snapshot.exists}
        return [self.to_model(found[doc_id]) for doc_id in unique_ids if doc_id in found]

    def update(self, doc_id: str, data: DocumentData, timeout: Optional[float] = None) -> DocLike:
        """Apply a partial update to an existing document and return the fresh document.

        Nested maps in data replace the stored map and dotted keys address
        nested fields, the same as batch_update and TransactionContext.update.

        Raises:
            NotFoundError: If the document does not exist; nothing is written
        """
        doc_ref = self.document_ref(doc_id)
        kwargs = self.db.timeout_kwargs(timeout)

        existing = doc_ref.get(**kwargs)
        if not existing.exists:
            raise NotFoundError(self.path, doc_id)

        now = self.next_updated_at(existing.to_dict())
        doc_ref.update(self.update_payload(data, now), **kwargs)
        logger.debug(f"Updated document {self.path}/{doc_id}")
        return self._read_back(doc_ref, timeout)

    def delete(self, doc_id: str, timeout: Optional[float] = None) -> None:
        self.document_ref(doc_id).delete(**self.db.timeout_kwargs(timeout))
        logger.debug(f"Deleted document {self.path}/{doc_id}")

    def exists(self, doc_id: str, timeout: Optional[float] = None) -> bool:
        return self.document_ref(doc_id).get(**self.db.timeout_kwargs(timeout)).exists

    # Queries
    def query(self, options: Union[QueryOptions, Mapping[str, Any], None] = None,
              timeout: Optional[float] = None) -> List[DocLike]:
        """Run a filtered, sorted, cursor-bounded query.

        Combining several where/orderBy fields needs a composite index on the
        store side; a missing index surfaces as the store's own error.
        """
        options = coerce_model(QueryOptions, options)
        query = apply_query_options(self.collection_ref, options, self.codec)
        return [self.to_model(snapshot) for snapshot in query.stream(**self.db.timeout_kwargs(timeout))]

    def query_paginated(self, options: Union[QueryOptions, Mapping[str, Any], None] = None,
                        timeout: Optional[float] = None,
                        include_total: bool = False) -> PaginatedResult[DocLike]:
        """Fetch one page plus one extra document to derive hasMore.

        The next-page cursor is the native snapshot of the last returned
        document, which costs one extra read.
        """
        options = coerce_model(QueryOptions, options)
        limit = options.limit or DEFAULT_PAGE_SIZE

        results = self.query(options.model_copy(update={"limit": limit + 1}), timeout)
        has_more = len(results) > limit
        data = results[:limit]

        cursor = None
        if data:
            cursor = self.document_ref(data[-1].id).get(**self.db.timeout_kwargs(timeout))

        total = self.count(options.where, timeout) if include_total else None
        return PaginatedResult(data=data, hasMore=has_more, cursor=cursor, total=total)

    def count(self, where: Optional[Iterable[Union[WhereClause, Mapping[str, Any]]]] = None,
              timeout: Optional[float] = None) -> int:
        """Count matching documents with a server-side aggregation query."""
        options = coerce_model(QueryOptions, {"where": list(where or [])})
        query = apply_query_options(self.collection_ref, options, self.codec)
        results = query.count(alias="count").get(**self.db.timeout_kwargs(timeout))
        return int(results[0][0].value) if results else 0

    def query_in_memory(
        self,
        options: Union[QueryOptions, Mapping[str, Any], None] = None,
        scan: Union[InMemoryScan, Mapping[str, Any], None] = None,
        predicate: Optional[Callable[[DocLike], bool]] = None,
        timeout: Optional[float] = None,
    ) -> ScanResult[DocLike]:
        """Approximate query: search, filter and paginate in memory.

        At most scan.cap documents (fewer when options.limit is smaller) are
        read with the store-side where/orderBy; substring search, the
        predicate and page slicing run over that window only. When the window
        is full the result is flagged as truncated.
        """
        options = coerce_model(QueryOptions, options)
        scan = coerce_model(InMemoryScan, scan)
        window = min(options.limit or scan.cap, scan.cap)

        docs = self.query(options.model_copy(update={"limit": window}), timeout)
        truncated = len(docs) >= window
        if truncated:
            logger.warning(f"In-memory scan of {self.path} filled its window of {window}; results are approximate")

        matches = filter_documents(docs, scan.search, scan.searchFields, predicate)
        page, has_more = slice_page(matches, scan.page, scan.pageSize)
        return ScanResult(
            data=page,
            hasMore=has_more,
            total=len(matches),
            scanned=len(docs),
            truncated=truncated,
        )

    # Batches
    def batch_create(self, items: Sequence[DocumentData], timeout: Optional[float] = None) -> List[DocLike]:
        """Create all items atomically and return them as stored."""
        if not items:
            return []
        now = self.db.timestamp_now()
        refs = [self.document_ref() for _ in items]
        operations = [
            BatchOperation("set", ref, self.new_document(item, now, ref.id)) for ref, item in zip(refs, items)
        ]
        self.commit_batch(operations, timeout)
        return self.get_many([operation.target.id for operation in operations], timeout)

    def batch_update(self, items: Sequence[Union[BatchUpdateItem, Mapping[str, Any]]],
                     timeout: Optional[float] = None) -> None:
        """Apply partial updates atomically; any missing document fails the whole batch."""
        if not items:
            return
        now = self.db.timestamp_now()
        operations = []
        for item in items:
            item = coerce_model(BatchUpdateItem, item)
            operations.append(BatchOperation("update", self.document_ref(item.id), self.update_payload(item.data, now)))
        self.commit_batch(operations, timeout)

    def batch_delete(self, doc_ids: Sequence[str], timeout: Optional[float] = None) -> None:
        if not doc_ids:
            return
        operations = [BatchOperation("delete", self.document_ref(doc_id)) for doc_id in doc_ids]
        self.commit_batch(operations, timeout)

    def commit_batch(self, operations: List[BatchOperation], timeout: Optional[float] = None) -> None:
        """Commit queued operations as one atomic write batch.

        Raises:
            LimitExceededError: If there are more operations than one batch may hold
        """
        if not operations:
            return
        if len(operations) > self.db.batch_limit:
            raise LimitExceededError("batch operations", len(operations), self.db.batch_limit)

        batch = self.db.batch()
        for operation in operations:
            if operation.kind == "set":
                batch.set(operation.target, operation.payload)
            elif operation.kind == "update":
                batch.update(operation.target, operation.payload)
            elif operation.kind == "delete":
                batch.delete(operation.target)
            else:
                raise ValidationError(f"Unknown batch operation: {operation.kind}", field="kind")

        batch.commit(**self.db.timeout_kwargs(timeout))
        logger.debug(f"Committed batch of {len(operations)} operations on {self.path}")

    # Transactions
    def run_transaction(self, fn: Callable[[TransactionContext], R], timeout: Optional[float] = None) -> R:
        """Run fn inside a single store transaction attempt.

        Reads must go through the context to take part in conflict detection.
        Writes are applied only if fn returns; if fn raises or the store
        detects a conflicting write, nothing is applied and the error
        propagates. There is no retry here: a retrying caller re-runs fn, so
        fn must not have side effects beyond its transactional writes.
        """
        transaction = self.db.transaction(max_attempts=1)
        context = TransactionContext(transaction, self, timeout=timeout)

        @firestore.transactional
        def _run(transaction):
            return fn(context)

        result = _run(transaction)
        logger.debug(f"Committed transaction opened on {self.path} with {context.writes} writes")
        return result
