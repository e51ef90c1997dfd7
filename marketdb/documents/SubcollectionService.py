"""Service over a subcollection nested under documents of a parent collection."""

from typing import Any, Callable, Generic, Iterable, List, Mapping, Optional, Sequence, Type, Union

from marketdb.apis.Db import Db
from marketdb.documents.CollectionService import (
    CollectionService,
    DocumentData,
    apply_query_options,
    coerce_model,
    snapshot_to_model,
)
from marketdb.documents.DocumentCodec import DocumentCodec
from marketdb.exceptions import LimitExceededError, ValidationError
from marketdb.models.firestore_types import BaseDoc, DocLike
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


class SubcollectionService(Generic[DocLike]):
    """Same surface as CollectionService, with the parent id as first argument.

    Documents live at parentCollection/parentId/subcollectionName/childId.
    """

    parent_collection: str = None  # type: ignore
    subcollection_name: str = None  # type: ignore
    pydantic_model: Type[DocLike] = BaseDoc  # type: ignore

    def __init__(
        self,
        db: Db,
        parent_collection: Optional[str] = None,
        subcollection_name: Optional[str] = None,
        pydantic_model: Optional[Type[DocLike]] = None,
        codec: Optional[DocumentCodec] = None,
    ):
        self.db = db
        if parent_collection:
            self.parent_collection = parent_collection
        if subcollection_name:
            self.subcollection_name = subcollection_name
        if pydantic_model:
            self.pydantic_model = pydantic_model
        if not self.parent_collection or not self.subcollection_name:
            raise ValidationError("You forgot to set parent_collection and subcollection_name.")
        self.codec = codec or DocumentCodec()

    def path(self, parent_id: str) -> str:
        if not parent_id or "/" in parent_id:
            raise ValidationError(f"Invalid parent id: {parent_id!r}", field="parentId")
        return f"{self.parent_collection}/{parent_id}/{self.subcollection_name}"

    def for_parent(self, parent_id: str) -> CollectionService[DocLike]:
        """CollectionService bound to one parent's subcollection."""
        return CollectionService(
            self.db,
            collection_name=self.path(parent_id),
            pydantic_model=self.pydantic_model,
            codec=self.codec,
        )

    # CRUD
    def create(self, parent_id: str, data: DocumentData, timeout: Optional[float] = None) -> DocLike:
        return self.for_parent(parent_id).create(data, timeout)

    def create_with_id(self, parent_id: str, doc_id: str, data: DocumentData,
                       timeout: Optional[float] = None) -> DocLike:
        return self.for_parent(parent_id).create_with_id(doc_id, data, timeout)

    def get_by_id(self, parent_id: str, doc_id: str, timeout: Optional[float] = None) -> Optional[DocLike]:
        return self.for_parent(parent_id).get_by_id(doc_id, timeout)

    def get_many(self, parent_id: str, doc_ids: Sequence[str], timeout: Optional[float] = None) -> List[DocLike]:
        return self.for_parent(parent_id).get_many(doc_ids, timeout)

    def get_all(self, parent_id: str, timeout: Optional[float] = None) -> List[DocLike]:
        """Every child of one parent."""
        return self.for_parent(parent_id).query(None, timeout)

    def update(self, parent_id: str, doc_id: str, data: DocumentData,
               timeout: Optional[float] = None) -> DocLike:
        return self.for_parent(parent_id).update(doc_id, data, timeout)

    def delete(self, parent_id: str, doc_id: str, timeout: Optional[float] = None) -> None:
        self.for_parent(parent_id).delete(doc_id, timeout)

    def delete_all(self, parent_id: str, timeout: Optional[float] = None) -> int:
        """Delete every child of one parent in a single atomic batch.

        Returns:
            Number of deleted children

        Raises:
            LimitExceededError: If there are more children than one batch may
                hold; nothing is deleted, callers delete in chunks instead
        """
        service = self.for_parent(parent_id)
        refs = [snapshot.reference for snapshot in service.collection_ref.stream(**self.db.timeout_kwargs(timeout))]
        if not refs:
            return 0
        if len(refs) > self.db.batch_limit:
            raise LimitExceededError(f"children of {service.path}", len(refs), self.db.batch_limit)

        service.commit_batch([BatchOperation("delete", ref) for ref in refs], timeout)
        logger.info(f"Deleted {len(refs)} documents from {service.path}")
        return len(refs)

    def exists(self, parent_id: str, doc_id: str, timeout: Optional[float] = None) -> bool:
        return self.for_parent(parent_id).exists(doc_id, timeout)

    # Queries
    def query(self, parent_id: str, options: Union[QueryOptions, Mapping[str, Any], None] = None,
              timeout: Optional[float] = None) -> List[DocLike]:
        return self.for_parent(parent_id).query(options, timeout)

    def query_paginated(self, parent_id: str, options: Union[QueryOptions, Mapping[str, Any], None] = None,
                        timeout: Optional[float] = None,
                        include_total: bool = False) -> PaginatedResult[DocLike]:
        return self.for_parent(parent_id).query_paginated(options, timeout, include_total)

    def count(self, parent_id: str, where: Optional[Iterable[Union[WhereClause, Mapping[str, Any]]]] = None,
              timeout: Optional[float] = None) -> int:
        return self.for_parent(parent_id).count(where, timeout)

    def query_in_memory(self, parent_id: str,
                        options: Union[QueryOptions, Mapping[str, Any], None] = None,
                        scan: Union[InMemoryScan, Mapping[str, Any], None] = None,
                        predicate: Optional[Callable[[DocLike], bool]] = None,
                        timeout: Optional[float] = None) -> ScanResult[DocLike]:
        return self.for_parent(parent_id).query_in_memory(options, scan, predicate, timeout)

    def query_group(self, options: Union[QueryOptions, Mapping[str, Any], None] = None,
                    timeout: Optional[float] = None) -> List[DocLike]:
        """Query the subcollection across every parent.

        Each returned document carries the id of its parent as parentId.
        Documents of other collections that share the subcollection name are
        included too; that is how collection groups work.
        """
        options = coerce_model(QueryOptions, options)
        query = apply_query_options(self.db.collection_group(self.subcollection_name), options, self.codec)
        return [
            snapshot_to_model(
                snapshot, self.pydantic_model, self.codec,
                parentId=snapshot.reference.parent.parent.id,
            )
            for snapshot in query.stream(**self.db.timeout_kwargs(timeout))
        ]

    # Batches
    def batch_create(self, parent_id: str, items: Sequence[DocumentData],
                     timeout: Optional[float] = None) -> List[DocLike]:
        return self.for_parent(parent_id).batch_create(items, timeout)

    def batch_update(self, parent_id: str, items: Sequence[Union[BatchUpdateItem, Mapping[str, Any]]],
                     timeout: Optional[float] = None) -> None:
        self.for_parent(parent_id).batch_update(items, timeout)

    def batch_delete(self, parent_id: str, doc_ids: Sequence[str], timeout: Optional[float] = None) -> None:
        self.for_parent(parent_id).batch_delete(doc_ids, timeout)
