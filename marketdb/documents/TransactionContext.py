"""Handle passed to the callback of CollectionService.run_transaction."""

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from marketdb.util.logger import get_logger

if TYPE_CHECKING:
    from marketdb.documents.CollectionService import CollectionService

logger = get_logger(__name__)


class TransactionContext:
    """Transaction-consistent reads and buffered writes.

    Every method takes an optional service so one transaction can span
    several collections (or a subcollection bound with for_parent). Without
    it, the service that opened the transaction is the target.

    Writes are buffered by the store transaction and only applied when the
    callback returns.
    """

    def __init__(self, transaction, service: "CollectionService", timeout: Optional[float] = None):
        self.transaction = transaction
        self.service = service
        self.timeout = timeout
        self.writes = 0
        # updatedAt of every document read so far, by document path
        self._seen: Dict[str, Any] = {}

    def _target(self, service: Optional["CollectionService"]) -> "CollectionService":
        return service or self.service

    def _remember(self, snapshot) -> None:
        if snapshot.exists:
            self._seen[snapshot.reference.path] = (snapshot.to_dict() or {}).get("updatedAt")

    # Reads
    def get(self, doc_id: str, service: Optional["CollectionService"] = None):
        """Read a document within the transaction; None if it does not exist."""
        target = self._target(service)
        snapshot = target.document_ref(doc_id).get(
            transaction=self.transaction, **target.db.timeout_kwargs(self.timeout)
        )
        if not snapshot.exists:
            return None
        self._remember(snapshot)
        return target.to_model(snapshot)

    def get_many(self, doc_ids: Sequence[str], service: Optional["CollectionService"] = None) -> List[Any]:
        target = self._target(service)
        unique_ids = list(dict.fromkeys(doc_ids))
        if not unique_ids:
            return []
        snapshots = target.db.get_all(
            [target.document_ref(doc_id) for doc_id in unique_ids],
            self.timeout,
            transaction=self.transaction,
        )
        found = {}
        for snapshot in snapshots:
            if snapshot.exists:
                self._remember(snapshot)
                found[snapshot.id] = snapshot
        return [target.to_model(found[doc_id]) for doc_id in unique_ids if doc_id in found]

    # Writes
    def set(self, doc_id: str, data, service: Optional["CollectionService"] = None) -> None:
        """Write a whole document, stamping createdAt and updatedAt."""
        target = self._target(service)
        now = target.db.timestamp_now()
        self.transaction.set(target.document_ref(doc_id), target.new_document(data, now, doc_id))
        self.writes += 1

    def create(self, data, service: Optional["CollectionService"] = None) -> str:
        """Write a new document under a store-generated id and return the id."""
        target = self._target(service)
        doc_ref = target.document_ref()
        now = target.db.timestamp_now()
        self.transaction.set(doc_ref, target.new_document(data, now, doc_ref.id))
        self.writes += 1
        return doc_ref.id

    def update(self, doc_id: str, data, service: Optional["CollectionService"] = None) -> None:
        """Partially update a document; a missing document fails the commit."""
        target = self._target(service)
        doc_ref = target.document_ref(doc_id)
        seen = self._seen.get(doc_ref.path)
        now = target.next_updated_at({"updatedAt": seen} if seen is not None else None)
        self.transaction.update(doc_ref, target.update_payload(data, now))
        self.writes += 1

    def delete(self, doc_id: str, service: Optional["CollectionService"] = None) -> None:
        target = self._target(service)
        self.transaction.delete(target.document_ref(doc_id))
        self.writes += 1
        logger.debug(f"Queued delete of {target.path}/{doc_id} in transaction")
