"""Lead service: search over the in-memory scan and transactional merging."""

from typing import List, Optional

from marketdb.documents.CollectionService import CollectionService
from marketdb.documents.TransactionContext import TransactionContext
from marketdb.exceptions import NotFoundError, ValidationError
from marketdb.models.firestore_types import LeadDoc
from marketdb.models.query_types import InMemoryScan, QueryOptions, ScanResult
from marketdb.util.logger import get_logger

logger = get_logger(__name__)

LEAD_SEARCH_FIELDS = ["name", "phone", "email"]


class LeadService(CollectionService[LeadDoc]):
    """Customer leads collected from the quote forms."""

    collection_name = "leads"
    pydantic_model = LeadDoc

    def search_leads(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        source: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
        timeout: Optional[float] = None,
    ) -> ScanResult[LeadDoc]:
        """Newest-first leads matching a free-text search; merged leads are hidden.

        Results are approximate once the scan is truncated.
        """
        where = []
        if status:
            where.append({"field": "status", "operator": "==", "value": status})
        if source:
            where.append({"field": "source", "operator": "==", "value": source})

        options = QueryOptions.model_validate({
            "where": where,
            "orderBy": [{"field": "createdAt", "direction": "desc"}],
        })
        scan = InMemoryScan(search=search, searchFields=LEAD_SEARCH_FIELDS, page=page, pageSize=page_size)
        return self.query_in_memory(options, scan, predicate=lambda lead: not lead.mergedIntoId, timeout=timeout)

    def merge_leads(self, primary_id: str, secondary_ids: List[str], timeout: Optional[float] = None) -> LeadDoc:
        """Fold secondary leads into a primary one inside one transaction.

        The secondary contents are appended to the primary, oldest first, and
        every secondary lead is marked with mergedIntoId.
        """
        if not secondary_ids:
            raise ValidationError("At least one secondary lead is required", field="secondaryIds")
        if primary_id in secondary_ids:
            raise ValidationError("A lead cannot be merged into itself", field="secondaryIds")

        def _merge(ctx: TransactionContext) -> None:
            primary = ctx.get(primary_id)
            if primary is None:
                raise NotFoundError(self.path, primary_id)
            if primary.mergedIntoId:
                raise ValidationError(f"Lead {primary_id} was already merged", field="primaryId")

            secondaries = ctx.get_many(secondary_ids)
            missing = set(secondary_ids) - {lead.id for lead in secondaries}
            if missing:
                raise NotFoundError(self.path, sorted(missing)[0])
            for lead in secondaries:
                if lead.mergedIntoId:
                    raise ValidationError(f"Lead {lead.id} was already merged", field="secondaryIds")
                if lead.source != primary.source:
                    raise ValidationError("Leads from different sources cannot be merged", field="secondaryIds")

            content = primary.content or ""
            for lead in sorted(secondaries, key=lambda lead: lead.createdAt):
                content += f"\n\n--- Merged from Lead {lead.id} ({lead.createdAt.isoformat()}) ---\n\n{lead.content or ''}"

            ctx.update(primary_id, {"content": content, "hasRelatedLeads": False})
            for lead in secondaries:
                ctx.update(lead.id, {"mergedIntoId": primary_id})

        self.run_transaction(_merge, timeout)
        logger.info(f"Merged {len(secondary_ids)} leads into {primary_id}")
        return self.get_by_id(primary_id, timeout)
