"""Query, pagination and batch type definitions."""

from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from marketdb.models.firestore_types import DocLike

FilterOperator = Literal[
    "==", "!=", "<", "<=", ">", ">=",
    "in", "not-in", "array-contains", "array-contains-any",
]

SortDirection = Literal["asc", "desc"]

BatchKind = Literal["set", "update", "delete"]

# Hard ceiling of an in-memory scan; never raised at runtime
MAX_SCAN_CAP = 1000


class WhereClause(BaseModel):
    """Single filter. Multiple clauses are combined with AND."""

    field: str
    operator: FilterOperator
    value: Any = None


class OrderByClause(BaseModel):
    """Sort key, applied in list order."""

    field: str
    direction: SortDirection = "asc"


class QueryOptions(BaseModel):
    """Filtering, sorting and cursor options of a collection query.

    Cursors accept the opaque handle returned by a previous page, a mapping
    of field values, or a list of values in orderBy order.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    where: List[WhereClause] = Field(default_factory=list)
    orderBy: List[OrderByClause] = Field(default_factory=list)
    limit: Optional[int] = Field(default=None, gt=0)
    startAfter: Any = None
    startAt: Any = None
    endBefore: Any = None
    endAt: Any = None


class PaginatedResult(BaseModel, Generic[DocLike]):
    """One page of documents plus the handle to fetch the next one."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: List[DocLike]
    hasMore: bool
    cursor: Any = None
    total: Optional[int] = None


class InMemoryScan(BaseModel):
    """Explicit, approximate in-memory query over a hard-capped window."""

    search: Optional[str] = None
    searchFields: List[str] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)
    pageSize: int = Field(default=20, ge=1)
    cap: int = Field(default=MAX_SCAN_CAP, ge=1, le=MAX_SCAN_CAP)


class ScanResult(PaginatedResult[DocLike], Generic[DocLike]):
    """Result of an in-memory scan.

    truncated means the cap was hit: documents past the window were never
    looked at, so total and hasMore are lower bounds.
    """

    scanned: int = 0
    truncated: bool = False


class BatchUpdateItem(BaseModel):
    """Partial update of one document inside a batch."""

    id: str
    data: Dict[str, Any]


@dataclass
class BatchOperation:
    """Queued write of a batch: kind, target document reference, payload."""
    kind: BatchKind
    target: Any
    payload: Optional[Dict[str, Any]] = None
