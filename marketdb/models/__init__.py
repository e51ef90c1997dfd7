"""Models package initialization."""

from .firestore_types import (
    BaseDoc,
    DocLike,
    MANAGED_FIELDS,
    UserDoc,
    ProjectDoc,
    BidDoc,
    EscrowDoc,
    MilestoneDoc,
    LeadDoc,
    NotificationDoc,
    FeeTransactionDoc,
    RankingDoc,
    FurnitureProductBaseDoc,
    FurnitureVariantDoc,
    FurnitureQuotationDoc,
    ConversationDoc,
    MessageDoc,
    ParticipantDoc,
    BlogPostDoc,
    BlogCommentDoc,
)
from .query_types import (
    FilterOperator,
    SortDirection,
    MAX_SCAN_CAP,
    WhereClause,
    OrderByClause,
    QueryOptions,
    PaginatedResult,
    InMemoryScan,
    ScanResult,
    BatchUpdateItem,
    BatchOperation,
)

__all__ = [
    # Firestore types
    "BaseDoc",
    "DocLike",
    "MANAGED_FIELDS",
    "UserDoc",
    "ProjectDoc",
    "BidDoc",
    "EscrowDoc",
    "MilestoneDoc",
    "LeadDoc",
    "NotificationDoc",
    "FeeTransactionDoc",
    "RankingDoc",
    "FurnitureProductBaseDoc",
    "FurnitureVariantDoc",
    "FurnitureQuotationDoc",
    "ConversationDoc",
    "MessageDoc",
    "ParticipantDoc",
    "BlogPostDoc",
    "BlogCommentDoc",
    # Query types
    "FilterOperator",
    "SortDirection",
    "MAX_SCAN_CAP",
    "WhereClause",
    "OrderByClause",
    "QueryOptions",
    "PaginatedResult",
    "InMemoryScan",
    "ScanResult",
    "BatchUpdateItem",
    "BatchOperation",
]
