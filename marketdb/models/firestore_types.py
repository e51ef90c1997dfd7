"""Firestore document type definitions using Pydantic."""

from datetime import datetime
from typing import Optional, List, Dict, Any, TypeVar
from pydantic import BaseModel, ConfigDict, Field


class BaseDoc(BaseModel):
    """Base document type for all Firestore documents.

    Fields not declared on a subclass are kept, so an untyped collection can
    be served with BaseDoc itself.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    createdAt: datetime
    updatedAt: datetime


DocLike = TypeVar("DocLike", bound=BaseDoc)

# Written by the access layer, never taken from caller payloads
MANAGED_FIELDS = frozenset({"id", "createdAt", "updatedAt"})


class UserDoc(BaseDoc):
    """User document type."""

    email: Optional[str] = None
    name: Optional[str] = None
    role: str = "HOMEOWNER"
    phone: Optional[str] = None
    verificationStatus: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ProjectDoc(BaseDoc):
    """Bidding project posted by a homeowner."""

    code: Optional[str] = None
    title: str
    ownerId: str
    status: str = "DRAFT"
    regionId: Optional[str] = None
    budgetMin: Optional[int] = None
    budgetMax: Optional[int] = None
    bidDeadline: Optional[datetime] = None
    selectedBidId: Optional[str] = None
    bidCount: int = 0


class BidDoc(BaseDoc):
    """Contractor bid, stored under projects/{projectId}/bids."""

    projectId: str
    contractorId: str
    price: int
    timeline: Optional[str] = None
    proposal: Optional[str] = None
    status: str = "PENDING"
    reviewedAt: Optional[datetime] = None


class EscrowDoc(BaseDoc):
    """Escrow holding the deposit of a matched project."""

    projectId: str
    bidId: str
    homeownerId: str
    contractorId: str
    amount: int
    releasedAmount: int = 0
    status: str = "PENDING"


class MilestoneDoc(BaseDoc):
    """Escrow milestone, stored under escrows/{escrowId}/milestones."""

    escrowId: str
    name: str
    percentage: float
    releasePercentage: float = 0
    status: str = "PENDING"
    completedAt: Optional[datetime] = None


class LeadDoc(BaseDoc):
    """Customer lead captured from the landing pages."""

    name: str
    phone: str
    email: Optional[str] = None
    content: Optional[str] = None
    source: str = "QUOTE_FORM"
    status: str = "NEW"
    mergedIntoId: Optional[str] = None
    hasRelatedLeads: bool = False


class NotificationDoc(BaseDoc):
    """In-app notification for a user."""

    userId: str
    type: str
    title: str
    content: str
    isRead: bool = False
    data: Dict[str, Any] = Field(default_factory=dict)


class FeeTransactionDoc(BaseDoc):
    """Marketplace fee charged on a match."""

    type: str
    amount: int
    projectId: Optional[str] = None
    userId: Optional[str] = None
    status: str = "PENDING"


class RankingDoc(BaseDoc):
    """Contractor ranking snapshot."""

    contractorId: str
    totalScore: float = 0
    totalBids: int = 0
    selectedBids: int = 0
    rank: Optional[int] = None


class FurnitureProductBaseDoc(BaseDoc):
    """Furniture catalog product."""

    name: str
    categoryId: str
    materialId: Optional[str] = None
    description: Optional[str] = None
    isActive: bool = True
    order: int = 0


class FurnitureVariantDoc(BaseDoc):
    """Product variant, stored under furnitureProductBases/{productId}/variants."""

    productBaseId: str
    name: str
    pricePerUnit: int
    imageUrls: List[str] = Field(default_factory=list)
    isActive: bool = True


class FurnitureQuotationDoc(BaseDoc):
    """Furniture quotation generated for a lead."""

    leadId: str
    items: List[Dict[str, Any]] = Field(default_factory=list)
    totalPrice: int = 0


class ConversationDoc(BaseDoc):
    """Chat conversation between marketplace parties."""

    projectId: Optional[str] = None
    participantIds: List[str] = Field(default_factory=list)
    lastMessageAt: Optional[datetime] = None
    isClosed: bool = False


class MessageDoc(BaseDoc):
    """Chat message, stored under conversations/{conversationId}/messages."""

    senderId: str
    content: str
    type: str = "TEXT"
    readBy: List[str] = Field(default_factory=list)


class ParticipantDoc(BaseDoc):
    """Conversation participant, stored under conversations/{conversationId}/participants."""

    userId: str
    lastReadAt: Optional[datetime] = None
    isActive: bool = True


class BlogPostDoc(BaseDoc):
    """Blog post."""

    title: str
    slug: str
    excerpt: Optional[str] = None
    status: str = "DRAFT"
    tags: List[str] = Field(default_factory=list)
    publishedAt: Optional[datetime] = None


class BlogCommentDoc(BaseDoc):
    """Blog comment, stored under blogPosts/{postId}/comments."""

    postId: str
    name: str
    content: str
    status: str = "PENDING"
