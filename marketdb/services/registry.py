"""Composition of the marketplace collection services on one Db handle."""

from dataclasses import dataclass

from marketdb.apis.Db import Db
from marketdb.documents.CollectionService import CollectionService
from marketdb.documents.SubcollectionService import SubcollectionService
from marketdb.models.firestore_types import (
    BidDoc,
    BlogCommentDoc,
    BlogPostDoc,
    ConversationDoc,
    EscrowDoc,
    FeeTransactionDoc,
    FurnitureProductBaseDoc,
    FurnitureQuotationDoc,
    FurnitureVariantDoc,
    MessageDoc,
    MilestoneDoc,
    NotificationDoc,
    ParticipantDoc,
    ProjectDoc,
    RankingDoc,
    UserDoc,
)
from marketdb.services.lead_service import LeadService


@dataclass
class MarketplaceServices:
    db: Db
    users: CollectionService[UserDoc]
    projects: CollectionService[ProjectDoc]
    bids: SubcollectionService[BidDoc]
    escrows: CollectionService[EscrowDoc]
    milestones: SubcollectionService[MilestoneDoc]
    leads: LeadService
    notifications: CollectionService[NotificationDoc]
    fee_transactions: CollectionService[FeeTransactionDoc]
    rankings: CollectionService[RankingDoc]
    furniture_product_bases: CollectionService[FurnitureProductBaseDoc]
    furniture_variants: SubcollectionService[FurnitureVariantDoc]
    furniture_quotations: CollectionService[FurnitureQuotationDoc]
    conversations: CollectionService[ConversationDoc]
    messages: SubcollectionService[MessageDoc]
    participants: SubcollectionService[ParticipantDoc]
    blog_posts: CollectionService[BlogPostDoc]
    blog_comments: SubcollectionService[BlogCommentDoc]


def build_services(db: Db) -> MarketplaceServices:
    """Wire every marketplace collection to the given handle."""
    return MarketplaceServices(
        db=db,
        users=CollectionService(db, "users", UserDoc),
        projects=CollectionService(db, "projects", ProjectDoc),
        bids=SubcollectionService(db, "projects", "bids", BidDoc),
        escrows=CollectionService(db, "escrows", EscrowDoc),
        milestones=SubcollectionService(db, "escrows", "milestones", MilestoneDoc),
        leads=LeadService(db),
        notifications=CollectionService(db, "notifications", NotificationDoc),
        fee_transactions=CollectionService(db, "feeTransactions", FeeTransactionDoc),
        rankings=CollectionService(db, "rankings", RankingDoc),
        furniture_product_bases=CollectionService(db, "furnitureProductBases", FurnitureProductBaseDoc),
        furniture_variants=SubcollectionService(db, "furnitureProductBases", "variants", FurnitureVariantDoc),
        furniture_quotations=CollectionService(db, "furnitureQuotations", FurnitureQuotationDoc),
        conversations=CollectionService(db, "conversations", ConversationDoc),
        messages=SubcollectionService(db, "conversations", "messages", MessageDoc),
        participants=SubcollectionService(db, "conversations", "participants", ParticipantDoc),
        blog_posts=CollectionService(db, "blogPosts", BlogPostDoc),
        blog_comments=SubcollectionService(db, "blogPosts", "comments", BlogCommentDoc),
    )
