"""Marketplace services package."""

from .lead_service import LeadService
from .registry import MarketplaceServices, build_services

__all__ = [
    "LeadService",
    "MarketplaceServices",
    "build_services",
]
