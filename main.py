"""
Composition root of the store access layer.
Builds the single Db handle and the marketplace services on top of it.
"""

from typing import Optional

from marketdb.apis.Db import Db
from marketdb.config.env_loader import load_environment
from marketdb.config.settings import StoreSettings
from marketdb.services.registry import MarketplaceServices, build_services
from marketdb.util.logger import get_logger

logger = get_logger(__name__)


def create_services(settings: Optional[StoreSettings] = None) -> MarketplaceServices:
    """Load the environment, open the Firestore handle and wire the services."""
    load_environment()
    db = Db(settings or StoreSettings.from_environment())
    logger.info(f"Store handle ready (environment: {db.settings.environment})")
    return build_services(db)


if __name__ == "__main__":
    services = create_services()
    try:
        logger.info(f"Users: {services.users.count()}")
        logger.info(f"Projects: {services.projects.count()}")
        logger.info(f"Leads: {services.leads.count()}")
    finally:
        services.db.close()
