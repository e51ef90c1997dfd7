"""Firestore client handle shared by every collection service."""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import firebase_admin
from firebase_admin import firestore
from google.auth.credentials import AnonymousCredentials
from google.cloud import firestore as gcloud_firestore

from marketdb.config.env_loader import get_emulator_env
from marketdb.config.settings import StoreSettings
from marketdb.util.logger import get_logger


class Db:
    """Database client handle.

    One instance is built by the composition root at application start and
    passed to every service. There is no module-level client: the lifecycle
    of the handle belongs to whoever constructed it.
    """

    def __init__(self, settings: Optional[StoreSettings] = None, client: Any = None):
        """Initialize the handle.

        Args:
            settings: Store settings; read from the environment when omitted
            client: Pre-built Firestore client (tests inject a mock here)
        """
        self.settings = settings or StoreSettings.from_environment()
        self.logger = get_logger(__name__)

        if client is not None:
            self.firestore = client
        else:
            self._init_firestore()

    def _init_firestore(self):
        """Initialize the Firebase app (once per process) and the Firestore client."""
        if self.settings.uses_emulator:
            # The emulator accepts unauthenticated calls
            os.environ.setdefault("FIRESTORE_EMULATOR_HOST", self.settings.emulator_host)
            self.firestore = gcloud_firestore.Client(
                project=self.settings.project_id, credentials=AnonymousCredentials()
            )
            self.logger.info(f"Firestore initialized against emulator {get_emulator_env()}")
            return

        if not firebase_admin._apps:
            options = {"projectId": self.settings.project_id} if self.settings.project_id else None
            firebase_admin.initialize_app(options=options)

        self.firestore = firestore.client()
        self.logger.info(f"Firestore initialized for project {self.settings.project_id}")

    # References
    def collection(self, path: str):
        return self.firestore.collection(path)

    def collection_group(self, name: str):
        return self.firestore.collection_group(name)

    # Write primitives
    def batch(self):
        return self.firestore.batch()

    def transaction(self, max_attempts: int = 1):
        """Open a transaction.

        max_attempts defaults to 1: conflict retries are the caller's business.
        """
        return self.firestore.transaction(max_attempts=max_attempts)

    def get_all(self, refs: Iterable[Any], timeout: Optional[float] = None, transaction: Any = None) -> List[Any]:
        """Fetch several document snapshots in one round trip."""
        kwargs = self.timeout_kwargs(timeout)
        if transaction is not None:
            kwargs["transaction"] = transaction
        return list(self.firestore.get_all(list(refs), **kwargs))

    def timeout_kwargs(self, timeout: Optional[float] = None) -> Dict[str, float]:
        """Keyword arguments carrying the deadline of a store call.

        An explicit timeout wins over the configured default; with neither,
        the transport default applies.
        """
        effective = timeout if timeout is not None else self.settings.default_timeout
        return {"timeout": effective} if effective is not None else {}

    def close(self):
        """Release the underlying client channel."""
        close = getattr(self.firestore, "close", None)
        if callable(close):
            close()
        self.logger.info("Firestore client closed")

    # Environment
    def is_production(self) -> bool:
        return self.settings.environment == "production"

    def is_development(self) -> bool:
        return self.settings.environment == "development"

    @property
    def batch_limit(self) -> int:
        return self.settings.batch_limit

    # Timestamp functions
    @staticmethod
    def timestamp_now() -> datetime:
        return datetime.now(timezone.utc)
