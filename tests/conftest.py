"""Pytest configuration and fixtures."""

import os
from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from marketdb.apis.Db import Db
from marketdb.config.settings import StoreSettings

# Load environment variables from .env.local first, then .env
if os.path.exists('.env.local'):
    load_dotenv('.env.local')
else:
    load_dotenv('.env')

# Import utilities and fixtures
from tests.util.firebase_emulator import firebase_emulator  # noqa: F401,E402


@pytest.fixture
def mock_firestore():
    """Mocked Firestore client."""
    return MagicMock()


@pytest.fixture
def settings():
    return StoreSettings(project_id="test-project")


@pytest.fixture
def db(mock_firestore, settings):
    """Db handle over the mocked client."""
    return Db(settings=settings, client=mock_firestore)


@pytest.fixture
def test_user_id():
    """Get a test user ID."""
    return "test-user-123"
