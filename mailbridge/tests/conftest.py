"""
Pytest fixtures for mailbridge tests.
"""

import tempfile
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from mailbridge.config import config, state
from mailbridge.database import CredentialFields, now_ms, open_token_store
from mailbridge.graph import CollectionFetcher
from mailbridge.server import app

from helpers import API_KEY, GRAPH_BASE, USER_ID, FakeGraph, SleepRecorder


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d) / "tokens.db"


@pytest.fixture
def store(temp_db_path):
    """Create a test token store instance."""
    return open_token_store(temp_db_path)


@pytest.fixture
def graph():
    """Fake Graph API with base URL pointed at it."""
    original_base = config.GRAPH_BASE_URL
    config.GRAPH_BASE_URL = GRAPH_BASE
    yield FakeGraph()
    config.GRAPH_BASE_URL = original_base


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def http_client(graph):
    return httpx.AsyncClient(transport=httpx.MockTransport(graph))


@pytest.fixture
def fetcher(http_client, sleeps):
    return CollectionFetcher(http_client, sleep=sleeps)


@pytest.fixture
def client(store, http_client, fetcher):
    """Create a test client with isolated token store and fake Graph."""
    # Store original state
    original_tokens = state.tokens
    original_http_client = state.http_client
    original_fetcher = state.fetcher
    original_api_key = config.API_KEY
    original_client_id = config.CLIENT_ID
    original_strict = config.STRICT_USER_ID

    # Set up test state with fresh instances
    state.tokens = store
    state.http_client = http_client
    state.fetcher = fetcher
    config.API_KEY = API_KEY
    config.CLIENT_ID = "test-client-id"
    config.STRICT_USER_ID = True

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    # Restore original state
    state.tokens = original_tokens
    state.http_client = original_http_client
    state.fetcher = original_fetcher
    config.API_KEY = original_api_key
    config.CLIENT_ID = original_client_id
    config.STRICT_USER_ID = original_strict


@pytest.fixture
def signed_in(store):
    """Store a credential valid for the next hour under USER_ID."""
    store.put(USER_ID, CredentialFields(
        access_token="graph-access-token",
        expiry=now_ms() + 3600 * 1000,
        scopes="Mail.ReadWrite",
    ))
    return USER_ID
