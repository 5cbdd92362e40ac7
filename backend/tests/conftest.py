"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from archive.auth.schemas import Session
from archive.backends import build_backends
from archive.backends.duckdb_store import DuckDBDocumentStore
from archive.backends.local_blob import LocalBlobStore
from archive.config import AppConfig, StorageSettings, set_config
from archive.context import set_context
from archive.main import app


@pytest.fixture
def app_config(tmp_path):
    """Config with the DuckDB file and upload dir under a temp directory."""
    return AppConfig(
        storage=StorageSettings(
            db_path=str(tmp_path / "archive.duckdb"),
            upload_dir=str(tmp_path / "uploads"),
        ),
    )


@pytest.fixture
def store(tmp_path):
    """A fresh document store on a temp DuckDB file."""
    store = DuckDBDocumentStore(db_path=str(tmp_path / "docs.duckdb"))
    yield store
    store.close()


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(upload_dir=str(tmp_path / "blobs"), public_base_url="http://testserver")


@pytest.fixture
def backends(app_config):
    """Local identity + DuckDB documents + local blobs, as in the default config."""
    backends = build_backends(app_config)
    yield backends
    backends.close()


@pytest.fixture
def session():
    return Session(
        token="test-token",
        user_id="user-1",
        email="pat.lee@example.com",
        display_name="Pat Lee",
    )


@pytest.fixture
def api_client(app_config):
    """Provide a started TestClient for the main FastAPI app.

    Named api_client (not client) so test modules can define their own
    client fixtures.
    """
    set_config(app_config)
    with TestClient(app) as client:
        yield client
    set_config(None)
    set_context(None)
