"""
Shared test fixtures.

Settings are pointed at a temp directory before any project module is
imported, so module-level stores never touch a real database.
"""

import os
import sys
import tempfile
from pathlib import Path

# Add repo root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

_tmp = tempfile.mkdtemp(prefix="flying411-tests-")
os.environ["DB_PATH"] = os.path.join(_tmp, "test.sqlite3")
os.environ["UPLOAD_DIR"] = os.path.join(_tmp, "uploads")
os.environ["OUTPUT_DIR"] = os.path.join(_tmp, "output")
os.environ.pop("OPENAI_API_KEY", None)

import pytest
from typing import List

from common.models import Part
from common.session_store import SessionStore
from common.catalog_store import CatalogStore


# ===================
# CATALOG DATA
# ===================

CATALOG_PARTS: List[Part] = [
    Part(id="part-1", part_number="ABC-123", alternates=["ABC123-ALT"], title="Hydraulic Pump",
         description="Main gear hydraulic pump", category="Parts", manufacturer="Parker"),
    Part(id="part-2", part_number="65-4321-01", title="Starter Generator",
         category="Parts", manufacturer="Safran"),
    Part(id="part-3", part_number="PT6A-114A", title="PT6A Engine", category="Engines",
         manufacturer="Pratt & Whitney", model="PT6A-114A"),
    Part(id="part-4", part_number="00789XYZ", title="Fuel Valve", manufacturer="Honeywell"),
]


@pytest.fixture
def catalog_parts() -> List[Part]:
    return [p.model_copy(deep=True) for p in CATALOG_PARTS]


@pytest.fixture
def session_store(tmp_path) -> SessionStore:
    return SessionStore(tmp_path / "sessions.sqlite3")


@pytest.fixture
def catalog(tmp_path, catalog_parts) -> CatalogStore:
    store = CatalogStore(tmp_path / "catalog.sqlite3")
    store.upsert_parts(catalog_parts)
    return store


@pytest.fixture
def app_client(monkeypatch, session_store, catalog):
    """FastAPI TestClient with fresh stores per test."""
    from fastapi.testclient import TestClient
    import main
    from controllers import upload_controller, sync_controller

    monkeypatch.setattr(upload_controller, "store", session_store)
    monkeypatch.setattr(upload_controller, "catalog", catalog)
    monkeypatch.setattr(sync_controller, "_service", None)
    with TestClient(main.app) as client:
        yield client


@pytest.fixture
def csv_bytes():
    def build(rows: List[List[str]]) -> bytes:
        return ("\n".join(",".join(r) for r in rows) + "\n").encode("utf-8")
    return build
