from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from samples import build_minimal_png
from uploadguard.main import app


@pytest.fixture
def minimal_png() -> bytes:
    return build_minimal_png()


@pytest.fixture
def write_file(tmp_path):
    def _write(name: str, content: bytes):
        path = tmp_path / name
        path.write_bytes(content)
        return path
    return _write


@pytest.fixture
def fake_db(monkeypatch):
    db = MagicMock()
    db.blocked_uploads.insert_one = AsyncMock()
    monkeypatch.setattr("uploadguard.main.get_db", lambda: db)
    return db


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr("uploadguard.main.UPLOAD_DIR", path)
    return path


@pytest.fixture
def client(upload_dir, fake_db, monkeypatch):
    monkeypatch.setattr("uploadguard.main.ensure_blocked_upload_indexes", AsyncMock())
    monkeypatch.setattr("uploadguard.alerts.ALERT_WEBHOOK_URL", "")
    with TestClient(app) as test_client:
        yield test_client
