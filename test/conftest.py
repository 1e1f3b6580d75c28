from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import config
from database.connection import Database
from storage.file_store import LocalFileStore


JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
MP4_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64


@pytest.fixture()
def database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Database:
    db = Database(f"sqlite:///{tmp_path / 'portal.db'}")
    db.create_tables()
    monkeypatch.setattr(config, "db", db)
    monkeypatch.setattr(config, "BCRYPT_ROUNDS", 4)
    yield db
    db.dispose()


@pytest.fixture()
def file_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> LocalFileStore:
    store = LocalFileStore(tmp_path / "uploads")
    monkeypatch.setattr(config, "file_store", store)
    return store


@pytest.fixture()
def session(database: Database):
    with database.get_session() as db_session:
        yield db_session


@pytest.fixture()
def client(database: Database, file_store: LocalFileStore, monkeypatch: pytest.MonkeyPatch):
    pytest.importorskip("httpx")
    from fastapi.testclient import TestClient
    from app import create_app

    monkeypatch.setattr(config, "AUTO_CREATE_TABLES", False)
    monkeypatch.setattr(config, "RATE_LIMIT_PER_MINUTE", 10_000)
    monkeypatch.setattr(config, "RATE_LIMIT_PER_HOUR", 100_000)
    with TestClient(create_app()) as test_client:
        yield test_client


def register(client, username: str, password: str = "secret1", **extra) -> Dict:
    response = client.post("/api/register", json={"username": username, "password": password, **extra})
    assert response.status_code == 201, response.text
    return response.json()["user"]


def login(client, username: str, password: str = "secret1") -> str:
    response = client.post("/api/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]


def auth_header(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def admin_token(client) -> str:
    return login(client, config.ADMIN_USERNAME, config.ADMIN_PASSWORD)


def upload(
    client,
    token: str,
    files: Iterable[Tuple[str, bytes, str]],
    event_name: str = "Sports Day",
    remarks: Optional[str] = None,
    tags: Optional[str] = None,
):
    data = {"eventName": event_name}
    if remarks is not None:
        data["remarks"] = remarks
    if tags is not None:
        data["tags"] = tags
    return client.post(
        "/api/upload",
        files=[("files", item) for item in files],
        data=data,
        headers=auth_header(token),
    )
