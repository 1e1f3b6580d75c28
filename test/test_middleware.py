from __future__ import annotations

import pytest

import config
from middleware.auth_middleware import is_public_path


@pytest.mark.parametrize(
    "path, public",
    [
        ("/", True),
        ("/health", True),
        ("/api/login", True),
        ("/uploads/123-456.jpg", True),
        ("/api/media", False),
        ("/api/admin/schools", False),
    ],
)
def test_public_paths(path: str, public: bool) -> None:
    assert is_public_path(path) is public


def test_rate_limit_answers_429(database, file_store, monkeypatch: pytest.MonkeyPatch) -> None:
    pytest.importorskip("httpx")
    from fastapi.testclient import TestClient
    from app import create_app

    monkeypatch.setattr(config, "AUTO_CREATE_TABLES", False)
    monkeypatch.setattr(config, "RATE_LIMIT_PER_MINUTE", 2)
    monkeypatch.setattr(config, "RATE_LIMIT_PER_HOUR", 100)

    with TestClient(create_app()) as client:
        assert client.get("/").status_code == 200
        assert client.get("/").status_code == 200
        limited = client.get("/")

    assert limited.status_code == 429
    assert limited.json()["detail"].startswith("Rate limit exceeded")
    assert int(limited.headers["Retry-After"]) >= 1
