import sys
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

# Ensure the project root is importable so `app.*` modules resolve
_PROJECT_DIR = Path(__file__).resolve().parents[1]
if str(_PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(_PROJECT_DIR))

from app.main import create_app  # noqa: E402


@pytest.fixture()
def settings_override(monkeypatch):
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("POSTGRES_HOST", "localhost")
    monkeypatch.setenv("DB_ECHO", "false")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    yield


@pytest.fixture()
def app(settings_override) -> FastAPI:
    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
async def async_client(app: FastAPI):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


# Lightweight fallback for pytest-mock's 'mocker' fixture when the plugin isn't loaded
@pytest.fixture()
def mocker():
    from unittest.mock import (
        AsyncMock,
        create_autospec as _create_autospec,
        MagicMock,
        Mock,
        patch,
    )

    class _SimpleMocker:
        def __init__(self):
            self._patchers: list = []
            # expose common unittest.mock helpers as attributes
            self.AsyncMock = AsyncMock
            self.MagicMock = MagicMock
            self.Mock = Mock
            self.create_autospec = _create_autospec

        def patch(self, target: str, *args, **kwargs):
            p = patch(target, *args, **kwargs)
            mocked = p.start()
            self._patchers.append(p)
            return mocked

    m = _SimpleMocker()
    try:
        yield m
    finally:
        for p in reversed(m._patchers):
            p.stop()
