import pytest
from fastapi.testclient import TestClient

from config import Settings
from library import Library


class FakeCoverService:
    """Stands in for CoverService so tests never reach Open Library."""

    def __init__(self, covers=None):
        self.covers = covers or {}
        self.cache = None
        self.requested = []

    async def fetch_cover_url(self, title):
        self.requested.append(title)
        return self.covers.get(title)

    async def fetch_cover_urls(self, titles):
        return [await self.fetch_cover_url(title) for title in titles]


@pytest.fixture
def db_file(tmp_path, request):
    # A unique database file per test
    return str(tmp_path / f"test_{request.node.name}.db")


@pytest.fixture
def lib(db_file):
    lib = Library.from_file(db_file)
    yield lib
    lib.close()


@pytest.fixture
def app_settings(db_file):
    return Settings(database_file=db_file)


@pytest.fixture
def fake_covers():
    return FakeCoverService()


@pytest.fixture
def client(app_settings, fake_covers):
    from api import create_app, get_cover_service

    app = create_app(app_settings)
    app.dependency_overrides[get_cover_service] = lambda: fake_covers
    # Entering the client runs the lifespan (pool, schema, HTTP client)
    with TestClient(app) as test_client:
        yield test_client
