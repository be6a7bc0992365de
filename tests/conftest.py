# tests/conftest.py
import pytest
from httpx import AsyncClient, ASGITransport
from asgi_lifespan import LifespanManager

from tutormatch.deps import get_repo
from tutormatch.main import app
from tutormatch.repos.inmemory import InMemoryRepo
from tutormatch.services.tuning import DEFAULTS

@pytest.fixture(scope="session")
def anyio_backend():
    # keep AnyIO on asyncio for the whole test session
    return "asyncio"

@pytest.fixture
def weights():
    return dict(DEFAULTS)

@pytest.fixture
def repo():
    return InMemoryRepo()

@pytest.fixture
async def test_client(repo):
    app.dependency_overrides[get_repo] = lambda: repo
    try:
        async with LifespanManager(app):
            transport = ASGITransport(app=app, raise_app_exceptions=True)
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                yield ac
    finally:
        app.dependency_overrides.pop(get_repo, None)

def student(**kw):
    doc = {
        "full_name": "Student", "email": None, "phone": None, "city": "Haifa",
        "native_language": "Russian", "gender": None, "special_requests": None,
        "latitude": None, "longitude": None, "is_matched": False,
    }
    doc.update(kw)
    return doc

def volunteer(**kw):
    doc = {
        "full_name": "Volunteer", "email": None, "phone": None, "city": "Haifa",
        "native_language": "Russian", "gender": None, "capacity": 1,
        "current_matches": 0, "is_active": True, "scholarship_active": None,
        "latitude": None, "longitude": None,
    }
    doc.update(kw)
    return doc
