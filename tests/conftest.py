from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from xfunnel.core.config import settings

# Override settings for tests
settings.app_env = "development"
settings.report_timezone = "UTC"
settings.default_granularity = "batch"
settings.top_competitors = 5

from xfunnel.core.rate_limit import limiter  # noqa: E402
from xfunnel.db import postgres  # noqa: E402
from xfunnel.main import app  # noqa: E402


class _NoDbSession:
    """Stands in for AsyncSession; tests patch the record fetcher instead."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, *args, **kwargs):
        raise AssertionError("tests must not reach the database")


@pytest.fixture(autouse=True)
def no_database(monkeypatch):
    monkeypatch.setattr(postgres, "async_session_factory", _NoDbSession)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
