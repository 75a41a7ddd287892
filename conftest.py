"""Pytest configuration and shared fixtures."""

import os

import pytest
from dotenv import load_dotenv

from db.client import close_db, init_db

load_dotenv()


# =============================================================================
# SAFETY CHECK: never run DB tests against a remote database
# =============================================================================

ALLOWED_DB_HOSTS = {"localhost", "127.0.0.1", "host.docker.internal", "db", "postgres"}


def pytest_configure(config):
    """Register custom markers and check database safety."""
    config.addinivalue_line("markers", "no_db: mark test to skip database setup")
    config.addinivalue_line("markers", "online: mark test as online test (hits live DNS, RDAP or search engines)")
    config.addinivalue_line("markers", "integration: mark test as integration test (needs Redis, SQS or Postgres)")

    db_host = os.getenv("CONTACTS_DB_HOST", "localhost")
    if os.getenv("DATABASE_URL") is None and db_host not in ALLOWED_DB_HOSTS:
        pytest.exit(
            f"\n\n"
            f"{'=' * 60}\n"
            f"SAFETY CHECK FAILED: Cannot run tests against a remote DB!\n"
            f"{'=' * 60}\n"
            f"\n"
            f"Current CONTACTS_DB_HOST: {db_host}\n"
            f"Allowed hosts: {', '.join(sorted(ALLOWED_DB_HOSTS))}\n"
            f"{'=' * 60}\n",
            returncode=1,
        )


def pytest_collection_modifyitems(config, items):
    """Skip online tests unless RUN_ONLINE_TESTS=1."""
    if os.getenv("RUN_ONLINE_TESTS") == "1":
        return
    skip_online = pytest.mark.skip(reason="set RUN_ONLINE_TESTS=1 to hit live services")
    for item in items:
        if "online" in item.keywords:
            item.add_marker(skip_online)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="function", autouse=True)
async def setup_db(request):
    """Initialize the connection pool for tests that need it.

    Tests marked with @pytest.mark.no_db skip database initialization.
    """
    if "no_db" in [marker.name for marker in request.node.iter_markers()]:
        yield
        return

    await init_db()
    yield
    await close_db()
