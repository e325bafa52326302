"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from cloudsamples.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def tracker(storage):
    """Create Tracker with storage."""
    from cloudsamples.tracker import Tracker

    return Tracker(storage)


@pytest.fixture
def environment():
    """Environment isolated from os.environ."""
    from cloudsamples.environment import Environment

    return Environment(defaults={"spring.application.name": "test-app"}, environ={})


@pytest.fixture
def broker():
    """Private broker so tests never share nodes."""
    from cloudsamples.bus import BusBroker

    return BusBroker()


@pytest.fixture
def service_registry():
    """Private service registry."""
    from cloudsamples.gateway import ServiceRegistry

    return ServiceRegistry()


@pytest.fixture
def make_application(broker, service_registry):
    """Factory for Applications on in-memory storage and isolated environment."""
    from cloudsamples.app import Application

    def factory(properties: dict | None = None, environ: dict | None = None):
        return Application(
            db_path=":memory:",
            properties=properties,
            environ=environ if environ is not None else {},
            broker=broker,
            service_registry=service_registry,
        )

    return factory


@pytest_asyncio.fixture
async def application(make_application):
    """Started Application."""
    app = make_application({"spring.application.name": "test-app", "server.port": 8080})
    await app.start()
    yield app
    await app.stop()
