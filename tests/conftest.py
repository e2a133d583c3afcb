# tests/conftest.py
import os
import sys
from pathlib import Path
from typing import Callable

import httpx
import pytest
import pytest_asyncio

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from app.actions import Action
from app.main import create_app
from tests.test_support.in_memory_broker import InMemoryBroker

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "buyer_app"
TEST_TOPIC = "test-topic"


@pytest.fixture(scope="session")
def load_fixture() -> Callable[[str], bytes]:
    """Returns raw fixture bytes exactly as stored on disk."""
    def _load(name: str) -> bytes:
        return (FIXTURES_DIR / name).read_bytes()
    return _load


@pytest.fixture(scope="session")
def valid_payloads(load_fixture) -> dict:
    """One schema-valid request document per action."""
    return {action: load_fixture(f"{action.value}_request.json") for action in Action}


@pytest.fixture(scope="session")
def invalid_payload(load_fixture) -> bytes:
    return load_fixture("invalid_request.json")


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker(topics=[TEST_TOPIC])


@pytest.fixture
def gateway_app(broker: InMemoryBroker):
    return create_app(publisher=broker, topic=TEST_TOPIC)


@pytest_asyncio.fixture
async def async_test_client(gateway_app):
    """httpx.AsyncClient bound to a gateway app that publishes to the in-memory broker."""
    transport = httpx.ASGITransport(app=gateway_app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
