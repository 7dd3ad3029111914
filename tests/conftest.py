"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from edgekv.client import Client
from edgekv.config import ClientConfig
from edgekv.fake import FakeKVService, FakeStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Directory holding recorded cassettes."""
    return FIXTURES_DIR


@pytest.fixture
def service() -> FakeKVService:
    """Create an in-memory store service."""
    return FakeKVService(api_key="test-api-key")


@pytest.fixture
def client(service: FakeKVService):
    """Create a client wired to the fake service."""
    config = ClientConfig(api_key="test-api-key", base_url="https://kv.test")
    with Client(config, transport=service.transport()) as client:
        yield client


@pytest.fixture
def store(service: FakeKVService) -> FakeStore:
    """A store pre-seeded with seven keys."""
    return service.create_store(
        "seeded-store",
        keys={
            "apple": b"apple0",
            "banana": b"banana1",
            "carrot": b"carrot2",
            "dragonfruit": b"dragonfruit3",
            "eggplant": b"eggplant4",
            "batch-1": b"VALUE",
            "batch-2": b"VALUE",
        },
    )


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary for testing."""
    return {
        "api_key": "test-api-key",
        "base_url": "https://kv.test",
        "timeout_seconds": 5,
    }
