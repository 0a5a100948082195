"""
Pytest configuration and fixtures for logferry tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import gzip
import os
from datetime import datetime
from typing import Any, Generator

import pytest
from testcontainers.postgres import PostgresContainer

from logferry.core.config import Clients, PipelineConfig
from logferry.core.models import LoadRequest, SourceDescriptor
from logferry.messaging import MemoryQueue
from logferry.policy import CallablePolicy
from logferry.storage import MemoryObjectStore
from logferry.warehouse import MemoryWarehouse

TEST_BUCKET = "test-bucket"
CLOUDTRAIL_DATASET = "security_logs"
CLOUDTRAIL_TABLE = "cloudtrail"
CLOUDTRAIL_IDS = [
    "ac3cfd93-435d-41cc-bbd7-aad0340ec668",
    "18e67b09-94a3-4b5c-9b3a-cd549b3341fb",
    "dbb28938-5ed4-4774-8bb6-82ea916b21bb",
    "d4dacb9d-9822-4217-b88d-d334bde89755",
]


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# POLICY HELPERS
# =======================

def cloudtrail_rule(raw: Any) -> dict:
    """Schema policy turning one CloudTrail file into one log per event."""
    logs = []
    for event in raw.get("Records", []):
        event_time = datetime.fromisoformat(event["eventTime"].replace("Z", "+00:00"))
        logs.append({
            "id": event["eventID"],
            "timestamp": event_time.timestamp(),
            "data": event,
            "destination": {
                "dataset": CLOUDTRAIL_DATASET,
                "table": CLOUDTRAIL_TABLE,
                "partition": "day",
            },
            "schema": "cloudtrail",
        })
    return {"logs": logs}


def source_rule(event: dict) -> dict:
    """Source policy: every *.json / *.json.gz object is a CloudTrail log."""
    name = event["name"]
    if name.endswith(".json.gz"):
        return {"sources": [{"parser": "json", "schema": "cloudtrail", "compress": "gzip"}]}
    if name.endswith(".json"):
        return {"sources": [{"parser": "json", "schema": "cloudtrail", "compress": "none"}]}
    return {"sources": []}


# =======================
# FILE FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_data_dir() -> str:
    """
    Get path to test data fixtures directory

    Returns:
        Path to tests/fixtures directory
    """
    return os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture(scope="session")
def cloudtrail_raw(test_data_dir) -> bytes:
    """CloudTrail example object, uncompressed."""
    with open(os.path.join(test_data_dir, "cloudtrail_example.json"), "rb") as f:
        return f.read()


@pytest.fixture(scope="session")
def cloudtrail_gzip(cloudtrail_raw) -> bytes:
    """CloudTrail example object, gzip compressed."""
    return gzip.compress(cloudtrail_raw)


# =======================
# COLLABORATOR FIXTURES
# =======================

@pytest.fixture
def object_store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def warehouse() -> MemoryWarehouse:
    return MemoryWarehouse()


@pytest.fixture
def queue() -> MemoryQueue:
    return MemoryQueue()


@pytest.fixture
def policy() -> CallablePolicy:
    return CallablePolicy({
        "data.schema.cloudtrail": cloudtrail_rule,
        "data.source": source_rule,
    })


@pytest.fixture
def clients(object_store, policy, warehouse, queue) -> Clients:
    return Clients(object_store=object_store, policy=policy, warehouse=warehouse, queue=queue)


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig.from_mapping({
        "max_workers": 4,
        "audit": {"dataset": "test-dataset", "table": "test-table"},
        "object_store": {"backend": "memory"},
        "warehouse": {"backend": "memory"},
        "queue": {"backend": "memory"},
    })


@pytest.fixture
def cloudtrail_requests(object_store, cloudtrail_raw, cloudtrail_gzip) -> list[LoadRequest]:
    """Plain and gzip CloudTrail objects stored in the memory object store."""
    plain = object_store.put(TEST_BUCKET, "cloudtrail_example.json", cloudtrail_raw, "application/json")
    packed = object_store.put(TEST_BUCKET, "cloudtrail_example.json.gz", cloudtrail_gzip, "application/gzip")
    return [
        LoadRequest(object=plain, source=SourceDescriptor(schema="cloudtrail")),
        LoadRequest(object=packed, source=SourceDescriptor(schema="cloudtrail", compress="gzip")),
    ]


@pytest.fixture(scope="session")
def cloudtrail_ids() -> list[str]:
    """Event ids of the CloudTrail example, in file order."""
    return list(CLOUDTRAIL_IDS)


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_logferry",
        password="test_password",
        dbname="test_warehouse"
    ) as postgres:
        # Wait for container to be ready
        postgres.get_connection_url()
        yield postgres


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads config/test.env and sets environment variables

    Returns:
        Mapping of the variables defined in config/test.env
    """
    from dotenv import dotenv_values, load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if not os.path.exists(env_path):
        pytest.skip("config/test.env not found")

    load_dotenv(env_path, override=True)
    return dotenv_values(env_path)
