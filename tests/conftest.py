"""
Pytest configuration and fixtures for normaize-ingest tests

This module provides shared fixtures for unit and integration tests.
"""
import io
import logging
import os
import random
from datetime import datetime, timezone

import pytest

from normaize.chaos import ChaosEngine
from normaize.core.config import AppSettings, ChaosSettings, build_settings
from normaize.core.models import UploadRequest
from normaize.observability.telemetry import StructuredLogger
from normaize.processing import FileProcessingPipeline, FileUploadService
from normaize.storage import InMemoryStorage, StorageAdapter


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't touch storage or the event loop"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests wiring storage, parsers and the pipeline"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# SETTINGS FIXTURES
# =======================

@pytest.fixture(scope="function")
def settings() -> AppSettings:
    """
    Settings with small caps so limits are easy to hit in tests

    Returns:
        AppSettings with max 50 rows, 10 columns, 5 preview rows
    """
    return build_settings({
        "file_upload": {"max_file_size": 64 * 1024},
        "data_processing": {
            "max_rows_per_dataset": 50,
            "max_columns_per_dataset": 10,
            "max_preview_rows": 5,
        },
    })


@pytest.fixture(scope="function")
def chaos_settings() -> ChaosSettings:
    """Chaos enabled in an allowed environment with a generous rate limit"""
    return ChaosSettings(
        enabled=True,
        environment="development",
        max_triggers_per_minute=100,
        enable_logging=True,
    )


@pytest.fixture(scope="function")
def fixed_clock():
    """Clock frozen at Wednesday 2024-01-10 12:00 UTC"""
    now = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
    return lambda: now


@pytest.fixture(scope="function")
def chaos_engine(chaos_settings, fixed_clock) -> ChaosEngine:
    """Deterministic chaos engine (seeded RNG, frozen clock)"""
    return ChaosEngine(chaos_settings, rng=random.Random(42), clock=fixed_clock)


# =======================
# TELEMETRY FIXTURES
# =======================

@pytest.fixture(scope="function")
def telemetry() -> StructuredLogger:
    """
    StructuredLogger writing to a propagating logger so caplog sees it

    Returns:
        StructuredLogger instance
    """
    logger = logging.getLogger("normaize.test.telemetry")
    logger.propagate = True
    return StructuredLogger(logger)


# =======================
# STORAGE / PIPELINE FIXTURES
# =======================

@pytest.fixture(scope="function")
def storage() -> InMemoryStorage:
    """Empty in-memory storage"""
    return InMemoryStorage()


@pytest.fixture(scope="function")
def pipeline(settings, storage, telemetry) -> FileProcessingPipeline:
    """Pipeline over in-memory storage with chaos disabled"""
    return FileProcessingPipeline(settings, storage, telemetry=telemetry)


@pytest.fixture(scope="function")
def upload_service(settings, storage, telemetry) -> FileUploadService:
    """Upload service over in-memory storage with chaos disabled"""
    adapter = StorageAdapter(storage, telemetry=telemetry)
    pipeline = FileProcessingPipeline(settings, adapter, telemetry=telemetry)
    return FileUploadService(settings, adapter, pipeline, telemetry=telemetry)


@pytest.fixture(scope="function")
def make_request():
    """
    Factory for UploadRequest objects backed by BytesIO

    Returns:
        Callable(file_name, content, file_size=None) -> UploadRequest
    """
    def _make(file_name: str, content: bytes | str, file_size: int | None = None) -> UploadRequest:
        if isinstance(content, str):
            content = content.encode("utf-8")
        return UploadRequest(
            file_name=file_name,
            content_type="application/octet-stream",
            file_size=len(content) if file_size is None else file_size,
            stream=io.BytesIO(content),
        )

    return _make


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


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
