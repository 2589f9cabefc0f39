"""E2E test configuration and shared fixtures."""

import os
from typing import Generator

import pytest
import requests


@pytest.fixture(scope="session")
def base_url() -> str:
    """Base URL for the running service."""
    return os.environ.get("CICD_LAB_BASE_URL", "http://localhost:3000")


@pytest.fixture(scope="session")
def api_client(base_url: str) -> Generator[requests.Session, None, None]:
    session = requests.Session()
    session.base_url = base_url  # type: ignore[attr-defined]
    yield session
    session.close()
