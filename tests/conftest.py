"""
Pytest configuration and fixtures for the LMS admin sync tests.
"""

from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest
import structlog

from lms_sync.core.api_client import WordPressClient
from lms_sync.core.config import ApiSettings
from lms_sync.services.base import ResourceService
from lms_sync.services.courses import CourseService
from tests.factories import list_result


TEST_API_URL = "http://test-wp.local/wp-json"


@pytest.fixture(autouse=True)
def reset_structlog():
    """Keep logging configuration from leaking between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def test_settings() -> ApiSettings:
    """Create test settings."""
    return ApiSettings(
        api_url=TEST_API_URL,
        nonce="test-nonce",
        environment="testing",
        log_level="DEBUG",
    )


@pytest.fixture
def mock_service():
    """Create a mock collection service without a duplicate operation."""
    service = AsyncMock(spec=ResourceService)
    service.get_all.return_value = list_result([])
    service.get_one.return_value = None
    service.delete.return_value = True
    return service


@pytest.fixture
def mock_duplicating_service():
    """Create a mock collection service with a server-side duplicate."""
    service = AsyncMock(spec=CourseService)
    service.duplicate = AsyncMock()
    service.get_all.return_value = list_result([])
    service.get_one.return_value = None
    return service


@pytest.fixture
def recorded_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def make_client(test_settings, recorded_requests) -> Callable[[Callable[[httpx.Request], httpx.Response]], WordPressClient]:
    """Create a WordPressClient whose requests are answered by ``handler``."""

    def factory(handler):
        def record(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return handler(request)

        return WordPressClient(test_settings, transport=httpx.MockTransport(record))

    return factory
