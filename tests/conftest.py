"""Shared pytest fixtures for wp-post-sync tests."""

import pytest
from dotenv import load_dotenv

from wp_post_sync.config import Config

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live WordPress site",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live WordPress site"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def mock_config():
    """Create a Config instance pointing at a fake site."""
    return Config(
        base_url="https://blog.example.com/wp-json/wp/v2",
        bearer_token="test-token",
        cache_path="wp-cache",
        sync_limit=20,
        insecure=False,
    )


@pytest.fixture
def mock_json_response():
    """Factory fixture for creating REST response mocks."""

    def _create_response(payload, status_code=200):
        import json
        from unittest.mock import Mock

        mock_response = Mock()
        mock_response.status_code = status_code
        mock_response.ok = 200 <= status_code < 300
        if isinstance(payload, (bytes, str)):
            raw = payload.encode() if isinstance(payload, str) else payload
        else:
            raw = json.dumps(payload).encode()
        mock_response.content = raw
        mock_response.text = raw.decode()
        mock_response.json = Mock(side_effect=lambda: json.loads(raw))
        return mock_response

    return _create_response
