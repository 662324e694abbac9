"""
Root conftest.py for genviz tests.

This file contains shared fixtures and pytest configuration
that applies to all test modules.
"""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "websocket: mark test as involving WebSocket communication",
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running",
    )


def pytest_collection_modifyitems(config, items):
    """
    Automatically mark tests based on their location or name.

    - Tests in integration/ directory are marked with 'slow'
    - Tests with 'websocket' in name are marked with 'websocket'
    """
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.slow)

        if "websocket" in item.name.lower():
            item.add_marker(pytest.mark.websocket)


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point snapshot storage at a temporary directory."""
    from api.app_config import reset_settings

    monkeypatch.setenv("GENVIZ_SAVE_DIR", str(tmp_path / "snapshots"))
    reset_settings()
    yield tmp_path / "snapshots"
    reset_settings()


@pytest.fixture
def info():
    """Shared Info with three x values."""
    return {"x": [0, 1, 2]}


@pytest.fixture
def trace_a():
    """A trace matching the ``info`` fixture."""
    return {
        "y": [1, 2, 3],
        "outliers": [False, True, False],
        "slope": 1,
        "intercept": 0,
        "inlier_std": 0.5,
    }
