"""
Integration test fixtures for genviz.

Provides fixtures for:
- A test client bound to a clean viewer registry
- Sample Info and a batch of traces
"""

import sys
from collections.abc import Generator
from pathlib import Path
from typing import Any, Dict

import numpy as np
import pytest
from fastapi.testclient import TestClient

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from api.viz_manager import viz_registry
from main import app


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client with an empty viewer registry."""
    viz_registry.clear()
    with TestClient(app) as c:
        yield c
    viz_registry.clear()


@pytest.fixture
def regression_info() -> Dict[str, Any]:
    """Ten evenly spaced x values."""
    return {"x": np.linspace(-5, 5, 10).tolist()}


@pytest.fixture
def regression_traces(regression_info) -> Dict[str, Dict[str, Any]]:
    """Seven noisy line traces over ``regression_info``."""
    rng = np.random.default_rng(0)
    xs = np.asarray(regression_info["x"])
    traces = {}
    for i in range(7):
        slope, intercept = rng.normal(size=2)
        outliers = rng.random(xs.size) < 0.2
        ys = slope * xs + intercept + rng.normal(scale=0.3, size=xs.size)
        ys[outliers] += rng.normal(scale=5.0, size=int(outliers.sum()))
        traces[str(i)] = {
            "y": ys.tolist(),
            "outliers": outliers.tolist(),
            "slope": float(slope),
            "intercept": float(intercept),
            "inlier_std": 0.3,
        }
    return traces
