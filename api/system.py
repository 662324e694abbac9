"""
System API routes for genviz.

This module provides FastAPI routes for health and environment information.
"""

import platform
import sys
from typing import Dict

from fastapi import APIRouter

from .app_config import get_settings

router = APIRouter()


def _get_package_versions() -> Dict[str, str]:
    """Get versions of key packages."""
    packages = {}

    package_names = [
        "numpy",
        "pydantic",
        "fastapi",
        "uvicorn",
        "websockets",
    ]

    for name in package_names:
        try:
            module = __import__(name)
            version = getattr(module, "__version__", "unknown")
            packages[name] = version
        except ImportError:
            pass

    return packages


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "message": "genviz backend is running",
    }


@router.get("/system/info")
async def system_info():
    """Get system, environment and configuration information."""
    return {
        "python": {
            "version": sys.version,
            "platform": sys.platform,
        },
        "system": {
            "os": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
        },
        "packages": _get_package_versions(),
        "settings": get_settings().to_dict(),
    }
