"""
API package for the genviz FastAPI backend.

This package provides:
- Viewer registry and server-side trace state (viz_manager.py)
- REST routes that drive viewers (viewers.py)
- Snapshot persistence (snapshots.py)
- System health (system.py)
- Configuration (app_config.py)
"""
