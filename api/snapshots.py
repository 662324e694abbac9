"""
Persistence of exported viewer snapshots.

A viewer answers ``saveHTML`` with its rendered markup plus inline styles.
The writer wraps that fragment in a standalone HTML document and stores it
under ``<save_dir>/<viz_id>/``.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from html import escape
from pathlib import Path
from typing import List, Optional

import aiofiles

from .app_config import get_settings
from .shared.logger import get_logger

logger = get_logger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")

_DOCUMENT = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
{content}
</body>
</html>
"""


def _safe_name(value: str) -> str:
    return _UNSAFE.sub("_", value).strip("._") or "viz"


def render_document(viz_id: str, content: str) -> str:
    """Wrap an exported fragment in a full HTML document."""
    return _DOCUMENT.format(title=escape(viz_id or "genviz"), content=content)


@dataclass
class SnapshotRecord:
    """A written snapshot."""
    viz_id: str
    client_id: str
    path: str
    size: int
    saved_at: str

    def to_dict(self):
        return {
            "viz_id": self.viz_id,
            "client_id": self.client_id,
            "path": self.path,
            "size": self.size,
            "saved_at": self.saved_at,
        }


class SnapshotWriter:
    """Writes snapshot documents to disk."""

    def __init__(self, save_dir: Optional[Path] = None):
        self._save_dir = Path(save_dir) if save_dir is not None else None

    @property
    def save_dir(self) -> Path:
        if self._save_dir is not None:
            return self._save_dir
        return get_settings().save_dir

    def viz_dir(self, viz_id: str) -> Path:
        return self.save_dir / _safe_name(viz_id)

    async def write(self, viz_id: str, client_id: str, content: str) -> SnapshotRecord:
        """Write one snapshot and return its record."""
        target_dir = self.viz_dir(viz_id)
        target_dir.mkdir(parents=True, exist_ok=True)

        now = datetime.now()
        path = target_dir / f"{now.strftime('%Y%m%d-%H%M%S-%f')}-{_safe_name(client_id)[:8]}.html"
        document = render_document(viz_id, content)

        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(document)

        logger.info("Saved snapshot of viewer %s to %s", viz_id, path)
        return SnapshotRecord(
            viz_id=viz_id,
            client_id=client_id,
            path=str(path),
            size=len(document.encode("utf-8")),
            saved_at=now.isoformat(),
        )

    def list(self, viz_id: str) -> List[str]:
        """Paths of stored snapshots for a viewer, oldest first."""
        target_dir = self.viz_dir(viz_id)
        if not target_dir.exists():
            return []
        return [str(p) for p in sorted(target_dir.glob("*.html"))]
