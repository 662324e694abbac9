"""
Configuration for the genviz backend and viewer.

Values are resolved from environment variables first, then from defaults:
- GENVIZ_HOST / GENVIZ_PORT: address the backend binds to
- GENVIZ_LOG_LEVEL: root logging level
- GENVIZ_SAVE_DIR: where exported snapshots are written
  (default: platform user data dir, e.g. ~/.local/share/genviz/snapshots)
- GENVIZ_SAVE_TIMEOUT: seconds to wait for a viewer's ``save`` reply
- GENVIZ_MAX_COLUMNS / GENVIZ_MAX_CELL_WIDTH / GENVIZ_LAYOUT_MARGIN: grid layout
"""

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs

APP_NAME = "genviz"
_ENV_PREFIX = "GENVIZ_"


def _env(name: str, default: Any, cast=str) -> Any:
    raw = os.environ.get(_ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {_ENV_PREFIX}{name}: {raw!r}") from e


def _default_save_dir() -> Path:
    return Path(platformdirs.user_data_dir(APP_NAME)) / "snapshots"


@dataclass(frozen=True)
class VizSettings:
    """Resolved settings."""
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    save_dir: Optional[Path] = None
    save_timeout: float = 10.0
    max_columns: int = 5
    max_cell_width: float = 500.0
    layout_margin: float = 100.0

    @classmethod
    def from_env(cls) -> "VizSettings":
        return cls(
            host=_env("HOST", cls.host),
            port=_env("PORT", cls.port, int),
            log_level=_env("LOG_LEVEL", cls.log_level).upper(),
            save_dir=_env("SAVE_DIR", None, Path) or _default_save_dir(),
            save_timeout=_env("SAVE_TIMEOUT", cls.save_timeout, float),
            max_columns=_env("MAX_COLUMNS", cls.max_columns, int),
            max_cell_width=_env("MAX_CELL_WIDTH", cls.max_cell_width, float),
            layout_margin=_env("LAYOUT_MARGIN", cls.layout_margin, float),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["save_dir"] = str(self.save_dir) if self.save_dir else None
        return data


_settings: Optional[VizSettings] = None


def get_settings() -> VizSettings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = VizSettings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next ``get_settings()`` re-reads the environment."""
    global _settings
    _settings = None
