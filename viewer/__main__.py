"""
Run a headless viewer against a genviz backend.

    python -m viewer http://127.0.0.1:8000/my-viz --width 1200 --height 900
"""

import argparse
import asyncio

from api.app_config import get_settings
from api.shared.logger import get_logger, setup_logging

from .component import VizComponent
from .layout import Viewport
from .session import connect_viewer

logger = get_logger(__name__)


def main(argv=None) -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="genviz headless viewer")
    parser.add_argument("page_url", help="Viewer page URL, e.g. http://127.0.0.1:8000/my-viz")
    parser.add_argument("--width", type=float, default=1000, help="Viewport width in pixels")
    parser.add_argument("--height", type=float, default=800, help="Viewport height in pixels")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    component = VizComponent(
        viewport=Viewport(height=args.height, width=args.width),
        max_columns=settings.max_columns,
        max_cell_width=settings.max_cell_width,
        margin=settings.layout_margin,
    )
    try:
        asyncio.run(connect_viewer(args.page_url, component=component))
    except KeyboardInterrupt:
        logger.info("Viewer stopped")


if __name__ == "__main__":
    main()
