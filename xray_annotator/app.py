"""
XRay Annotator - Geometric annotation and measurement on radiographs.

This is the main entry point for the application.
Run with: python -m xray_annotator.app [IMAGE]
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from PySide6.QtWidgets import QApplication

from xray_annotator import __version__
from xray_annotator.services.config_service import ConfigService
from xray_annotator.services.logging_service import get_logger, setup_logging
from xray_annotator.ui.main_window import MainWindow


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="xray-annotator", description=__doc__.strip().splitlines()[0])
    parser.add_argument("image", nargs="?", type=Path, help="Image to open on startup")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.json")
    parser.add_argument("--no-log-file", action="store_true", help="Log to the console only")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the XRay Annotator.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    args = parse_args(sys.argv[1:] if argv is None else argv)

    # Initialize basic logging first to catch early errors
    setup_logging(log_to_file=not args.no_log_file)
    logger = get_logger(__name__)

    try:
        logger.info("Starting XRay Annotator...")

        config = ConfigService(args.config)
        setup_logging(config.log_level)

        app = QApplication(sys.argv[:1])
        app.setApplicationName("XRay Annotator")
        app.setApplicationVersion(__version__)

        window = MainWindow(config)
        window.show()

        if args.image is not None:
            window.open_image(args.image)

        logger.info("Initialization complete. Entering event loop...")
        exit_code = app.exec()

        logger.info(f"XRay Annotator exiting with code {exit_code}")
        return exit_code

    except Exception as e:
        logger.critical(f"Fatal error during startup: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
