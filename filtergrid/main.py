#!/usr/bin/env python3
"""FilterGrid Data Viewer - Main entry point"""

import sys
import logging
from PyQt6.QtWidgets import QApplication
from filtergrid.ui.main_window import FilterDemoWindow
from filtergrid.utils.config import load_config
from filtergrid.utils.logger import setup_logging

logger = logging.getLogger(__name__)


def main():
    """Application entry point"""
    # Load configuration
    config = load_config()

    # Set up logging
    setup_logging(config.log_dir, config.log_level, config.core_log_level)
    logger.info("=" * 60)
    logger.info("FilterGrid Starting")
    logger.info("=" * 60)
    logger.info(f"Configuration loaded: {config.app_name} v{config.version}")

    # Create Qt application
    app = QApplication(sys.argv)
    app.setApplicationName(config.app_name)
    app.setOrganizationName(config.organization_name)

    logger.info("Qt application created")

    # Create and show the demo window
    try:
        window = FilterDemoWindow(config)
        window.show()
        window.generate_and_load()
        logger.info("Filter demo window displayed")
    except Exception as e:
        logger.error(f"Failed to create main window: {e}", exc_info=True)
        sys.exit(1)

    # Start event loop
    logger.info("Starting Qt event loop")
    exit_code = app.exec()
    logger.info(f"Application exiting with code: {exit_code}")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
