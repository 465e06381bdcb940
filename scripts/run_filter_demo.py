"""
Standalone Filter Demo Launcher
Generate a file-system dataset and open it in the filterable grid
"""

if __name__ == '__main__':
    import argparse
    import sys
    from pathlib import Path

    # Add parent directory to path so we can import filtergrid
    sys.path.insert(0, str(Path(__file__).parent.parent))

    from PyQt6.QtWidgets import QApplication
    from filtergrid.ui.main_window import FilterDemoWindow
    from filtergrid.utils.config import load_config
    from filtergrid.utils.logger import setup_logging

    parser = argparse.ArgumentParser(description="FilterGrid demo")
    parser.add_argument("--rows", type=int, default=None, help="Rows to generate (default from config)")
    parser.add_argument("--distinct", type=int, default=None, help="Distinct paths/names per column")
    args = parser.parse_args()

    config = load_config()
    if args.rows is not None:
        config.default_row_count = args.rows
    if args.distinct is not None:
        config.distinct_values_per_column = args.distinct

    # Setup logging
    setup_logging(config.log_dir, config.log_level, config.core_log_level)

    # Create Qt application
    app = QApplication(sys.argv)

    window = FilterDemoWindow(config)
    window.setWindowTitle("FilterGrid Demo")
    window.show()
    window.generate_and_load()

    sys.exit(app.exec())
