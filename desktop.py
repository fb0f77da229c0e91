"""Entry point: PySide6 desktop client."""

import faulthandler
import logging
import sys
import traceback

# Print native crash tracebacks (SIGSEGV / SIGABRT)
faulthandler.enable()

from cosaif.bootstrap import setup_logging, bootstrap, shutdown

setup_logging()

logger = logging.getLogger(__name__)

# Exceptions raised in signal slots propagate into C++ and terminate the
# process; log them instead.


def _gui_excepthook(exc_type, exc_value, exc_tb):
    """Log unhandled exceptions instead of crashing the app."""
    logger.error(
        "Unhandled exception:\n%s",
        "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
    )


sys.excepthook = _gui_excepthook


def main():
    """Build the window, bootstrap the incident pipeline, run the event loop."""
    from PySide6.QtWidgets import QApplication

    app = QApplication(sys.argv)
    app.setApplicationName("Cosaif")

    from cosaif.ui.main_window import MainWindow

    window = MainWindow()
    services = bootstrap(navigator=window.navigator, alerts=window.alerts)
    window.attach(services)

    app.aboutToQuit.connect(shutdown)

    window.show()
    window.start()

    logger.info("Desktop client launched")
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
