"""
Logging setup: console output plus an optional best-effort diagnostic file.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class BestEffortFileHandler(logging.FileHandler):
    """Append-only file handler that is opened on first write and never raises.

    A missing directory or a full disk must not affect the request being logged.
    """

    def __init__(self, filename: str):
        super().__init__(filename, mode="a", encoding="utf-8", delay=True)

    def emit(self, record: logging.LogRecord) -> None:
        # FileHandler opens the stream outside its own error handling
        try:
            super().emit(record)
        except OSError:
            pass

    def handleError(self, record: logging.LogRecord) -> None:
        pass


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
    """Configure the root logger once; safe to call repeatedly."""
    root = logging.getLogger()
    if not any(getattr(h, "_extract_console", False) for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        console._extract_console = True
        root.addHandler(console)
    if log_file and not any(isinstance(h, BestEffortFileHandler) for h in root.handlers):
        file_handler = BestEffortFileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)
    root.setLevel(level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
