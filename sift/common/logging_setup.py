"""Logging setup for the server and scripts.

Library modules only create named loggers; handlers are installed here.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the ``sift`` logger tree"""
    root = logging.getLogger("sift")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(getattr(h, "_sift_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._sift_handler = True
        root.addHandler(handler)
