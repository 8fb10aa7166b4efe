"""
Logging configuration for the storefront API.

Call ``setup_logging`` once at startup; modules keep using
``logging.getLogger(__name__)``.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    root = logging.getLogger("app")
    root.setLevel(level.upper())

    if not root.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        root.addHandler(console_handler)

    # Prevent propagation to root logger (avoid duplicate logs)
    root.propagate = False
    return root
