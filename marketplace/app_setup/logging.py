"""
Configuration des logs applicatifs (stdout, un seul handler).
"""
import logging
import sys

from marketplace.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Bibliothèques trop bavardes au niveau INFO
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "stripe")

def setup_logging(level: str = LOG_LEVEL) -> None:
    """Installe le handler stdout sur le logger racine; idempotent."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(getattr(h, "_marketplace", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._marketplace = True
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
