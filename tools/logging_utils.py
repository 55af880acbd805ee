"""Logging setup for Kondate.

Every module gets its logger through get_logger(__name__); the first call
applies config.LOGGING_CONFIG (console + <data dir>/logs/kondate.log).
Messages carry an emoji prefix: ✅ success, ⚠️ warning, ❌ error, 🔍 debug.
"""

import logging
import logging.config
import os
import threading

from config import LOGGING_CONFIG, DATA_DIR

_setup_lock = threading.Lock()
_configured = False


def setup_logging():
    """Apply LOGGING_CONFIG once; later calls are no-ops."""
    global _configured
    if _configured:
        return
    with _setup_lock:
        if _configured:
            return
        try:
            os.makedirs(str(DATA_DIR / "logs"), exist_ok=True)
            logging.config.dictConfig(LOGGING_CONFIG)
        except (OSError, ValueError) as e:
            print(f"Warning: Logging setup failed: {e}")
        _configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger for a module (use __name__), configuring logging on first use."""
    setup_logging()
    return logging.getLogger(name)
