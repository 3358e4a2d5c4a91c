"""Structured logging for pydeflate."""

import json
import sys
import time
from typing import Dict, Optional, TextIO


LEVELS: Dict[str, int] = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


class Logger:
    """JSON-structured logger for observability."""

    def __init__(self, component: str = "compression", level: str = "INFO", stream: Optional[TextIO] = None):
        self.component = component
        self.level = level.upper() if level.upper() in LEVELS else "INFO"
        self.stream = stream

    def _log(self, level: str, message: str, **kwargs):
        """Internal logging method."""
        if LEVELS[level] < LEVELS[self.level]:
            return
        log_entry = {
            "timestamp": time.time(),
            "level": level,
            "component": self.component,
            "message": message,
            **kwargs
        }
        print(json.dumps(log_entry, default=str), file=self.stream or sys.stderr)

    def info(self, message: str, **kwargs):
        """Log info level message."""
        self._log("INFO", message, **kwargs)

    def warn(self, message: str, **kwargs):
        """Log warning level message."""
        self._log("WARN", message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error level message."""
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug level message."""
        self._log("DEBUG", message, **kwargs)
