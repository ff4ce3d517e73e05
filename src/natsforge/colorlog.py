"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: main.py
- Purpose: ANSI color-coded log formatter for console output

natsforge Color Log Formatter

PURPOSE:
    Colors console log records by severity. When the handler stream is not
    a terminal (pipes, CI logs), records are formatted without escape codes.

COLOR SCHEME:
    - DEBUG: Grey
    - INFO: Cyan
    - WARNING: Yellow
    - ERROR: Red
    - CRITICAL: Bold Red

LOG FORMAT:
    %(asctime)s - %(levelname)s - %(message)s - (%(filename)s:%(lineno)d)
"""

import logging

GREY = "\x1b[38;20m"
YELLOW = "\x1b[33;20m"
RED = "\x1b[31;20m"
CYAN = "\x1b[36;20m"
BOLD_RED = "\x1b[31;1m"
RESET = "\x1b[0m"

TEMPLATE = "%(asctime)s - %(levelname)s - %(message)s - (%(filename)s:%(lineno)d)"

COLORS = {
    logging.DEBUG: GREY,
    logging.INFO: CYAN,
    logging.WARNING: YELLOW,
    logging.ERROR: RED,
    logging.CRITICAL: BOLD_RED,
}


class CustomFormatter(logging.Formatter):
    """return a formatter that prints log messages with color"""

    def __init__(self, color: bool = True):
        super().__init__(TEMPLATE)
        self.color = color
        self._formatters = {
            level: logging.Formatter(code + TEMPLATE + RESET)
            for level, code in COLORS.items()
        }

    def format(self, record):
        if not self.color:
            return super().format(record)
        formatter = self._formatters.get(record.levelno)
        if formatter is None:
            return super().format(record)
        return formatter.format(record)


def attach(handler: logging.Handler):
    """install the formatter, colored only when the handler writes to a tty"""
    stream = getattr(handler, "stream", None)
    color = bool(stream is not None and hasattr(stream, "isatty") and stream.isatty())
    handler.setFormatter(CustomFormatter(color=color))
