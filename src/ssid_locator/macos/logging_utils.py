"""
Centralized logging configuration for the macOS SSID locator.
This module provides a shared logger instance to avoid circular imports.
"""
import logging
import sys

# Create a logger instance that can be imported by other modules
_log = logging.getLogger("ssid_locator.macos")

LOG_FORMAT = '%(levelname)s: %(message)s'


def configure_logging(verbose: bool = False, stream=None):
    """
    Send log records to stderr so stdout stays reserved for the result.
    Warnings are always shown; --verbose adds the debug trace.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(stream=stream or sys.stderr, level=level, format=LOG_FORMAT)
    _log.setLevel(level)
    return _log
