import logging
import sys
from typing import Optional

TRACE_LOGGER_NAME = "confurl.trace"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    force: bool = False,
    trace: bool = False,
) -> logging.Logger:
    """
    Set up logging configuration for confurl.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging output
        format_string: Optional custom format string for log messages
        force: If True, reconfigure even if handlers exist
        trace: If True, also switch on process-wide transfer tracing

    Returns:
        Configured logger instance
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("confurl")
    logger.setLevel(numeric_level)

    # Only clear and reconfigure if forced or no handlers exist
    if force or not logger.handlers:
        logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(logging.Formatter(format_string))
        logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(logging.Formatter(format_string))
            logger.addHandler(file_handler)

    # Prevent propagation to root logger to avoid duplicate logs
    logger.propagate = False

    # Trace records go to stderr only, through the tracing handler.
    trace_logger = logging.getLogger(TRACE_LOGGER_NAME)
    trace_logger.propagate = False
    if trace:
        TRACING.enable()

    return logger


class Tracing:
    """
    Switch for verbose transfer tracing.

    Once enabled (typically by a ``tracing=1`` URL parameter), tracing stays
    on for every later fetch in the process until :meth:`disable` is called
    explicitly. Trace records go to the ``confurl.trace`` logger and are
    copied to stderr.

    Example:
        tracing = Tracing()
        tracing.enable()
        tracing.enable()  # no-op
        assert tracing.enabled
    """

    def __init__(self, logger_name: str = TRACE_LOGGER_NAME):
        self.logger = logging.getLogger(logger_name)
        self._handler: Optional[logging.Handler] = None
        self._previous_level = self.logger.level

    @property
    def enabled(self) -> bool:
        return self._handler is not None

    def enable(self) -> None:
        """Turn tracing on for the remaining process lifetime (idempotent)."""
        if self._handler is not None:
            return

        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter("%(asctime)s [trace] %(message)s"))

        self._previous_level = self.logger.level
        self.logger.addHandler(handler)
        self.logger.setLevel(logging.DEBUG)
        self._handler = handler

    def disable(self) -> None:
        """Turn tracing back off, restoring the previous trace logger level."""
        if self._handler is None:
            return

        self.logger.removeHandler(self._handler)
        self.logger.setLevel(self._previous_level)
        self._handler = None

    def trace(self, message: str) -> None:
        """Emit one trace record (dropped unless tracing is enabled)."""
        if self._handler is not None:
            self.logger.debug(message)


# Process-wide default, shared by every fetcher that is not given its own.
TRACING = Tracing()
