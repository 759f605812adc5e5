"""
JSON logging for the ingestion pipeline.

Every logger returned by get_logger() writes one JSON object per line to
stderr, leaving stdout free for CLI output. Level and format come from
LOG_LEVEL and LOG_FORMAT.
"""
import logging
import os
import sys
import time

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "normaize-ingest"

JSON_FIELDS = "%(timestamp)s %(level)s %(logger)s %(message)s"
TEXT_FIELDS = "%(asctime)s %(levelname)-8s %(name)s [%(correlation_id)s] %(message)s"


class IngestJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter adding service, level and source location to each entry.

    Extra fields passed through ``extra=`` (correlation_id, operation,
    steps, ...) are emitted as top-level keys.
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = log_record.get("timestamp") or self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = SERVICE_NAME
        log_record["source"] = f"{record.module}:{record.funcName}:{record.lineno}"


class _CorrelationDefault(logging.Filter):
    """Give text-format records a correlation_id placeholder."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


def _resolve_level(level: str | None) -> int:
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    name: str = SERVICE_NAME,
    level: str | None = None,
    format_type: str | None = None,
    stream=None,
) -> logging.Logger:
    """
    Configure a logger with a single stream handler.

    Args:
        name: Logger name
        level: Level name (defaults to LOG_LEVEL, then INFO)
        format_type: "json" or "text" (defaults to LOG_FORMAT, then json)
        stream: Output stream (defaults to stderr)

    Returns:
        The configured logger. It does not propagate to the root logger.
    """
    log_level = _resolve_level(level)
    format_type = (format_type or os.getenv("LOG_FORMAT", "json")).lower()

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(log_level)
    if format_type == "json":
        handler.setFormatter(IngestJsonFormatter(fmt=JSON_FIELDS, datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.addFilter(_CorrelationDefault())
        handler.setFormatter(logging.Formatter(fmt=TEXT_FIELDS, datefmt="%H:%M:%S"))

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = SERVICE_NAME) -> logging.Logger:
    """Return the named logger, configuring it on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger


class log_operation:
    """
    Log the start and outcome of a block with its duration in milliseconds.

    Usage:
        with log_operation("Loading configuration", logger=logger, path=path):
            ...

    Exceptions are logged at ERROR and re-raised.
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **extra_fields):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self._started = 0.0

    def __enter__(self):
        self._started = time.perf_counter()
        self.logger.debug(
            f"Starting: {self.operation_name}",
            extra={"operation": self.operation_name, **self.extra_fields},
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        fields = {
            "operation": self.operation_name,
            "duration_ms": round((time.perf_counter() - self._started) * 1000, 3),
            **self.extra_fields,
        }
        if exc_type is None:
            self.logger.info(f"Completed: {self.operation_name}", extra={**fields, "status": "success"})
        else:
            self.logger.error(
                f"Failed: {self.operation_name}",
                extra={
                    **fields,
                    "status": "error",
                    "error_type": exc_type.__name__,
                    "error_message": str(exc_val),
                },
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False
