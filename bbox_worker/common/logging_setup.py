"""
Structured Logging Setup

Consistent logging configuration across the worker.
Uses JSON format for structured logs in production.
"""

import logging
import sys
import os
from datetime import datetime, timezone
from typing import Any
import json


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service", "unknown"),
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in (
                "name", "msg", "args", "levelname", "levelno", "pathname",
                "filename", "module", "exc_info", "exc_text", "stack_info",
                "lineno", "funcName", "created", "msecs", "relativeCreated",
                "thread", "threadName", "processName", "process", "service",
                "message", "taskName",
            ):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ServiceLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds service name to all logs"""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs.setdefault("extra", {})
        kwargs["extra"]["service"] = self.extra.get("service", "unknown")
        return msg, kwargs


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """
    Set up structured logging for a service.

    Args:
        service_name: Name of the service (e.g., "scheduler", "device.reader")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format (True for production, False for dev)

    Returns:
        Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(f"bbox.{service_name}")
    logger.setLevel(numeric_level)

    # Clear existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)

    if json_format:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Don't propagate to root logger
    logger.propagate = False

    return logger


def get_service_logger(service_name: str) -> ServiceLoggerAdapter:
    """
    Get a logger adapter with service context.

    Args:
        service_name: Name of the service

    Returns:
        Logger adapter with service name in all logs
    """
    log_level = os.environ.get("BBOX_LOG_LEVEL", "INFO")
    json_format = os.environ.get("BBOX_LOG_FORMAT", "json").lower() == "json"

    logger = setup_logging(service_name, log_level, json_format)
    return ServiceLoggerAdapter(logger, {"service": service_name})


def set_log_level(log_level: str) -> None:
    """Change the level of every already-created worker logger."""
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith("bbox.") and isinstance(logger, logging.Logger):
            logger.setLevel(numeric_level)
            for handler in logger.handlers:
                handler.setLevel(numeric_level)


def log_variable_read(
    logger: logging.Logger,
    equipment_name: str,
    variable_name: str,
    value: Any,
    success: bool = True,
) -> None:
    """Log a decoded variable value"""
    if success:
        logger.info(
            f"Received {equipment_name} - {variable_name} as float: {value:.3f}",
            extra={"equipment": equipment_name, "variable": variable_name, "value": value},
        )
    else:
        logger.warning(
            f"Failed to read {equipment_name} - {variable_name}",
            extra={"equipment": equipment_name, "variable": variable_name},
        )


def log_cycle(
    logger: logging.Logger,
    sources_ok: int,
    sources_failed: int,
    values_written: int,
    variables_failed: int,
    execution_time_ms: float,
) -> None:
    """Log a polling cycle summary"""
    logger.info(
        f"Cycle done: sources={sources_ok} ok/{sources_failed} failed, "
        f"values={values_written}, failed_vars={variables_failed}, "
        f"exec={execution_time_ms:.0f}ms",
        extra={
            "sources_ok": sources_ok,
            "sources_failed": sources_failed,
            "values_written": values_written,
            "variables_failed": variables_failed,
            "execution_time_ms": execution_time_ms,
        },
    )
