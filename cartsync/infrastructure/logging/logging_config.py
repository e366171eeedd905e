"""
Logging configuration

Console, rotating text and JSON file handlers for stdlib logging, structlog for
structured events, and a performance logger for upstream requests.
"""

import copy
import logging
import logging.handlers
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from pythonjsonlogger import jsonlogger

from cartsync.infrastructure.utilities.constants import (
    FileSettings,
    LoggingSettings,
    UpstreamSettings,
)


class ColoredFormatter(logging.Formatter):
    """Colored log formatter for console output"""

    colors = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        # other handlers share the record
        record = copy.copy(record)
        log_color = self.colors.get(record.levelname, self.colors['RESET'])
        record.levelname = f"{log_color}{record.levelname}{self.colors['RESET']}"
        record.name = f"\033[94m{record.name}\033[0m"  # Blue
        return super().format(record)


class CartSyncJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with process and cart context fields"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["process_id"] = os.getpid()

        if hasattr(record, "cycle"):
            log_record["cycle"] = record.cycle

        if hasattr(record, "line_key"):
            log_record["line_key"] = record.line_key

        if hasattr(record, "response_time"):
            log_record["response_time_ms"] = round(record.response_time * 1000, 2)


@dataclass
class UpstreamRequestLog:
    """One timed request to the upstream store"""
    method: str
    endpoint: str
    response_time: float
    status: str = "success"
    status_code: Optional[int] = None


class PerformanceLogger:
    """Counts upstream requests and flags slow ones"""

    def __init__(self, name: str = "performance"):
        self.logger = logging.getLogger(name)
        self.reset()

    def log_request(self, log: UpstreamRequestLog):
        self._requests += 1
        self._total_time += log.response_time
        if log.status != "success":
            self._errors += 1

        extra = {"response_time": log.response_time, "status_code": log.status_code}
        if log.response_time > UpstreamSettings.SLOW_REQUEST_THRESHOLD_SECONDS:
            self._slow += 1
            self.logger.warning(
                "🐢 Slow upstream request: %s %s took %.2fs",
                log.method, log.endpoint, log.response_time, extra=extra,
            )
        else:
            self.logger.debug(
                "Upstream request: %s %s -> %s (%.2fs)",
                log.method, log.endpoint, log.status_code, log.response_time, extra=extra,
            )

    def get_metrics(self) -> Dict[str, Any]:
        requests = max(1, self._requests)
        return {
            "total_requests": self._requests,
            "slow_requests": self._slow,
            "error_requests": self._errors,
            "avg_response_time": self._total_time / requests,
            "error_rate": self._errors / requests,
        }

    def reset(self):
        """Zero the counters"""
        self._requests = 0
        self._slow = 0
        self._errors = 0
        self._total_time = 0.0


@dataclass
class LoggingConfigOptions:
    """Dataclass for logging configuration options"""
    log_level: str = "INFO"
    log_dir: str = FileSettings.LOGS_DIRECTORY
    enable_console: bool = True
    enable_file: bool = True
    enable_json: bool = True
    max_file_size: int = LoggingSettings.MAX_LOG_FILE_SIZE
    backup_count: int = LoggingSettings.BACKUP_COUNT


class LoggingConfig:
    """Logging configuration for the proxy process"""

    def __init__(self, options: LoggingConfigOptions):
        self.options = options

        if self.options.enable_file or self.options.enable_json:
            Path(self.options.log_dir).mkdir(parents=True, exist_ok=True)

        self._configure_structlog()

    def _configure_structlog(self):
        """Configure structlog for structured logging"""
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer()
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def setup_logging(self):
        """Setup logging handlers on the root logger"""
        level = getattr(logging, self.options.log_level.upper())
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        if self.options.enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(ColoredFormatter(
                fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            root_logger.addHandler(console_handler)

        if self.options.enable_file:
            text_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            root_logger.addHandler(
                self._rotating_handler(FileSettings.MAIN_LOG_FILE, logging.INFO, text_formatter)
            )
            root_logger.addHandler(
                self._rotating_handler(FileSettings.ERROR_LOG_FILE, logging.ERROR, text_formatter)
            )
            perf_logger = logging.getLogger('performance')
            perf_logger.addHandler(
                self._rotating_handler(
                    FileSettings.PERFORMANCE_LOG_FILE, logging.DEBUG, CartSyncJsonFormatter()
                )
            )
            perf_logger.setLevel(logging.DEBUG)

        if self.options.enable_json:
            root_logger.addHandler(
                self._rotating_handler(FileSettings.JSON_LOG_FILE, logging.INFO, CartSyncJsonFormatter())
            )

        self._configure_external_loggers()

        logger = logging.getLogger(__name__)
        logger.info(
            "✅ Logging configured successfully - Level: %s, Console: %s, File: %s, JSON: %s",
            self.options.log_level,
            self.options.enable_console,
            self.options.enable_file,
            self.options.enable_json
        )

    def _rotating_handler(
        self, filename: str, level: int, formatter: logging.Formatter
    ) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            Path(self.options.log_dir) / filename,
            maxBytes=self.options.max_file_size,
            backupCount=self.options.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler

    def _configure_external_loggers(self):
        """Quiet chatty third-party loggers"""
        logging.getLogger('sqlalchemy').setLevel(logging.WARNING)
        logging.getLogger('httpx').setLevel(logging.WARNING)
        logging.getLogger('httpcore').setLevel(logging.WARNING)
        logging.getLogger('uvicorn.access').setLevel(logging.WARNING)


# Singleton instance for performance logger
performance_logger = PerformanceLogger()


def setup_logging(options: LoggingConfigOptions):
    """Setup logging using the LoggingConfig class"""
    config = LoggingConfig(options)
    config.setup_logging()


def get_performance_metrics() -> Dict[str, Any]:
    """Get performance metrics from the performance logger"""
    return performance_logger.get_metrics()


def log_performance(log: UpstreamRequestLog):
    """Log performance of an upstream request"""
    performance_logger.log_request(log)


def get_structured_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)
