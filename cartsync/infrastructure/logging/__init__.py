"""
Logging package
"""

from .logging_config import (
    LoggingConfig,
    LoggingConfigOptions,
    UpstreamRequestLog,
    get_performance_metrics,
    get_structured_logger,
    log_performance,
    setup_logging,
)

__all__ = [
    "LoggingConfig",
    "LoggingConfigOptions",
    "UpstreamRequestLog",
    "get_performance_metrics",
    "get_structured_logger",
    "log_performance",
    "setup_logging",
]
