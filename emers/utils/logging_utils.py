"""
Logging utilities for the market event analysis system.
Provides centralized handler setup, structured JSON logging and helper functions.
"""

import json
import logging
import sys
import traceback
from datetime import datetime
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from emers.config.settings import LoggingConfig

ROOT_LOGGER_NAME = "emers"

STRUCTURED_LOGGERS = (
    "emers.structured.events",
    "emers.structured.performance",
    "emers.structured.backtest",
    "emers.structured.data_quality",
    "emers.structured.errors",
)

_STANDARD_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured logging with JSON output."""

    def format(self, record):
        """Format log record as structured JSON."""
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'message': record.getMessage(),
        }

        if hasattr(record, 'extra_data'):
            log_entry['extra_data'] = record.extra_data

        if record.exc_info and record.exc_info != (None, None, None):
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_entry, default=str)


class EmersLogger:
    """
    Configures the ``emers`` logger hierarchy from a LoggingConfig.

    Features:
    - Console handler with the standard text format
    - Size-rotated main log file
    - Daily JSON-lines structured log restricted to structured loggers
    - Daily error-only log
    """

    def __init__(self, config: Optional[LoggingConfig] = None, name: str = ROOT_LOGGER_NAME):
        self.config = config or LoggingConfig()
        self.name = name
        self.logger = logging.getLogger(name)
        self._setup_logger()

    def _setup_logger(self):
        """Set up logger with file and console handlers."""
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()

        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        self.logger.setLevel(log_level)

        if self.config.enable_console_logging:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(log_level)
            console_handler.setFormatter(logging.Formatter(_STANDARD_FORMAT))
            self.logger.addHandler(console_handler)

        if self.config.enable_file_logging:
            log_dir = Path(self.config.log_directory)
            log_dir.mkdir(parents=True, exist_ok=True)
            self._setup_file_handlers(log_dir, log_level)

    def _setup_file_handlers(self, log_dir: Path, log_level: int):
        """Set up the main, structured and error file handlers."""
        today = datetime.now().strftime("%Y%m%d")

        main_handler = RotatingFileHandler(
            log_dir / self.config.log_file_format.format(date=today),
            maxBytes=self._parse_size(self.config.log_rotation_size),
            backupCount=self.config.max_log_files
        )
        main_handler.setLevel(log_level)
        main_handler.setFormatter(logging.Formatter(_STANDARD_FORMAT))
        self.logger.addHandler(main_handler)

        structured_handler = TimedRotatingFileHandler(
            log_dir / f"structured_{today}.jsonl",
            when='midnight',
            interval=1,
            backupCount=self.config.max_log_files
        )
        structured_handler.setLevel(logging.INFO)
        structured_handler.setFormatter(StructuredFormatter())
        structured_handler.addFilter(self._structured_log_filter)
        self.logger.addHandler(structured_handler)

        error_handler = TimedRotatingFileHandler(
            log_dir / f"errors_{today}.log",
            when='midnight',
            interval=1,
            backupCount=self.config.max_log_files
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d\n'
            'Message: %(message)s\n'
            'Exception: %(exc_text)s\n'
            '%(separator)s\n',
            defaults={'separator': '-' * 80}
        ))
        self.logger.addHandler(error_handler)

    @staticmethod
    def _structured_log_filter(record) -> bool:
        """Only structured loggers reach the JSON-lines file."""
        return record.name in STRUCTURED_LOGGERS

    @staticmethod
    def _parse_size(size_str: str) -> int:
        """Parse size string (e.g., '10MB') to bytes."""
        size_str = size_str.strip().upper()
        if size_str.endswith('KB'):
            return int(size_str[:-2]) * 1024
        elif size_str.endswith('MB'):
            return int(size_str[:-2]) * 1024 * 1024
        elif size_str.endswith('GB'):
            return int(size_str[:-2]) * 1024 * 1024 * 1024
        return int(size_str)

    def get_logger(self) -> logging.Logger:
        """Get the configured logger instance."""
        return self.logger

    def close(self):
        """Detach and close every handler."""
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)


def setup_logging(config: Optional[LoggingConfig] = None) -> EmersLogger:
    """Configure the ``emers`` logger hierarchy and return the configurator."""
    return EmersLogger(config)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger inside the ``emers`` hierarchy."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(ROOT_LOGGER_NAME + ".") or name == ROOT_LOGGER_NAME:
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def log_structured(logger_name: str, level: str, message: str,
                   extra_data: Optional[Dict[str, Any]] = None):
    """Emit a record carrying ``extra_data`` on one of the structured loggers."""
    logger = logging.getLogger(logger_name)
    log_level = getattr(logging, level.upper(), logging.INFO)
    if not logger.isEnabledFor(log_level):
        return
    record = logger.makeRecord(logger.name, log_level, __file__, 0, message, (), None)
    if extra_data:
        record.extra_data = extra_data
    logger.handle(record)


def log_error_with_context(logger: logging.Logger, error: Exception, context: str,
                           extra_data: Optional[Dict[str, Any]] = None):
    """Log error with additional context information and structured data."""
    error_data = {
        'context': context,
        'error_type': type(error).__name__,
        'error_message': str(error),
        'traceback': traceback.format_exc(),
        'system_info': {
            'python_version': sys.version,
            'platform': sys.platform
        }
    }
    if extra_data:
        error_data['extra_context'] = extra_data

    log_structured("emers.structured.errors", "ERROR", f"Error in {context}", error_data)
    logger.error(f"Error in {context}: {str(error)}")
    logger.error(f"Error type: {type(error).__name__}")


def log_performance_metrics(metrics: Dict[str, Any], logger_name: str = "performance"):
    """Log performance metrics in a readable and a structured format."""
    logger = get_logger(logger_name)
    logger.info("Performance Metrics:")
    for key, value in metrics.items():
        if isinstance(value, float):
            logger.info(f"  {key}: {value:.4f}")
        else:
            logger.info(f"  {key}: {value}")

    log_structured("emers.structured.performance", "INFO", "Performance metrics", {
        'event_type': 'performance_metrics',
        'metrics': metrics,
        'timestamp': datetime.now().isoformat()
    })


def log_backtest_summary(symbol: str, summary: Dict[str, Any], logger_name: str = "backtest"):
    """Log the headline figures of a completed backtest."""
    logger = get_logger(logger_name)
    logger.info(f"Backtest complete - {symbol}: "
                f"final capital {summary.get('final_capital', 0):,.2f}, "
                f"trades {summary.get('total_trades', 0)}, "
                f"max drawdown {summary.get('max_drawdown', 0):.2%}")

    log_structured("emers.structured.backtest", "INFO", "Backtest completed", {
        'event_type': 'backtest_summary',
        'symbol': symbol,
        'summary': summary,
        'timestamp': datetime.now().isoformat()
    })


def log_event_detected(symbol: str, title: str, sentiment: float, impact: int,
                       logger_name: str = "events"):
    """Log a detected market or news event."""
    logger = get_logger(logger_name)
    logger.info(f"Event detected - {symbol}: {title} (sentiment {sentiment:+.2f}, impact {impact})")

    log_structured("emers.structured.events", "INFO", "Event detected", {
        'event_type': 'market_event',
        'symbol': symbol,
        'title': title,
        'sentiment': sentiment,
        'impact': impact,
        'timestamp': datetime.now().isoformat()
    })


def log_data_quality_issue(symbol: str, issue_type: str, details: Dict[str, Any],
                           logger_name: str = "data_quality"):
    """Log data quality issues for monitoring and debugging."""
    logger = get_logger(logger_name)
    logger.warning(f"Data Quality Issue - {symbol}: {issue_type}")
    for key, value in details.items():
        logger.warning(f"  {key}: {value}")

    log_structured("emers.structured.data_quality", "WARNING", f"Data quality issue: {issue_type}", {
        'event_type': 'data_quality_issue',
        'symbol': symbol,
        'issue_type': issue_type,
        'details': details,
        'timestamp': datetime.now().isoformat()
    })
