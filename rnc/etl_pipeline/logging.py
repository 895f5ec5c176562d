"""
RNC Pipeline Logging Module

Provides logging for pipeline runs: console and rotating-file handlers,
optional JSON output, and per-stage metrics.
"""

import logging
import logging.handlers
import json
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Generator
from dataclasses import dataclass, field


@dataclass
class ETLMetrics:
    """Collects metrics for one pipeline stage."""
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    records_processed: int = 0
    records_success: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    bytes_downloaded: int = 0
    files_extracted: int = 0
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0
    # Counts keep growing; only the first messages are stored
    max_stored_messages: int = 100

    @property
    def duration(self) -> float:
        """Get duration in seconds."""
        end = self.end_time or time.time()
        return end - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start_time': datetime.fromtimestamp(self.start_time).isoformat(),
            'end_time': datetime.fromtimestamp(self.end_time).isoformat() if self.end_time else None,
            'duration_seconds': round(self.duration, 2),
            'records_processed': self.records_processed,
            'records_success': self.records_success,
            'records_skipped': self.records_skipped,
            'records_failed': self.records_failed,
            'bytes_downloaded': self.bytes_downloaded,
            'files_extracted': self.files_extracted,
            'error_count': self.error_count,
            'warning_count': self.warning_count,
        }

    def _entry(self, message: str, context: Optional[Dict]) -> Dict[str, Any]:
        return {
            'message': message,
            'timestamp': datetime.now().isoformat(),
            'context': context or {},
        }

    def add_error(self, error: str, context: Optional[Dict] = None) -> None:
        self.error_count += 1
        if len(self.errors) < self.max_stored_messages:
            self.errors.append(self._entry(error, context))

    def add_warning(self, warning: str, context: Optional[Dict] = None) -> None:
        self.warning_count += 1
        if len(self.warnings) < self.max_stored_messages:
            self.warnings.append(self._entry(warning, context))

    def finish(self) -> None:
        self.end_time = time.time()


class StructuredLogFormatter(logging.Formatter):
    """JSON-formatted log output."""

    EXTRA_FIELDS = ('stage', 'source', 'line_number', 'rnc', 'row', 'metrics')

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
        }

        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ETLLogger:
    """Pipeline logger with per-stage metrics tracking.

    Keyword arguments passed to the logging methods are attached to the
    record as ``extra`` fields and, for warnings and errors, stored in the
    metrics of the stage currently running.
    """

    def __init__(
        self,
        name: str = 'rnc.pipeline',
        log_level: str = 'INFO',
        log_dir: Optional[Path] = None,
        log_to_file: bool = True,
        structured: bool = False,
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 5,
    ):
        self.name = name
        self.log_level = getattr(logging, log_level.upper(), logging.INFO)
        self.log_dir = log_dir
        self.log_to_file = log_to_file
        self.structured = structured
        self.max_bytes = max_bytes
        self.backup_count = backup_count

        self.logger = logging.getLogger(name)
        self.logger.setLevel(self.log_level)

        # Avoid duplicate handlers
        if not self.logger.handlers:
            self._setup_handlers()

        self.metrics: Dict[str, ETLMetrics] = {}
        self._current_stage: Optional[str] = None

    @classmethod
    def from_config(cls, config, name: str = 'rnc.pipeline') -> 'ETLLogger':
        """Build a logger from an RNCConfig."""
        return cls(
            name=name,
            log_level=config.logging.level,
            log_dir=config.log_dir,
            log_to_file=config.logging.log_to_file,
            structured=config.logging.structured_logging,
            max_bytes=config.logging.max_log_size,
            backup_count=config.logging.backup_count,
        )

    def _formatter(self) -> logging.Formatter:
        if self.structured:
            return StructuredLogFormatter()
        return logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    def _setup_handlers(self) -> None:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(self._formatter())
        self.logger.addHandler(console_handler)

        if self.log_to_file and self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / f'{self.name}.log',
                maxBytes=self.max_bytes,
                backupCount=self.backup_count,
                encoding='utf-8',
            )
            file_handler.setLevel(self.log_level)
            file_handler.setFormatter(self._formatter())
            self.logger.addHandler(file_handler)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self.logger.debug(msg, extra=kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self.logger.info(msg, extra=kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self.logger.warning(msg, extra=kwargs)
        if self._current_stage and self._current_stage in self.metrics:
            self.metrics[self._current_stage].add_warning(msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self.logger.error(msg, extra=kwargs)
        if self._current_stage and self._current_stage in self.metrics:
            self.metrics[self._current_stage].add_error(msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        self.logger.exception(msg, extra=kwargs)
        if self._current_stage and self._current_stage in self.metrics:
            self.metrics[self._current_stage].add_error(msg, kwargs)

    def start_stage(self, stage_name: str) -> ETLMetrics:
        self._current_stage = stage_name
        self.metrics[stage_name] = ETLMetrics()
        self.info(f"Starting stage: {stage_name}", stage=stage_name)
        return self.metrics[stage_name]

    def finish_stage(self, stage_name: str) -> ETLMetrics:
        if stage_name not in self.metrics:
            return ETLMetrics()
        metrics = self.metrics[stage_name]
        metrics.finish()
        self.info(
            f"Finished stage: {stage_name} ({metrics.duration:.1f}s)",
            stage=stage_name,
            metrics=metrics.to_dict(),
        )
        if self._current_stage == stage_name:
            self._current_stage = None
        return metrics

    def get_all_metrics(self) -> Dict[str, Dict[str, Any]]:
        return {name: m.to_dict() for name, m in self.metrics.items()}

    @contextmanager
    def stage(self, stage_name: str) -> Generator[ETLMetrics, None, None]:
        """Context manager for tracking a stage."""
        metrics = self.start_stage(stage_name)
        try:
            yield metrics
        except Exception as e:
            metrics.add_error(str(e))
            raise
        finally:
            self.finish_stage(stage_name)

    def log_progress(self, current: int, interval: int = 10000, stage: Optional[str] = None) -> None:
        """Log a running count every ``interval`` records."""
        if interval and current % interval == 0:
            self.info(
                f"Progress: {current:,} records",
                stage=stage or self._current_stage,
            )
