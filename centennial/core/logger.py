"""
Logging and Error Tracking

Centralized logging configuration for the archiver plus an error tracker
that keeps a per-run record of every failure so a summary can be reported
once all editions have been processed.
"""

import logging
import logging.handlers
import os
import re
import sys
import traceback
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, List

APP_NAME = "centennial"

_NON_ASCII = re.compile(r'[^\x00-\x7F]')


class AsciiFormatter(logging.Formatter):
    """Console formatter that drops non-ASCII characters (cron mail, old terminals)."""

    def format(self, record: logging.LogRecord) -> str:
        return _NON_ASCII.sub('', super().format(record))


class CentennialLogger:
    """
    Centralized logging system for the archiver.

    Every module logs through ``logging.getLogger(__name__)``; since all of
    them live under the ``centennial`` package, the handlers installed here
    on the ``centennial`` logger receive their records.
    """

    # (filename suffix, level, max size in MB, backups)
    FILE_LOGS = (("", logging.DEBUG, 10, 5), ("_errors", logging.ERROR, 5, 3))

    def __init__(self, log_dir: str = "logs", app_name: str = APP_NAME):
        """
        Initialize the logging system.

        Args:
            log_dir: Directory to store log files
            app_name: Name of the root application logger
        """
        self.log_dir = Path(log_dir)
        self.app_name = app_name
        self.loggers: Dict[str, logging.Logger] = {}

        self.log_dir.mkdir(parents=True, exist_ok=True)

    def _file_handler(self, suffix: str, level: int, max_mb: int, backups: int) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / f"{self.app_name}{suffix}.log",
            maxBytes=max_mb * 1024 * 1024,
            backupCount=backups,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        return handler

    def setup_logger(self, level: int = logging.INFO) -> logging.Logger:
        """
        Attach the rotating run log, the rotating error log and the console
        handler to the application logger. Calling it again only changes the
        console level.

        Args:
            level: Console logging level (default: INFO)
        """
        logger = logging.getLogger(self.app_name)
        logger.setLevel(logging.DEBUG)
        self.loggers["main"] = logger

        consoles = [h for h in logger.handlers if not isinstance(h, logging.FileHandler)]
        if logger.handlers:
            for handler in consoles:
                handler.setLevel(level)
            return logger

        for suffix, file_level, max_mb, backups in self.FILE_LOGS:
            logger.addHandler(self._file_handler(suffix, file_level, max_mb, backups))

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        console.setFormatter(AsciiFormatter("[%(asctime)s] %(levelname)s | %(message)s",
                                            datefmt="%Y-%m-%dT%H:%M:%S"))
        logger.addHandler(console)
        return logger

    def get_logger(self, name: str) -> logging.Logger:
        """Child logger of the application logger for one component."""
        full_name = f"{self.app_name}.{name}"
        return self.loggers.setdefault(full_name, logging.getLogger(full_name))

    def log_system_info(self):
        """Log system information for debugging."""
        logger = self.get_logger("system")
        logger.info("Centennial archiver started")
        logger.debug(f"Python version: {sys.version}")
        logger.debug(f"Platform: {sys.platform}")
        logger.debug(f"Working directory: {os.getcwd()}")
        logger.info(f"Log directory: {self.log_dir.absolute()}")


@dataclass
class TrackedIssue:
    """One error or warning raised while processing a run."""

    id: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    type: Optional[str] = None
    context: Optional[str] = None
    edition: Optional[str] = None
    page: Optional[int] = None
    traceback: str = ""
    additional_info: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        text = f"[{self.id}] {self.type}: {self.message}" if self.type else f"[{self.id}] {self.message}"
        for label, value in (("Context", self.context), ("Edition", self.edition), ("Page", self.page)):
            if value is not None and value != "":
                text += f" ({label}: {value})"
        return text

    def report_lines(self) -> List[str]:
        lines = [f"[{self.id}] {self.timestamp}"]
        if self.type:
            lines.append(f"Type: {self.type}")
        lines.append(f"Message: {self.message}")
        for label, value in (("Context", self.context), ("Edition", self.edition), ("Page", self.page)):
            if value is not None and value != "":
                lines.append(f"{label}: {value}")
        for key, value in self.additional_info.items():
            lines.append(f"{key}: {value}")
        if self.traceback:
            lines.append(f"Traceback:\n{self.traceback}")
        return lines


class ErrorTracker:
    """
    Collects the failures of one run (page, edition and probe level) so they
    can be summarized and written to a report once every date is processed.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.errors: List[TrackedIssue] = []
        self.warnings: List[TrackedIssue] = []

    @staticmethod
    def _next_id(prefix: str, count: int) -> str:
        return f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{count:03d}"

    def log_error(self,
                  error: Exception,
                  context: str = None,
                  edition: str = None,
                  page: int = None,
                  additional_info: Dict[str, Any] = None) -> str:
        """
        Record an error against the edition/page it belongs to.

        Args:
            error: The exception that occurred
            context: Pipeline stage where the error occurred
            edition: Subject date of the edition being processed
            page: Page index, for page-level failures
            additional_info: Extra details worth keeping in the report

        Returns:
            Error ID for tracking
        """
        issue = TrackedIssue(
            id=self._next_id("ERR", len(self.errors)),
            message=str(error),
            type=type(error).__name__,
            context=context,
            edition=edition,
            page=page,
            traceback=''.join(traceback.format_exception(type(error), error, error.__traceback__)),
            additional_info=additional_info or {},
        )
        self.errors.append(issue)
        self.logger.error(issue.describe())
        self.logger.debug(f"[{issue.id}] Full traceback:\n{issue.traceback}")
        return issue.id

    def log_warning(self, message: str, context: str = None, edition: str = None) -> str:
        """Record a warning; returns its ID."""
        issue = TrackedIssue(id=self._next_id("WARN", len(self.warnings)), message=message,
                             context=context, edition=edition)
        self.warnings.append(issue)
        self.logger.warning(issue.describe())
        return issue.id

    def get_error_summary(self) -> Dict[str, Any]:
        """Counts by kind and by exception type, plus the five most recent of each."""
        return {
            'total_errors': len(self.errors),
            'total_warnings': len(self.warnings),
            'error_types': dict(Counter(issue.type for issue in self.errors)),
            'recent_errors': self.errors[-5:],
            'recent_warnings': self.warnings[-5:],
        }

    def save_error_report(self, output_path: str) -> bool:
        """
        Write every recorded error and warning to a plain-text report.

        Returns:
            True if the report was written
        """
        lines = [
            "CENTENNIAL ERROR REPORT",
            "=" * 50,
            "",
            f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"Total Errors: {len(self.errors)}",
            f"Total Warnings: {len(self.warnings)}",
        ]
        for title, issues in (("ERRORS", self.errors), ("WARNINGS", self.warnings)):
            if not issues:
                continue
            lines += ["", f"{title}:", "-" * 30]
            for issue in issues:
                lines += [""] + issue.report_lines() + ["-" * 30]

        try:
            Path(output_path).write_text("\n".join(lines) + "\n", encoding='utf-8')
        except OSError as e:
            self.logger.error(f"Failed to save error report: {e}")
            return False
        self.logger.info(f"Error report saved to: {output_path}")
        return True


_logger_instance: Optional[CentennialLogger] = None


def get_logger(name: str = None) -> logging.Logger:
    """Logger for a component under the application logger (or the application logger itself)."""
    if _logger_instance is not None and name:
        return _logger_instance.get_logger(name)
    return logging.getLogger(f"{APP_NAME}.{name}" if name else APP_NAME)


def initialize_logging(log_dir: str = "logs", level: int = logging.INFO) -> CentennialLogger:
    """
    Configure the application logger once per process.

    Args:
        log_dir: Directory for log files
        level: Console logging level
    """
    global _logger_instance
    _logger_instance = CentennialLogger(log_dir)
    _logger_instance.setup_logger(level)
    _logger_instance.log_system_info()
    return _logger_instance


def create_error_tracker(logger_name: str = None) -> ErrorTracker:
    return ErrorTracker(get_logger(logger_name))
