"""
Structured logging configuration.
Designed for easy debugging of ingestion runs without exposing tokens.
"""
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, Optional

import structlog
from structlog.types import Processor

from fitdash.core.config import settings


def setup_logging() -> None:
    """Configure structured logging for the application."""

    # Common processors
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.LOG_FORMAT == "json":
        # JSON format for production
        renderer = structlog.processors.JSONRenderer()
    else:
        # Console format for development
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure root logger
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


# ========================================
# Sync Run Logging
# ========================================

@dataclass
class SyncRunLog:
    """Complete log entry for one ingestion run."""
    run_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    kind: str = ""
    account_id: Optional[str] = None

    counters: Dict[str, int] = field(default_factory=dict)
    stop_reason: Optional[str] = None

    # Timing
    start_time: float = 0.0
    end_time: float = 0.0
    duration_ms: float = 0.0

    # Status
    success: bool = True
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class SyncRunLogger:
    """
    Logger for summary-sync, detail-fetch and upload runs.

    Usage:
        run_logger = SyncRunLogger(logger)
        with run_logger.track_run("sync", account_id) as run:
            run.increment("processed")
            run.item("merged", external_id=123)
            run.stop("rate_limited")
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger):
        self.logger = logger
        self.enabled = settings.SYNC_RUN_LOG

    @contextmanager
    def track_run(
        self,
        kind: str,
        account_id: Optional[str] = None,
    ) -> Generator["SyncRunTracker", None, None]:
        """Context manager for tracking one run."""
        tracker = SyncRunTracker(
            logger=self.logger,
            enabled=self.enabled,
            kind=kind,
            account_id=account_id,
        )
        tracker.start()
        try:
            yield tracker
        except Exception as e:
            tracker.fail(e)
            raise
        finally:
            tracker.finish()


class SyncRunTracker:
    """Tracker for a single ingestion run."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        enabled: bool,
        kind: str,
        account_id: Optional[str],
    ):
        self.logger = logger
        self.enabled = enabled
        self.log = SyncRunLog(kind=kind, account_id=account_id)

    def start(self) -> None:
        """Mark the start of the run."""
        self.log.start_time = time.time()
        self.logger.info(
            "Run started",
            run_id=self.log.run_id,
            kind=self.log.kind,
            account_id=self.log.account_id,
        )

    def increment(self, counter: str, amount: int = 1) -> None:
        """Bump a named counter."""
        self.log.counters[counter] = self.log.counters.get(counter, 0) + amount

    def count(self, counter: str) -> int:
        """Current value of a counter."""
        return self.log.counters.get(counter, 0)

    def item(self, outcome: str, **context: Any) -> None:
        """Record the outcome of one item and bump its counter."""
        self.increment(outcome)
        if self.enabled:
            self.logger.debug(
                "Run item",
                run_id=self.log.run_id,
                outcome=outcome,
                **context,
            )

    def stop(self, reason: str) -> None:
        """Record why the run ended before exhausting its input."""
        self.log.stop_reason = reason
        self.logger.warning(
            "Run stopped early",
            run_id=self.log.run_id,
            kind=self.log.kind,
            reason=reason,
        )

    def fail(self, exc: BaseException) -> None:
        """Mark the run as failed by `exc`; committed items stay stored."""
        self.log.success = False
        self.log.error_type = type(exc).__name__
        self.log.error_message = str(exc)

    def finish(self) -> None:
        """Close the run and emit one summary event."""
        self.log.end_time = time.time()
        self.log.duration_ms = (self.log.end_time - self.log.start_time) * 1000
        summary = dict(
            run_id=self.log.run_id,
            kind=self.log.kind,
            duration_ms=round(self.log.duration_ms, 2),
            **self.log.counters,
        )

        if not self.log.success:
            self.logger.error(
                "Run failed",
                error_type=self.log.error_type,
                error_message=self.log.error_message,
                **summary,
            )
            return

        self.logger.info("Run completed", stop_reason=self.log.stop_reason, **summary)

    def get_summary(self) -> dict:
        """Get a summary of the run for external use."""
        return {
            "run_id": self.log.run_id,
            "kind": self.log.kind,
            "duration_ms": round(self.log.duration_ms, 2),
            "success": self.log.success,
            "stop_reason": self.log.stop_reason,
            **self.log.counters,
        }
