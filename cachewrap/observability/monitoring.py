"""
cachewrap - Observability Monitoring

Structured JSON logging and in-process counters for caching actions.
"""

import contextvars
import json
import logging
import threading
import time
from collections import Counter
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

# Trace ID context variable for correlating log lines of one call
_trace_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("trace_id", default=None)

_RESERVED_RECORD_KEYS = frozenset(
    (
        "args",
        "msg",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "name",
        "message",
    )
)


class ObservabilityAdapter:
    """
    Observability adapter for the caching core.

    Provides:
    - Counters keyed by metric name and tags (in-process)
    - Span tracing via log records
    - Structured JSON logging for the ``cachewrap`` logger tree
    """

    def __init__(
        self,
        enable_metrics: bool = True,
        enable_tracing: bool = False,
    ):
        """
        Initialize observability adapter.

        Leaves the handlers and level of the ``cachewrap`` logger untouched;
        see ``setup_logging``.

        Args:
            enable_metrics: Enable counter collection
            enable_tracing: Enable span logging
        """
        self.enable_metrics = enable_metrics
        self.enable_tracing = enable_tracing

        self._counters: Counter[tuple[str, tuple[tuple[str, str], ...]]] = Counter()
        self._lock = threading.Lock()

        self.logger = logging.getLogger("cachewrap")

    def setup_logging(self, json_logs: bool = True, log_level: str = "INFO") -> None:
        """
        Replace the handlers of the ``cachewrap`` logger with one stream handler.

        Args:
            json_logs: Format records as JSON
            log_level: Level for the ``cachewrap`` logger
        """
        logger = self.logger

        logger.handlers.clear()

        handler = logging.StreamHandler()
        if json_logs:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.setLevel(log_level)

    def increment(
        self,
        metric: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """
        Increment a counter metric.

        Args:
            metric: Metric name (e.g., "caching.hit")
            value: Value to increment by
            tags: Optional metric tags/labels
        """
        if not self.enable_metrics:
            return

        key = (metric, tuple(sorted((tags or {}).items())))
        with self._lock:
            self._counters[key] += value

    def get_count(self, metric: str, tags: dict[str, str] | None = None) -> int:
        """
        Get a counter value.

        Without tags, returns the sum over every tag combination of the metric.
        """
        with self._lock:
            if tags is None:
                return sum(count for (name, _), count in self._counters.items() if name == metric)
            return self._counters[(metric, tuple(sorted(tags.items())))]

    def get_counters(self) -> dict[str, int]:
        """Get all counters summed per metric name."""
        totals: Counter[str] = Counter()
        with self._lock:
            for (name, _), count in self._counters.items():
                totals[name] += count
        return dict(totals)

    def reset(self) -> None:
        """Clear all counters (testing/reset)."""
        with self._lock:
            self._counters.clear()

    @contextmanager
    def trace(self, span_name: str, tags: dict[str, str] | None = None) -> Generator[None, None, None]:
        """
        Context manager for tracing a span.

        Example:
            with observability.trace("cache.get"):
                value = await cache.get(key)
        """
        if not self.enable_tracing:
            yield
            return

        start_time = time.perf_counter()
        trace_id = self.get_trace_id()
        tags = tags or {}

        self.logger.debug(
            f"Span started: {span_name}",
            extra={"span_name": span_name, "trace_id": trace_id, "tags": tags},
        )

        try:
            yield
        except Exception as e:
            self.logger.error(
                f"Span error: {span_name}",
                extra={"span_name": span_name, "trace_id": trace_id, "error": str(e), "tags": tags},
            )
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.logger.debug(
                f"Span completed: {span_name}",
                extra={
                    "span_name": span_name,
                    "trace_id": trace_id,
                    "duration_ms": round(duration_ms, 2),
                    "tags": tags,
                },
            )

    def get_trace_id(self) -> str | None:
        """Get current trace ID from context."""
        return _trace_id_ctx.get()

    def set_trace_id(self, trace_id: str) -> None:
        """Set trace ID in context."""
        _trace_id_ctx.set(trace_id)

    def generate_trace_id(self) -> str:
        """Generate a new trace ID and set it in context."""
        trace_id = str(uuid4())
        self.set_trace_id(trace_id)
        return trace_id

    @contextmanager
    def trace_scope(self) -> Generator[str, None, None]:
        """
        Run a block under a trace ID.

        Reuses the caller's trace ID when one is set; otherwise a new one is
        generated for the block and cleared again when it exits.
        """
        trace_id = _trace_id_ctx.get()
        if trace_id is not None:
            yield trace_id
            return

        trace_id = str(uuid4())
        token = _trace_id_ctx.set(trace_id)
        try:
            yield trace_id
        finally:
            _trace_id_ctx.reset(token)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        trace_id = _trace_id_ctx.get()
        if trace_id:
            log_data["trace_id"] = trace_id

        # Fields passed through ``extra=``
        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=repr)


# Global observability adapter instance (singleton)
_observability_adapter: ObservabilityAdapter | None = None


def get_observability() -> ObservabilityAdapter:
    """
    Get the global observability adapter instance.

    If ``initialize_observability`` was never called, a default adapter
    (metrics on, tracing off) is created. Configuration is not loaded and the
    ``cachewrap`` logger is left as the application configured it.
    """
    global _observability_adapter

    if _observability_adapter is None:
        _observability_adapter = ObservabilityAdapter()

    return _observability_adapter


def initialize_observability(
    enable_metrics: bool | None = None,
    enable_tracing: bool | None = None,
    json_logs: bool | None = None,
    log_level: str | None = None,
) -> ObservabilityAdapter:
    """
    Initialize the global observability adapter and set up the ``cachewrap`` logger.

    Arguments left as None are taken from the loaded configuration
    (ENABLE_METRICS, ENABLE_TRACING, JSON_LOGS, LOG_LEVEL).

    Returns:
        Initialized ObservabilityAdapter instance

    Raises:
        ConfigurationError: If configuration has to be loaded and is invalid
    """
    global _observability_adapter

    if None in (enable_metrics, enable_tracing, json_logs, log_level):
        from ..config import get_config

        config = get_config()
        enable_metrics = config.observability.enable_metrics if enable_metrics is None else enable_metrics
        enable_tracing = config.observability.enable_tracing if enable_tracing is None else enable_tracing
        json_logs = config.observability.json_logs if json_logs is None else json_logs
        log_level = str(config.log_level) if log_level is None else log_level

    adapter = ObservabilityAdapter(enable_metrics=enable_metrics, enable_tracing=enable_tracing)
    adapter.setup_logging(json_logs=json_logs, log_level=log_level)
    _observability_adapter = adapter

    return adapter


def reset_observability() -> None:
    """Drop the global adapter so the next access builds a default one (testing only)."""
    global _observability_adapter
    _observability_adapter = None
