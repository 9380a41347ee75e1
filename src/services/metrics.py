"""CloudWatch custom metrics emitter with background batching.

Publishes per-call metrics (count, latency, errors) for the completion
service and every tool the agent dispatches, plus one data point per turn
describing how the agent loop ended.

Design
------
* Metrics are collected in a thread-safe in-memory buffer.
* A daemon thread flushes the buffer to CloudWatch every
  ``FLUSH_INTERVAL_SECONDS`` (default 60 s).
* When running locally (``METRICS_ENABLED != "true"``), metrics are
  logged at DEBUG level but **not** pushed to CloudWatch.

Usage
-----
>>> from src.services.metrics import metrics
>>> metrics.record_success("openai", "responses.create", latency_ms=812.0)
>>> metrics.record_failure("tools", "cancel_event", error_type="ConnectError")
>>> metrics.record_loop_outcome("exhausted", iterations=3)
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "AgendaAgent"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # CloudWatch API limit per PutMetricData call


def _dim(name: str, value: str) -> dict[str, str]:
    return {"Name": name, "Value": value}


def _datum(
    name: str,
    dimensions: list[dict[str, str]],
    value: float,
    unit: str,
    timestamp: datetime,
) -> dict[str, Any]:
    """One ``MetricData`` entry in the shape ``put_metric_data`` expects."""
    return {
        "MetricName": name,
        "Dimensions": dimensions,
        "Timestamp": timestamp,
        "Value": value,
        "Unit": unit,
    }


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None  # lazy-init

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Public API ────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        """Record a successful external call."""
        self._record_call(service, operation, "success", latency_ms)
        logger.debug("Metric: %s %s success latency=%.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        """Record a failed external call.

        Latency is only published when known (``latency_ms > 0``).
        """
        self._record_call(service, operation, "failure", latency_ms, error_type=error_type)
        logger.debug(
            "Metric: %s %s failure error=%s latency=%.1fms",
            service, operation, error_type, latency_ms,
        )

    def record_loop_outcome(self, outcome: str, iterations: int) -> None:
        """Record how one agent turn ended and how many iterations it took."""
        now = datetime.now(UTC)
        outcome_dim = [_dim("Outcome", outcome)]
        self._append(_datum("AgentLoop/TurnCount", outcome_dim, 1, "Count", now))
        self._append(_datum("AgentLoop/Iterations", outcome_dim, iterations, "Count", now))
        logger.debug("Metric: agent loop %s after %d iteration(s)", outcome, iterations)

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer[:]
            self._buffer.clear()

        if not self._enabled:
            logger.debug("Metrics flush skipped (not enabled): %d items", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    # ── Internal ──────────────────────────────────────────────────────

    def _record_call(
        self,
        service: str,
        operation: str,
        status: str,
        latency_ms: float,
        error_type: str | None = None,
    ) -> None:
        """Buffer the per-call data points shared by success and failure."""
        now = datetime.now(UTC)
        service_dim = _dim("Service", service)

        self._append(
            _datum("ExternalCall/RequestCount", [service_dim, _dim("Status", status)], 1, "Count", now)
        )
        if error_type is not None:
            self._append(
                _datum("ExternalCall/ErrorCount", [service_dim, _dim("ErrorType", error_type)], 1, "Count", now)
            )
        if latency_ms > 0:
            self._append(
                _datum(
                    "ExternalCall/Latency",
                    [service_dim, _dim("Operation", operation)],
                    latency_ms,
                    "Milliseconds",
                    now,
                )
            )

    def _append(self, metric_data: dict[str, Any]) -> None:
        with self._lock:
            self._buffer.append(metric_data)

    def _start_flush_thread(self) -> None:
        """Start a daemon thread that flushes metrics periodically."""

        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        t = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        t.start()
        atexit.register(self.flush)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


# ── Module-level singleton ──────────────────────────────────────────
metrics = MetricsClient()
