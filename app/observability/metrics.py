from __future__ import annotations

import logging
from typing import Any, Protocol

from app.config import Settings

try:  # pragma: no cover - optional dependency
    from statsd import StatsClient
except Exception:  # pragma: no cover - optional dependency guard
    StatsClient = None  # type: ignore[assignment]

logger = logging.getLogger("app.metrics")


class MetricsSink(Protocol):
    """Emitter contract shared by the reporter and test doubles."""

    def timing(self, metric: str, value_ms: float, *, tags: dict[str, Any] | None = None) -> None:
        ...

    def gauge(self, metric: str, value: float, *, tags: dict[str, Any] | None = None) -> None:
        ...

    def increment(self, metric: str, value: float = 1.0, *, tags: dict[str, Any] | None = None) -> None:
        ...


class MetricsReporter:
    """Lightweight metrics emitter supporting stdout and StatsD backends."""

    def __init__(
        self,
        *,
        namespace: str = "funding_tracker",
        backend: str = "stdout",
        disabled: bool = False,
        statsd_host: str = "127.0.0.1",
        statsd_port: int = 8125,
    ) -> None:
        self._disabled = disabled
        self._namespace = namespace or "funding_tracker"
        self._backend = (backend or "stdout").lower()
        self._statsd: StatsClient | None = None
        if self._backend == "statsd" and not self._disabled:
            if StatsClient is None:
                logger.warning("statsd backend requested but statsd package is not installed.")
            else:
                try:
                    self._statsd = StatsClient(host=statsd_host, port=statsd_port, prefix="")
                except Exception as exc:  # pragma: no cover - defensive guard
                    self._log_backend_error("statsd.init", exc)

    @classmethod
    def from_settings(cls, settings: Settings) -> "MetricsReporter":
        return cls(
            namespace=settings.metrics_namespace,
            backend=settings.metrics_backend,
            disabled=settings.metrics_disable,
            statsd_host=settings.metrics_statsd_host,
            statsd_port=settings.metrics_statsd_port,
        )

    def timing(self, metric: str, value_ms: float, *, tags: dict[str, Any] | None = None) -> None:
        self._emit("timing", metric, value_ms, tags=tags)

    def gauge(self, metric: str, value: float, *, tags: dict[str, Any] | None = None) -> None:
        self._emit("gauge", metric, value, tags=tags)

    def increment(
        self, metric: str, value: float = 1.0, *, tags: dict[str, Any] | None = None
    ) -> None:
        self._emit("counter", metric, value, tags=tags)

    def _emit(
        self, metric_type: str, metric: str, value: float, *, tags: dict[str, Any] | None
    ) -> None:
        if self._disabled or value is None:
            return
        name = self._normalize_metric(metric)
        payload = {
            "metric": name,
            "value": round(float(value), 4),
            "type": metric_type,
            "tags": tags or {},
        }
        self._log_event(payload)
        if self._statsd is not None:
            try:
                if metric_type == "timing":
                    self._statsd.timing(name, value)
                elif metric_type == "gauge":
                    self._statsd.gauge(name, value)
                else:
                    self._statsd.incr(name, value)
            except Exception as exc:  # pragma: no cover - defensive guard
                self._log_backend_error(name, exc)

    def _normalize_metric(self, metric: str) -> str:
        trimmed = (metric or "").strip()
        if trimmed.startswith(f"{self._namespace}."):
            return trimmed
        return f"{self._namespace}.{trimmed}" if trimmed else self._namespace

    def _log_event(self, payload: dict[str, Any]) -> None:
        logger.debug("funding_tracker.metric", extra={"metrics": payload})

    def _log_backend_error(self, metric: str, exc: Exception) -> None:
        logger.warning(
            "metrics.backend_error",
            extra={"metric": metric, "backend": self._backend, "error": type(exc).__name__},
        )
