"""Prometheus metrics for the recognition core.

Metric objects are defined at import time. Callers update them through
``safe_inc``/``safe_observe`` so a metrics failure never affects a recognition.
"""

from __future__ import annotations

from typing import Any

from prometheus_client import Counter, Histogram

vision_recognition_requests_total = Counter(
    "vision_recognition_requests_total",
    "Number of image-to-LaTeX recognition requests",
    ["provider", "status"],
)
vision_recognition_errors_total = Counter(
    "vision_recognition_errors_total",
    "Recognition errors by normalized error kind",
    ["provider", "code"],
)
vision_recognition_duration_seconds = Histogram(
    "vision_recognition_duration_seconds",
    "Recognition end-to-end duration including the provider call",
    ["provider"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)
vision_image_size_bytes = Histogram(
    "vision_image_size_bytes",
    "Size of input images in bytes",
    buckets=[10_000, 100_000, 500_000, 1_000_000, 5_000_000, 20_000_000],
)
vision_model_discovery_total = Counter(
    "vision_model_discovery_total",
    "Model catalog discovery attempts by outcome (catalog|fallback|static)",
    ["provider", "outcome"],
)


def safe_inc(counter: Any, **labels: str) -> None:
    try:
        counter.labels(**labels).inc() if labels else counter.inc()
    except Exception:
        pass


def safe_observe(hist: Any, value: float, **labels: str) -> None:
    try:
        hist.labels(**labels).observe(value) if labels else hist.observe(value)
    except Exception:
        pass
