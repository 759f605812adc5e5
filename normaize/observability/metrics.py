"""
Prometheus metrics collection for normaize-ingest

This module provides metrics instrumentation for monitoring file
processing, storage calls and fault injection.
"""
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# PROCESSING METRICS
# =======================

files_processed_total = Counter(
    name="ingest_files_processed_total",
    documentation="Total number of files run through the processing pipeline",
    labelnames=["file_format", "status"],  # status: processed, partial, failed
    registry=REGISTRY,
)

processing_duration_seconds = Histogram(
    name="ingest_processing_duration_seconds",
    documentation="Time spent processing a file in seconds",
    labelnames=["file_format"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

rows_ingested_total = Counter(
    name="ingest_rows_ingested_total",
    documentation="Total number of rows produced by parsers",
    labelnames=["file_format"],
    registry=REGISTRY,
)

columns_truncated_total = Counter(
    name="ingest_columns_truncated_total",
    documentation="Number of datasets whose headers were truncated to the column cap",
    labelnames=["file_format"],
    registry=REGISTRY,
)

format_errors_total = Counter(
    name="ingest_format_errors_total",
    documentation="Total number of malformed files detected by parsers",
    labelnames=["file_format"],
    registry=REGISTRY,
)

hash_failures_total = Counter(
    name="ingest_hash_failures_total",
    documentation="Content hash generations that degraded to an empty hash",
    registry=REGISTRY,
)

# =======================
# STORAGE METRICS
# =======================

storage_operations_total = Counter(
    name="ingest_storage_operations_total",
    documentation="Storage adapter calls",
    labelnames=["operation", "status"],  # status: success, failure
    registry=REGISTRY,
)

# =======================
# CHAOS METRICS
# =======================

chaos_triggers_total = Counter(
    name="ingest_chaos_triggers_total",
    documentation="Total number of triggered fault-injection scenarios",
    labelnames=["scenario"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    histogram.labels(**labels).observe(value)


def get_counter_value(counter: Counter, **labels) -> float:
    """Read the current value of a counter sample (0.0 when never incremented)."""
    sample_name = f"{counter._name}_total"
    value = REGISTRY.get_sample_value(sample_name, labels or None)
    return value or 0.0


def record_file_processed(
    file_format: str,
    status: str,
    row_count: int,
    duration_seconds: float,
) -> None:
    """
    Record the outcome of one pipeline run.

    Args:
        file_format: Detected format tag
        status: processed, partial or failed
        row_count: Rows produced by the parser
        duration_seconds: Wall-clock duration of the run
    """
    increment_counter(files_processed_total, 1, file_format=file_format, status=status)
    if row_count > 0:
        increment_counter(rows_ingested_total, row_count, file_format=file_format)
    observe_histogram(processing_duration_seconds, duration_seconds, file_format=file_format)
