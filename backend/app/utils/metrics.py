"""Prometheus metrics for ingestion, retrieval and chat."""

from prometheus_client import Counter, Histogram

ingest_outcomes_total = Counter(
    "ingest_outcomes_total",
    "Document ingestion attempts by outcome",
    ["outcome"],
)

ingest_latency_ms = Histogram(
    "ingest_latency_ms",
    "Document ingestion latency in milliseconds",
    ["outcome"],
    buckets=[50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 120000],
)

chunk_batch_failures_total = Counter(
    "chunk_batch_failures_total",
    "Chunk insert batches that failed and were skipped",
)

retrieval_matches = Histogram(
    "retrieval_matches",
    "Chunks returned per retrieval",
    buckets=[0, 1, 2, 3, 4, 5, 10, 20],
)

intent_classifications_total = Counter(
    "intent_classifications_total",
    "Classified chat turns by category",
    ["category"],
)


class PrometheusIngestMetrics:
    """Prometheus-based ingestion metrics implementation."""

    def record_outcome(self, outcome: str, latency_ms: float) -> None:
        """Record one finished ingestion attempt."""
        ingest_outcomes_total.labels(outcome=outcome).inc()
        ingest_latency_ms.labels(outcome=outcome).observe(latency_ms)

    def inc_batch_failures(self, count: int) -> None:
        """Increment failed chunk batch counter."""
        if count:
            chunk_batch_failures_total.inc(count)
