"""
Prometheus metrics for vote ingestion and the block chain.

Usage:
    from votechain.metrics import metrics
    metrics.votes_received.inc()
    metrics.errors.labels(kind="StoreError").inc()
"""

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Gauge, Histogram, generate_latest


class VoteChainMetrics:
    """Counters and timings shared by the pipeline, the appender and the API"""

    def __init__(self, registry=REGISTRY):
        self.votes_received = Counter(
            'votechain_votes_received_total',
            'Votes persisted to the votes collection',
            registry=registry,
        )

        self.blocks_appended = Counter(
            'votechain_blocks_appended_total',
            'Blocks appended to the chain',
            registry=registry,
        )

        self.append_conflicts = Counter(
            'votechain_append_conflicts_total',
            'Block appends that lost a race on the index and retried',
            registry=registry,
        )

        self.append_duration = Histogram(
            'votechain_append_duration_seconds',
            'Time spent reading the tip and storing a block',
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
            registry=registry,
        )

        self.append_queue_size = Gauge(
            'votechain_append_queue_size',
            'Votes waiting for their block',
            registry=registry,
        )

        self.errors = Counter(
            'votechain_errors_total',
            'Errors by kind',
            ['kind'],
            registry=registry,
        )


metrics = VoteChainMetrics()


def get_metrics_text() -> bytes:
    return generate_latest(REGISTRY)


METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST
