import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, push_to_gateway

logger = logging.getLogger("wait_on_check")

push_registry = CollectorRegistry()

api_call_count = Counter(
    "wait_on_check_num_api_calls",
    "Total number of GitHub API calls",
    labelnames=["endpoint"],
    registry=push_registry,
)

poll_count = Counter(
    "wait_on_check_num_polls",
    "Number of check run snapshots taken",
    registry=push_registry,
)

verdict_count = Counter(
    "wait_on_check_num_verdicts",
    "Number of finished waits by outcome",
    labelnames=["outcome"],
    registry=push_registry,
)

wait_duration_seconds = Gauge(
    "wait_on_check_wait_duration_seconds",
    "Wall time spent waiting on checks in the last run",
    registry=push_registry,
)


def record_api_call(endpoint: str) -> None:
    api_call_count.labels(endpoint=endpoint).inc()


def record_verdict(outcome: str) -> None:
    verdict_count.labels(outcome=outcome).inc()


def push_metrics(gateway: Optional[str], job: str = "wait_on_check") -> None:
    if gateway is None:
        return
    logger.debug("Pushing metrics to %s", gateway)
    push_to_gateway(gateway, job=job, registry=push_registry)
