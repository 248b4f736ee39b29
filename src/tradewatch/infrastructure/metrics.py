# src/tradewatch/infrastructure/metrics.py
import logging

from prometheus_client import Counter, Histogram, start_http_server

log = logging.getLogger(__name__)

EVENTS_DETECTED = Counter(
    "tradewatch_events_detected_total", "New trade events detected", ["category", "persisted"]
)
EVENTS_DROPPED = Counter(
    "tradewatch_events_dropped_total", "Fetched events dropped by the classifier", ["reason"]
)
ACCOUNT_FAILURES = Counter(
    "tradewatch_account_failures_total", "Per-account poll failures", ["stage"]
)
BOOTSTRAP_SYNCED = Counter(
    "tradewatch_bootstrap_synced_total", "Historical events marked delivered during bootstrap"
)
CYCLE_LATENCY = Histogram(
    "tradewatch_poll_cycle_seconds", "Duration of one full poll cycle across all accounts"
)


def start_metrics_server(port: int) -> None:
    start_http_server(port)
    log.info("Metrics exporter listening on :%d", port)
