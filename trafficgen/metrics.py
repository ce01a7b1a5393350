# trafficgen/metrics.py
from __future__ import annotations
from prometheus_client import Counter, Gauge, start_http_server

# Download worker metrics
FETCHES_TOTAL = Counter(
    "trafficgen_fetches_total",
    "Fetches attempted by the download workers",
    ["worker", "outcome"]  # ok|error|interrupted|stopped
)

DOWNLOADED_BYTES_TOTAL = Counter(
    "trafficgen_downloaded_bytes_total",
    "Response body bytes read and discarded",
    ["worker"]
)

THROTTLE_WAITS_TOTAL = Counter(
    "trafficgen_throttle_waits_total",
    "Times a worker blocked on its speed throttle",
    ["worker"]
)

# Telemetry sampler gauges
PROCESS_MEMORY_BYTES = Gauge(
    "trafficgen_process_memory_bytes",
    "Resident set size of the trafficgen process"
)

HOST_CPU_RATIO = Gauge(
    "trafficgen_host_cpu_ratio_percent",
    "Non-idle share of host CPU time since boot"
)

NET_BYTES = Gauge(
    "trafficgen_net_bytes",
    "Cumulative bytes on the monitored interface",
    ["interface", "direction"]  # recv|sent
)

NET_RATE_BYTES = Gauge(
    "trafficgen_net_rate_bytes_per_second",
    "Byte rate on the monitored interface over the last telemetry interval",
    ["interface", "direction"]
)


def start_metrics_server(port: int, addr: str = "0.0.0.0"):
    """
    Serve the metrics payload on / at the given port
    (Prometheus scrapes http://host:port/).
    """
    start_http_server(port, addr=addr)
