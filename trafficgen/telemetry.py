"""telemetry.py
Periodic process/host resource report for the download engine.

Every field is read on its own and degrades to zero or "unknown" when the
underlying counter cannot be read; a bad reading never aborts a tick.

Note the CPU figure is (total - idle) / total over a single cpu_times()
snapshot, i.e. the busy ratio since boot, not the load over the last interval.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Optional

import psutil

from .config import Settings
from .cursor import SharedCursor
from .metrics import HOST_CPU_RATIO, NET_BYTES, NET_RATE_BYTES, PROCESS_MEMORY_BYTES

log = logging.getLogger(__name__)

UNKNOWN = "unknown"
MB = 1024 * 1024
GB = 1024 * 1024 * 1024

_READ_ERRORS = (psutil.Error, OSError, AttributeError, KeyError, ValueError)


@dataclass(frozen=True)
class NetSnapshot:
    recv_bytes: int = 0
    sent_bytes: int = 0


@dataclass(frozen=True)
class NetRates:
    recv_per_sec: float = 0.0
    sent_per_sec: float = 0.0


@dataclass(frozen=True)
class TelemetryReport:
    current_url: str
    workers: int
    memory_bytes: int
    cpu_percent: float
    load_average: str
    interface: str
    net: NetSnapshot
    rates: NetRates

    def as_dict(self) -> dict:
        return asdict(self)


def compute_rates(previous: NetSnapshot, current: NetSnapshot, interval: float) -> NetRates:
    """Bytes/sec per direction; a counter that went backwards (reset, wrap) gives 0."""
    if interval <= 0:
        return NetRates()
    return NetRates(
        recv_per_sec=max(0, current.recv_bytes - previous.recv_bytes) / interval,
        sent_per_sec=max(0, current.sent_bytes - previous.sent_bytes) / interval,
    )


# ------------------------------------------------------------------
# Individual readings
# ------------------------------------------------------------------

def read_process_memory(process: Optional[psutil.Process] = None) -> int:
    try:
        return (process or psutil.Process()).memory_info().rss
    except _READ_ERRORS as e:
        log.debug("[telemetry] memory read failed: %s", e)
        return 0


def read_load_average() -> str:
    try:
        one, five, fifteen = psutil.getloadavg()
    except _READ_ERRORS as e:
        log.debug("[telemetry] load average read failed: %s", e)
        return UNKNOWN
    return f"{one:.2f} {five:.2f} {fifteen:.2f}"


def read_cpu_ratio() -> float:
    try:
        times = psutil.cpu_times()
    except _READ_ERRORS as e:
        log.debug("[telemetry] cpu times read failed: %s", e)
        return 0.0
    total = sum(times)
    if total <= 0:
        return 0.0
    return (total - times.idle) / total * 100


def read_net_snapshot(interface: str) -> NetSnapshot:
    try:
        counters = psutil.net_io_counters(pernic=True)[interface]
    except _READ_ERRORS as e:
        log.debug("[telemetry] counters for %s unavailable: %s", interface, e)
        return NetSnapshot()
    return NetSnapshot(recv_bytes=counters.bytes_recv, sent_bytes=counters.bytes_sent)


# ------------------------------------------------------------------
# Sampler
# ------------------------------------------------------------------

class TelemetrySampler:
    """Samples and logs a TelemetryReport every ``settings.sleep_interval`` seconds."""

    def __init__(self, settings: Settings, cursor: SharedCursor, stop_event: threading.Event):
        self.interval = settings.sleep_interval
        self.interface = settings.net_interface
        self.workers = settings.threads
        self.cursor = cursor
        self.stop_event = stop_event
        self._process = psutil.Process()
        self._previous = read_net_snapshot(self.interface)

    def sample(self) -> TelemetryReport:
        current = read_net_snapshot(self.interface)
        rates = compute_rates(self._previous, current, self.interval)
        self._previous = current
        return TelemetryReport(
            current_url=self.cursor.get(),
            workers=self.workers,
            memory_bytes=read_process_memory(self._process),
            cpu_percent=read_cpu_ratio(),
            load_average=read_load_average(),
            interface=self.interface,
            net=current,
            rates=rates,
        )

    def report(self, rep: TelemetryReport) -> None:
        PROCESS_MEMORY_BYTES.set(rep.memory_bytes)
        HOST_CPU_RATIO.set(rep.cpu_percent)
        NET_BYTES.labels(interface=rep.interface, direction="recv").set(rep.net.recv_bytes)
        NET_BYTES.labels(interface=rep.interface, direction="sent").set(rep.net.sent_bytes)
        NET_RATE_BYTES.labels(interface=rep.interface, direction="recv").set(rep.rates.recv_per_sec)
        NET_RATE_BYTES.labels(interface=rep.interface, direction="sent").set(rep.rates.sent_per_sec)

        rule = "*" * 90
        log.info(rule, extra={"telemetry": rep.as_dict()})
        log.info("** url: %s", rep.current_url)
        log.info("** workers: %d", rep.workers)
        log.info("** memory: %.2fMB", rep.memory_bytes / MB)
        log.info("** cpu: %.3f%%", rep.cpu_percent)
        log.info("** load average: %s", rep.load_average)
        log.info(
            "** interface: %s recv: %.3fGB(%.3fMB/s) sent: %.3fMB(%.3fMB/s)",
            rep.interface,
            rep.net.recv_bytes / GB, rep.rates.recv_per_sec / MB,
            rep.net.sent_bytes / MB, rep.rates.sent_per_sec / MB,
        )
        log.info(rule)

    def run(self) -> None:
        while not self.stop_event.is_set():
            self.report(self.sample())
            self.stop_event.wait(self.interval)
