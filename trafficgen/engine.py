# trafficgen/engine.py
from __future__ import annotations
import logging
import threading
from typing import Callable, List, Optional, Sequence

import requests

from .config import Settings
from .cursor import SharedCursor
from .telemetry import TelemetrySampler
from .worker import DownloadWorker

log = logging.getLogger(__name__)


class TrafficEngine:
    """
    Owns the worker pool, the telemetry sampler and the one stop event they share.
    """
    def __init__(
        self,
        settings: Settings,
        urls: Sequence[str],
        *,
        session_factory: Callable[[], requests.Session] = requests.Session,
        telemetry: bool = True,
    ):
        self.settings = settings
        self.urls = urls
        self.cursor = SharedCursor()
        self.stop_event = threading.Event()
        self.workers: List[DownloadWorker] = [
            DownloadWorker(i, urls, settings, self.cursor, self.stop_event, session=session_factory())
            for i in range(settings.threads)
        ]
        self.sampler: Optional[TelemetrySampler] = (
            TelemetrySampler(settings, self.cursor, self.stop_event) if telemetry else None
        )
        self.threads: List[threading.Thread] = []

    def start(self) -> None:
        if self.sampler is not None:
            self.threads.append(threading.Thread(target=self.sampler.run, name="telemetry", daemon=True))
        for w in self.workers:
            self.threads.append(threading.Thread(target=w.run, name=f"worker-{w.worker_id}", daemon=True))
        for t in self.threads:
            t.start()

    def stop(self) -> None:
        if not self.stop_event.is_set():
            log.info("[engine] stop requested")
        self.stop_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        for t in self.threads:
            t.join(timeout)

    def wait(self, poll: float = 1.0) -> None:
        """Block until stop() is called (from a signal handler or another thread)."""
        while not self.stop_event.wait(poll):
            pass

    @property
    def alive(self) -> bool:
        return any(t.is_alive() for t in self.threads)
