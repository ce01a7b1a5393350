# trafficgen/worker.py
from __future__ import annotations
import logging
import threading
import time
from typing import Iterator, Optional, Sequence

import requests

from .config import Settings
from .cursor import SharedCursor
from .metrics import DOWNLOADED_BYTES_TOTAL, FETCHES_TOTAL, THROTTLE_WAITS_TOTAL
from .throttle import SpeedThrottle

log = logging.getLogger(__name__)


def next_index(worker_id: int, round_: int, worker_count: int, length: int) -> int:
    """Index worker ``worker_id`` fetches on its ``round_``-th iteration."""
    return (worker_id + round_ * worker_count) % length


def assigned_indices(worker_id: int, worker_count: int, length: int, rounds: Optional[int] = None) -> Iterator[int]:
    """Yield a worker's index sequence: i, i+W, i+2W, ... mod L (forever unless rounds is given)."""
    round_ = 0
    while rounds is None or round_ < rounds:
        yield next_index(worker_id, round_, worker_count, length)
        round_ += 1


class DownloadWorker:
    """
    Fetches urls[(id + round * N) mod L] forever, draining each body through
    its own SpeedThrottle and throwing the bytes away.

    Failures are logged and the loop moves straight on to the next URL; the
    only way out is the stop event.
    """
    def __init__(
        self,
        worker_id: int,
        urls: Sequence[str],
        settings: Settings,
        cursor: SharedCursor,
        stop_event: threading.Event,
        *,
        session: Optional[requests.Session] = None,
        clock=time.monotonic,
    ):
        self.worker_id = worker_id
        self.urls = urls
        self.settings = settings
        self.cursor = cursor
        self.stop_event = stop_event
        self.session = session if session is not None else requests.Session()
        self.round = 0
        self._clock = clock
        self._label = str(worker_id)
        # stop_event.wait doubles as the throttle's sleep so shutdown cuts a wait short
        self.throttle = SpeedThrottle(settings.speed_limit, clock=clock, sleep=stop_event.wait)

    def next_url(self) -> str:
        idx = next_index(self.worker_id, self.round, self.settings.threads, len(self.urls))
        self.round += 1
        return self.urls[idx]

    def run(self) -> None:
        log.info("[worker-%d] started", self.worker_id)
        try:
            while not self.stop_event.is_set():
                self.fetch(self.next_url())
        finally:
            self.session.close()
            log.info("[worker-%d] stopped after %d fetches", self.worker_id, self.round)

    def fetch(self, url: str) -> str:
        """One iteration: publish, GET, drain. Returns the outcome label."""
        self.cursor.set(url)
        # the timeout covers the whole fetch, connect and headers included
        deadline = self._clock() + self.settings.request_timeout
        try:
            resp = self.session.get(url, stream=True, timeout=self.settings.request_timeout)
        except requests.RequestException as e:
            log.error("[worker-%d] download failed: %s", self.worker_id, e)
            outcome = "error"
        except Exception:
            # e.g. urllib3 LocationParseError for a malformed host escapes requests unwrapped
            log.exception("[worker-%d] download failed: %s", self.worker_id, url)
            outcome = "error"
        else:
            with resp:
                outcome = self._drain(resp, deadline)
        FETCHES_TOTAL.labels(worker=self._label, outcome=outcome).inc()
        return outcome

    def _drain(self, resp, deadline: float) -> str:
        self.throttle.reset()
        try:
            for chunk in resp.iter_content(chunk_size=self.settings.chunk_size):
                if not chunk:
                    continue
                DOWNLOADED_BYTES_TOTAL.labels(worker=self._label).inc(len(chunk))
                if self.throttle.consume(len(chunk)):
                    THROTTLE_WAITS_TOTAL.labels(worker=self._label).inc()
                if self.stop_event.is_set():
                    return "stopped"
                if self._clock() > deadline:
                    log.error(
                        "[worker-%d] download interrupted: exceeded %ss timeout",
                        self.worker_id, self.settings.request_timeout,
                    )
                    return "interrupted"
        except (requests.RequestException, OSError) as e:
            log.error("[worker-%d] download interrupted: %s", self.worker_id, e)
            return "interrupted"
        return "ok"
