# tests/test_worker.py
import threading

import pytest
import requests
from prometheus_client import REGISTRY
from urllib3.exceptions import LocationParseError

from fakes import FakeClock, FakeResponse, FakeSession
from trafficgen.config import Settings
from trafficgen.cursor import SharedCursor
from trafficgen.worker import DownloadWorker, assigned_indices, next_index


def _worker(session, urls=("a", "b", "c"), worker_id=0, clock=None, **settings):
    settings.setdefault("threads", 2)
    kwargs = {"session": session}
    if clock is not None:
        kwargs["clock"] = clock
    return DownloadWorker(
        worker_id, list(urls), Settings(**settings), SharedCursor(), threading.Event(), **kwargs
    )


def test_next_index_strides_by_worker_count():
    assert [next_index(1, r, 3, 10) for r in range(5)] == [1, 4, 7, 0, 3]


@pytest.mark.parametrize("length,workers", [(1, 1), (5, 2), (6, 3), (7, 7), (10, 3)])
def test_one_round_covers_every_index_once(length, workers):
    rounds = -(-length // workers)   # ceil(L / W)
    covered = [
        next_index(i, r, workers, length)
        for i in range(workers)
        for r in range(rounds)
        if i + r * workers < length
    ]
    assert sorted(covered) == list(range(length))


@pytest.mark.parametrize("length,workers", [(4, 2), (9, 3), (5, 5)])
def test_full_rounds_partition_the_list(length, workers):
    rounds = length // workers
    covered = [idx for i in range(workers) for idx in assigned_indices(i, workers, length, rounds=rounds)]
    assert sorted(covered) == list(range(length))


def test_three_urls_two_workers_sequences():
    assert list(assigned_indices(0, 2, 3, rounds=6)) == [0, 2, 1, 0, 2, 1]
    assert list(assigned_indices(1, 2, 3, rounds=6)) == [1, 0, 2, 1, 0, 2]


def test_next_url_advances_round():
    w = _worker(FakeSession(), worker_id=1)
    assert [w.next_url() for _ in range(4)] == ["b", "a", "c", "b"]
    assert w.round == 4


def test_fetch_publishes_url_and_drains_body():
    resp = FakeResponse([b"x" * 1024] * 3)
    session = FakeSession(lambda url: resp)
    w = _worker(session)
    assert w.fetch("http://target/file") == "ok"
    assert w.cursor.get() == "http://target/file"
    assert session.calls == ["http://target/file"]
    assert resp.closed
    assert resp.chunk_size == 1024


def test_fetch_failure_is_logged_and_not_raised(caplog):
    session = FakeSession(lambda url: requests.ConnectionError("connection refused"))
    w = _worker(session, worker_id=1)
    with caplog.at_level("ERROR"):
        assert w.fetch("http://down") == "error"
    assert "[worker-1] download failed: connection refused" in caplog.text
    assert w.cursor.get() == "http://down"


def test_mid_stream_error_stops_reading(caplog):
    resp = FakeResponse([b"x" * 10], error=requests.exceptions.ChunkedEncodingError("reset by peer"))
    w = _worker(FakeSession(lambda url: resp))
    with caplog.at_level("ERROR"):
        assert w.fetch("http://flaky") == "interrupted"
    assert "download interrupted: reset by peer" in caplog.text
    assert resp.closed


def test_overall_timeout_cuts_slow_body(caplog):
    clock = FakeClock()

    def slow(_chunk):
        clock.now += 31

    resp = FakeResponse([b"x"] * 10, on_chunk=slow)
    w = _worker(FakeSession(lambda url: resp), clock=clock, speed_limit=0, request_timeout=60)
    with caplog.at_level("ERROR"):
        assert w.fetch("http://slow") == "interrupted"
    assert "exceeded 60s timeout" in caplog.text
    assert resp.closed


def test_throttle_blocks_worker_at_speed_limit():
    clock = FakeClock()
    resp = FakeResponse([b"x" * 1024] * 8)
    w = _worker(FakeSession(lambda url: resp), clock=clock, speed_limit=2)
    # route the throttle's waits through the fake clock
    w.throttle._sleep = clock.sleep
    assert w.fetch("http://big") == "ok"
    assert w.throttle.waits == 4
    assert clock.now == pytest.approx(4.0)


def test_run_keeps_going_after_failures_until_stopped():
    stop = threading.Event()
    outcomes = iter([requests.Timeout("t1"), requests.ConnectionError("c1")])

    def responder(url):
        if len(session.calls) >= 6:
            stop.set()
        return next(outcomes, FakeResponse([b"ok"]))

    session = FakeSession(responder)
    w = DownloadWorker(0, ["a", "b", "c"], Settings(threads=2), SharedCursor(), stop, session=session)
    w.run()
    assert session.calls == ["a", "c", "b", "a", "c", "b"]
    assert session.closed


def test_timeout_includes_time_to_headers(caplog):
    clock = FakeClock()
    resp = FakeResponse([b"x"] * 3)

    def slow_headers(url):
        clock.now += 61
        return resp

    w = _worker(FakeSession(slow_headers), clock=clock, speed_limit=0, request_timeout=60)
    with caplog.at_level("ERROR"):
        assert w.fetch("http://slow-headers") == "interrupted"
    assert "exceeded 60s timeout" in caplog.text
    assert resp.closed


def test_unwrapped_url_error_does_not_kill_worker(caplog):
    stop = threading.Event()

    def responder(url):
        if len(session.calls) >= 4:
            stop.set()
        return LocationParseError(url)

    session = FakeSession(responder)
    w = DownloadWorker(0, ["http://bad", "http://worse"], Settings(threads=1), SharedCursor(), stop, session=session)
    with caplog.at_level("ERROR"):
        w.run()
    assert session.calls == ["http://bad", "http://worse", "http://bad", "http://worse"]
    assert "[worker-0] download failed" in caplog.text


def test_overlong_host_label_is_a_failed_fetch():
    url = "http://" + "a" * 300 + ".com/"
    w = _worker(requests.Session(), urls=[url])
    assert w.fetch(url) == "error"


def test_failed_fetch_counts_error_outcome():
    def errors():
        return REGISTRY.get_sample_value("trafficgen_fetches_total", {"worker": "7", "outcome": "error"}) or 0.0

    before = errors()
    w = _worker(FakeSession(lambda url: requests.ConnectionError("refused")), worker_id=7)
    w.fetch("http://down")
    w.fetch("http://down")
    assert errors() == before + 2
