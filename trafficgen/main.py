# trafficgen/main.py
from __future__ import annotations
import logging
import signal

from .config import Settings, load_settings
from .engine import TrafficEngine
from .errors import ConfigError
from .logging_setup import setup_logging
from .metrics import start_metrics_server
from .registry import UrlRegistry

log = logging.getLogger(__name__)

# threads are told to stop, then given this long to notice
SHUTDOWN_GRACE_SECONDS = 5.0


def load_registry(settings: Settings) -> UrlRegistry:
    registry = UrlRegistry.from_file(settings.url_file)
    if not registry:
        raise ConfigError(f"url list {settings.url_file!r} is empty")
    return registry


def run(settings: Settings, *, install_signals: bool = True) -> int:
    try:
        registry = load_registry(settings)
    except ConfigError as e:
        log.error("[main] failed to load urls, exiting: %s", e)
        return 1

    log.info(
        "[main] loaded %d urls, workers: %d, speed limit: %dKB/s, monitor interval: %ds",
        len(registry), settings.threads, settings.speed_limit, settings.sleep_interval,
    )

    if settings.metrics_port:
        try:
            start_metrics_server(settings.metrics_port)
        except OSError as e:
            log.error("[main] cannot serve metrics on :%s, exiting: %s", settings.metrics_port, e)
            return 1
        log.info("[main] Prometheus metrics on :%s", settings.metrics_port)

    engine = TrafficEngine(settings, registry)
    if install_signals:
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, lambda signum, frame: engine.stop())

    engine.start()
    engine.wait()
    engine.join(SHUTDOWN_GRACE_SECONDS)
    log.info("[main] shut down")
    return 0


def main() -> int:
    settings = load_settings()
    setup_logging(
        app="trafficgen",
        level=settings.log_level,
        stream_json=settings.log_json,
        filename=settings.log_file,
    )
    return run(settings)


if __name__ == "__main__":
    raise SystemExit(main())
