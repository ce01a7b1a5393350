import json, logging, os, sys, time, socket

from concurrent_log_handler import ConcurrentRotatingFileHandler


DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


# ---------- Formatters ----------
class JsonFormatter(logging.Formatter):
    """JSON formatter that includes common context, extra fields and exception text."""
    _RESERVED = {
        "args", "asctime", "created", "exc_info", "exc_text", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs", "message", "msg", "name",
        "pathname", "process", "processName", "relativeCreated", "stack_info", "thread",
        "threadName", "taskName",
    }

    def __init__(self, *, extra_static=None):
        super().__init__()
        self.extra_static = extra_static or {}

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": time.strftime('%Y-%m-%dT%H:%M:%S', time.localtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "thread": record.threadName,
        }

        # Pull any logger.info(..., extra={...}) fields
        for k, v in record.__dict__.items():
            if not (k in base or k in self._RESERVED or k.startswith("_")):
                base[k] = v

        base.update(self.extra_static)

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(base, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Console line: ``2024/05/01 12:00:00 ** [INFO]: message``."""
    def __init__(self):
        super().__init__("%(asctime)s ** [%(levelname)s]: %(message)s", datefmt=DATE_FORMAT)


# ---------- Utilities ----------
def _ensure_dir(path: str) -> None:
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)


def _parse_level(val: str | int | None, default_env="LOG_LEVEL", default="INFO") -> int:
    if isinstance(val, int):
        return val
    s = (val or os.getenv(default_env, default)).upper()
    return getattr(logging, s, logging.INFO)


def setup_logging(
    *,
    app: str,
    level: str | int | None = None,
    # STDOUT handler
    stream_json: bool = False,
    # File handler
    filename: str | None = None,
    rolling_max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 10,
    file_json: bool = False,
    # Extra context
    extra_static: dict | None = None,
) -> logging.Logger:
    """
    Stdout (text or JSON) + optional rotating file.
    Call once at process start.
    """
    lvl = _parse_level(level)
    extra_static = {
        "app": app,
        "host": socket.gethostname(),
        **(extra_static or {}),
    }

    root = logging.getLogger()

    # Clear existing handlers to avoid duplicates on re-init
    for h in list(root.handlers):
        root.removeHandler(h)

    root.setLevel(lvl)

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(lvl)
    sh.setFormatter(JsonFormatter(extra_static=extra_static) if stream_json else TextFormatter())
    root.addHandler(sh)

    # File handler (rotating, safe across processes)
    if filename:
        _ensure_dir(filename)
        fh = ConcurrentRotatingFileHandler(filename=filename, maxBytes=rolling_max_bytes, backupCount=backup_count)
        fh.setLevel(lvl)
        fh.setFormatter(JsonFormatter(extra_static=extra_static) if file_json else TextFormatter())
        root.addHandler(fh)

    # urllib3 logs every new connection at DEBUG; one per fetch is too chatty
    logging.getLogger("urllib3").setLevel(max(lvl, logging.INFO))

    return root
