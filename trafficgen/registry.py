# trafficgen/registry.py
from __future__ import annotations
from typing import Iterator, List, Sequence

from .errors import ConfigError


def load_urls(path: str) -> List[str]:
    """
    Read one URL per line: whitespace trimmed, blank lines dropped, order kept.
    An empty result is returned as-is; deciding that it is fatal is up to the caller.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            text = fh.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"cannot read url file {path!r}: {e}") from e
    return [line.strip() for line in text.splitlines() if line.strip()]


class UrlRegistry(Sequence[str]):
    """Read-only list of targets shared by every worker without locking."""

    def __init__(self, urls):
        self._urls = tuple(urls)

    @classmethod
    def from_file(cls, path: str) -> "UrlRegistry":
        return cls(load_urls(path))

    def __getitem__(self, index):
        return self._urls[index]

    def __len__(self) -> int:
        return len(self._urls)

    def __iter__(self) -> Iterator[str]:
        return iter(self._urls)

    def __repr__(self) -> str:
        return f"UrlRegistry({len(self._urls)} urls)"
