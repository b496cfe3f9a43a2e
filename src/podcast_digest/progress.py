"""Byte-level progress for source downloads.

The downloader reports transferred bytes through ``transfer_progress``. Front
ends install a reporter factory with ``set_progress_factory`` (the CLI installs
a tqdm bar); without one, bytes are only counted.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, Optional, Protocol


class ProgressReporter(Protocol):
    """Receives the number of bytes moved since the previous call."""

    def update(self, advance: int) -> None: ...


ProgressFactory = Callable[[Optional[int], str], ContextManager[ProgressReporter]]


class ByteCounter:
    """Reporter that keeps a running total and renders nothing."""

    def __init__(self, total: Optional[int] = None) -> None:
        self.total = total
        self.transferred = 0

    def update(self, advance: int) -> None:
        self.transferred += advance


@contextmanager
def _counting_progress(total: Optional[int], description: str) -> Iterator[ProgressReporter]:
    yield ByteCounter(total)


_factory_lock = threading.Lock()
_progress_factory: ProgressFactory = _counting_progress


def set_progress_factory(factory: Optional[ProgressFactory]) -> None:
    """Install ``factory`` for every later transfer; None restores plain counting."""
    global _progress_factory
    with _factory_lock:
        _progress_factory = factory or _counting_progress


def get_progress_factory() -> ProgressFactory:
    with _factory_lock:
        return _progress_factory


@contextmanager
def transfer_progress(total: Optional[int], description: str) -> Iterator[ProgressReporter]:
    """Yield a reporter from the installed factory for one transfer.

    Args:
        total: Expected byte count, None when the server sent no Content-Length
        description: Label shown by rendering reporters
    """
    with get_progress_factory()(total, description) as reporter:
        yield reporter


__all__ = [
    "ByteCounter",
    "ProgressFactory",
    "ProgressReporter",
    "get_progress_factory",
    "set_progress_factory",
    "transfer_progress",
]
