"""Progress sinks: where ProcessingStatus events go.

The orchestrator pushes each status to one ``ProgressSink``. The streaming
mode uses a ``QueueProgressSink`` as the channel between the producing
pipeline thread and the consumer.
"""

from __future__ import annotations

import json
import logging
import queue
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Protocol, runtime_checkable

from .status import ProcessingStatus

logger = logging.getLogger(__name__)


@runtime_checkable
class ProgressSink(Protocol):
    def emit(self, status: ProcessingStatus) -> None: ...


class NullProgressSink:
    def emit(self, status: ProcessingStatus) -> None:
        return None


class LoggingProgressSink:
    """Log each status; errors at ERROR, everything else at ``level``."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self._log = log or logger
        self._level = level

    def emit(self, status: ProcessingStatus) -> None:
        if status.is_error:
            self._log.error("[%s] %s", status.stage.value, status.error_detail or status.message)
            return
        self._log.log(
            self._level,
            "[%3d%%] %s: %s",
            status.progress_percent,
            status.stage.value,
            status.message,
        )


class CallbackProgressSink:
    def __init__(self, callback: Callable[[ProcessingStatus], None]) -> None:
        self._callback = callback

    def emit(self, status: ProcessingStatus) -> None:
        self._callback(status)


class FanOutProgressSink:
    """Forward every status to several sinks in order."""

    def __init__(self, *sinks: ProgressSink) -> None:
        self._sinks: List[ProgressSink] = list(sinks)

    def emit(self, status: ProcessingStatus) -> None:
        for sink in self._sinks:
            sink.emit(status)


class QueueProgressSink:
    """Channel sink: the producer pushes statuses, a consumer drains them."""

    def __init__(self, channel: Optional["queue.Queue[ProcessingStatus]"] = None) -> None:
        self.channel: "queue.Queue[ProcessingStatus]" = channel or queue.Queue()
        self.terminal_seen = False

    def emit(self, status: ProcessingStatus) -> None:
        if status.is_terminal:
            self.terminal_seen = True
        self.channel.put(status)

    def drain(self, timeout: Optional[float] = None) -> Iterator[ProcessingStatus]:
        """Yield statuses until a terminal one has been yielded.

        Raises:
            queue.Empty: If no status arrives within ``timeout`` seconds
        """
        while True:
            status = self.channel.get(timeout=timeout)
            yield status
            if status.is_terminal:
                return


class JSONLProgressSink:
    """Write one JSON object per status to a file, flushing after each line.

    Use as a context manager.
    """

    def __init__(self, jsonl_path: str) -> None:
        self.jsonl_path = Path(jsonl_path)
        self.jsonl_path.parent.mkdir(parents=True, exist_ok=True)
        self._file_handle = None

    def __enter__(self) -> "JSONLProgressSink":
        self._file_handle = open(self.jsonl_path, "a", encoding="utf-8")
        return self

    def __exit__(self, _exc_type, _exc_val, _exc_tb) -> None:
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

    def emit(self, status: ProcessingStatus) -> None:
        if not self._file_handle:
            raise RuntimeError("JSONL sink not opened (use as context manager)")
        self._file_handle.write(json.dumps(status.to_wire(), ensure_ascii=False) + "\n")
        self._file_handle.flush()
