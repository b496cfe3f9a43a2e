"""Concurrent chunk transcription with a fixed ceiling on in-flight calls."""

from __future__ import annotations

import concurrent.futures as futures
import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Sequence

from .. import config_constants
from ..exceptions import CancelledError, TranscriptionError
from ..models import AudioChunk
from ..utils.cancellation import raise_if_cancelled
from ..utils.retry import retry_with_exponential_backoff

logger = logging.getLogger(__name__)

TranscribeFn = Callable[[str], str]


class _ChunkSkipped(Exception):
    """A chunk was not started because another chunk already failed."""


class BoundedTranscriber:
    """Transcribe chunks with at most ``concurrency`` calls in flight.

    All chunks must succeed. The first failure stops chunks that have not
    started yet and the whole batch raises ``TranscriptionError``. With
    ``retry_attempts > 0`` each chunk is retried with exponential backoff
    before it counts as failed.

    Transcripts are joined in ``sequence_index`` order with a single space.
    Words heard twice in the overlap window are not deduplicated.
    """

    def __init__(
        self,
        transcribe_fn: TranscribeFn,
        concurrency: int = config_constants.DEFAULT_TRANSCRIPTION_CONCURRENCY,
        retry_attempts: int = config_constants.DEFAULT_CHUNK_RETRY_ATTEMPTS,
        retry_initial_delay: float = config_constants.DEFAULT_CHUNK_RETRY_INITIAL_DELAY,
        retry_max_delay: float = config_constants.DEFAULT_CHUNK_RETRY_MAX_DELAY,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self._transcribe_fn = transcribe_fn
        self.concurrency = concurrency
        self.retry_attempts = retry_attempts
        self.retry_initial_delay = retry_initial_delay
        self.retry_max_delay = retry_max_delay

    def _transcribe_one(
        self,
        chunk: AudioChunk,
        stop: threading.Event,
        cancel_event: Optional[threading.Event],
    ) -> str:
        raise_if_cancelled(cancel_event, "transcribing")
        if stop.is_set():
            raise _ChunkSkipped()
        if not chunk.path:
            raise TranscriptionError(
                f"Chunk {chunk.sequence_index} has no audio file",
                failed_chunks=[chunk.sequence_index],
            )
        path = chunk.path

        def attempt() -> str:
            raise_if_cancelled(cancel_event, "transcribing")
            return self._transcribe_fn(path)

        started = time.time()
        text = retry_with_exponential_backoff(
            attempt,
            max_retries=self.retry_attempts,
            initial_delay=self.retry_initial_delay,
            max_delay=self.retry_max_delay,
            non_retryable_exceptions=(CancelledError,),
            sleep=cancel_event.wait if cancel_event is not None else time.sleep,
            description=f"chunk {chunk.sequence_index} transcription",
        )
        logger.debug(
            "Chunk %d transcribed in %.1fs (%d chars)",
            chunk.sequence_index,
            time.time() - started,
            len(text or ""),
        )
        return (text or "").strip()

    def transcribe(
        self,
        chunks: Sequence[AudioChunk],
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Transcribe every chunk and return the reassembled transcript.

        Raises:
            TranscriptionError: If any chunk fails; ``failed_chunks`` lists them
            CancelledError: If ``cancel_event`` is set before all chunks finish
        """
        if not chunks:
            raise TranscriptionError("No audio chunks to transcribe")
        raise_if_cancelled(cancel_event, "transcribing")

        ordered = sorted(chunks, key=lambda c: c.sequence_index)
        results: Dict[int, str] = {}
        failures: Dict[int, BaseException] = {}
        cancelled = False
        stop = threading.Event()
        workers = min(self.concurrency, len(ordered))

        logger.info("Transcribing %d chunk(s) with up to %d in flight", len(ordered), workers)
        with futures.ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="transcribe"
        ) as executor:
            future_to_chunk = {
                executor.submit(self._transcribe_one, chunk, stop, cancel_event): chunk
                for chunk in ordered
            }
            for future in futures.as_completed(future_to_chunk):
                chunk = future_to_chunk[future]
                try:
                    results[chunk.sequence_index] = future.result()
                except (futures.CancelledError, _ChunkSkipped):
                    continue
                except CancelledError:
                    cancelled = True
                    stop.set()
                except Exception as exc:
                    logger.warning("Chunk %d failed: %s", chunk.sequence_index, exc)
                    failures[chunk.sequence_index] = exc
                    stop.set()
                    for pending in future_to_chunk:
                        pending.cancel()
                else:
                    logger.info("Transcribed chunk %d/%d", len(results), len(ordered))

        if cancelled:
            raise CancelledError(stage="transcribing")
        if failures:
            first_index = min(failures)
            raise TranscriptionError(
                f"Transcription failed for {len(failures)} of {len(ordered)} chunk(s); "
                f"chunk {first_index}: {failures[first_index]}",
                failed_chunks=list(failures),
            ) from failures[first_index]

        parts: List[str] = [results[c.sequence_index] for c in ordered]
        return " ".join(part for part in parts if part)
