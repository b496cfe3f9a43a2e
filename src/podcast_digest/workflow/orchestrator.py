"""The pipeline state machine: download, transcribe, summarize, synthesize.

Stages advance in a fixed order with fixed progress markers::

    downloading(10) -> downloaded(20) -> transcribing(25) -> transcribed(40)
    -> summarizing(50) -> summarized(70) -> generating-speech(80) -> complete(100)

``error`` is reachable from any stage. Each stage consults the cache first:
the source audio (episode cache), the transcript blob, and the full result
(summary cache). A full-result hit goes straight from ``downloading`` to
``complete``.

``run`` blocks and returns a ``ProcessResult``; ``stream`` runs the same
producer on a worker thread and yields each status from a queue channel.
"""

from __future__ import annotations

import io
import logging
import os
import threading
import time
from contextlib import nullcontext
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, ContextManager, Dict, Iterator, List, Optional, Tuple

from .. import config, downloader
from ..audio.chunker import AudioChunker
from ..audio.transcriber import BoundedTranscriber
from ..cache.consistency import EPISODE, SUMMARY, CacheConsistencyChecker
from ..cache.keys import ArtifactNames, derive_cache_key
from ..exceptions import (
    CancelledError,
    PipelineError,
    StorageError,
    SummarizationError,
    SynthesisError,
    TranscriptionError,
)
from ..models import EpisodeRecord, ProcessResult, SummaryRecord
from ..providers.base import AIProvider
from ..storage.base import ArtifactStore, MetadataStore, StorageLayout
from ..utils.cancellation import raise_if_cancelled
from ..utils.filesystem import create_work_dir, remove_work_dir
from ..utils.redaction import redact_text
from ..utils.text import trim_non_alphanumeric, word_count
from .inflight import InFlightRegistry
from .sinks import FanOutProgressSink, NullProgressSink, ProgressSink, QueueProgressSink
from .status import ProcessingStatus, Stage, status_for

logger = logging.getLogger(__name__)

DownloadFn = Callable[..., int]


@dataclass
class _RunContext:
    locator: str
    settings: config.ProviderSettings
    sink: ProgressSink
    cancel_event: threading.Event
    output_path: Optional[str] = None
    key: Optional[str] = None
    stage: Stage = Stage.DOWNLOADING
    started: float = field(default_factory=time.monotonic)
    work_dir: Optional[str] = None
    was_cached: bool = False
    transcript_locator: str = ""
    created_episode: bool = False
    created_blobs: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def names(self) -> ArtifactNames:
        if self.key is None:
            raise RuntimeError("cache key not derived yet")
        return ArtifactNames(self.key)

    def elapsed(self) -> float:
        return round(time.monotonic() - self.started, 3)


class PipelineOrchestrator:
    """Run the digest pipeline for one locator per call.

    Instances are safe to share between threads; all per-run state lives in a
    private context object.
    """

    def __init__(
        self,
        cfg: config.Config,
        artifacts: ArtifactStore,
        metadata: MetadataStore,
        provider: AIProvider,
        *,
        chunker: Optional[AudioChunker] = None,
        download_fn: Optional[DownloadFn] = None,
        inflight: Optional[InFlightRegistry] = None,
    ) -> None:
        self.cfg = cfg
        self.layout = StorageLayout.from_config(cfg)
        self._artifacts = artifacts
        self._metadata = metadata
        self._provider = provider
        self._checker = CacheConsistencyChecker(artifacts, metadata, self.layout)
        self._chunker = chunker or AudioChunker.from_config(cfg)
        self._download = download_fn or downloader.download_to_file
        self._inflight = inflight or InFlightRegistry()

    @classmethod
    def from_config(
        cls, cfg: config.Config, provider: Optional[AIProvider] = None
    ) -> "PipelineOrchestrator":
        """Wire stores and provider from configuration."""
        from ..providers.factory import create_provider
        from ..storage.factory import create_artifact_store, create_metadata_store

        artifacts = create_artifact_store(cfg)
        metadata = create_metadata_store(cfg, artifacts)
        return cls(cfg, artifacts, metadata, provider or create_provider(cfg))

    def run(
        self,
        locator: str,
        *,
        overrides: Optional[config.ProviderOverrides] = None,
        sink: Optional[ProgressSink] = None,
        cancel_event: Optional[threading.Event] = None,
        output_path: Optional[str] = None,
    ) -> ProcessResult:
        """Run the pipeline to completion and return the result.

        Every transition is reported to ``sink``. On failure a single terminal
        error status is emitted and the exception is re-raised.

        Args:
            locator: Source audio URL, or a previously derived cache key.
            overrides: Per-call provider overrides.
            sink: Receives one status per transition.
            cancel_event: Set by the caller to cancel the run.
            output_path: When given, the summary audio is also copied here.

        Raises:
            PipelineError: For any pipeline failure, including cancellation
        """
        ctx = _RunContext(
            locator=locator,
            settings=self.cfg.provider_settings(overrides),
            sink=sink or NullProgressSink(),
            cancel_event=cancel_event or threading.Event(),
            output_path=output_path,
        )
        return self._run(ctx)

    def stream(
        self,
        locator: str,
        *,
        overrides: Optional[config.ProviderOverrides] = None,
        sink: Optional[ProgressSink] = None,
        cancel_event: Optional[threading.Event] = None,
        output_path: Optional[str] = None,
    ) -> Iterator[ProcessingStatus]:
        """Run the pipeline on a worker thread and yield each status.

        The last status yielded is always terminal. Closing the generator early
        cancels the run and waits for its cleanup.
        """
        cancel_event = cancel_event or threading.Event()
        channel = QueueProgressSink()
        target: ProgressSink = FanOutProgressSink(channel, sink) if sink else channel

        def produce() -> None:
            try:
                self.run(
                    locator,
                    overrides=overrides,
                    sink=target,
                    cancel_event=cancel_event,
                    output_path=output_path,
                )
            except Exception as exc:
                # Already reported as the terminal error status unless a sink failed first
                logger.debug("Streaming run ended with %s: %s", type(exc).__name__, exc)
                if not channel.terminal_seen:
                    detail = redact_text(str(exc)) or type(exc).__name__
                    channel.emit(status_for(Stage.ERROR, detail, error_detail=detail))
            finally:
                if not channel.terminal_seen:
                    detail = "Pipeline worker stopped before reporting a result"
                    logger.error(detail)
                    channel.emit(status_for(Stage.ERROR, detail, error_detail=detail))

        worker = threading.Thread(target=produce, name="digest-pipeline", daemon=True)
        worker.start()
        try:
            yield from channel.drain()
        finally:
            if worker.is_alive():
                cancel_event.set()
            worker.join()

    def _run(self, ctx: _RunContext) -> ProcessResult:
        try:
            ctx.key = derive_cache_key(ctx.locator)
            with self._dedupe(ctx.key):
                result = self._execute(ctx)
        except CancelledError as exc:
            logger.info("Run for %s cancelled during %s", ctx.key, ctx.stage.value)
            self._rollback(ctx)
            self._cleanup(ctx)
            self._emit_error(ctx, exc)
            raise
        except Exception as exc:
            logger.error("Run for %s failed during %s: %s", ctx.key, ctx.stage.value, exc)
            logger.debug("Failure details", exc_info=True)
            self._cleanup(ctx)
            self._emit_error(ctx, exc)
            raise

        self._cleanup(ctx)
        result.elapsed_seconds = ctx.elapsed()
        try:
            self._emit(
                ctx,
                Stage.COMPLETE,
                result.message,
                was_cached=result.was_cached,
                transcript_word_count=result.transcript_word_count,
                summary_word_count=result.summary_word_count,
                summary_text=result.summary_text,
                summary_artifact_path=result.summary_artifact_path,
            )
        except Exception as exc:
            # Artifacts stay committed; a rerun is served from cache
            logger.error("Progress sink failed while reporting completion of %s: %s", ctx.key, exc)
            self._emit_error(ctx, exc)
            raise
        logger.info("Run for %s complete in %.1fs", ctx.key, result.elapsed_seconds)
        return result

    def _dedupe(self, key: str) -> ContextManager[Any]:
        if self.cfg.dedupe_in_flight:
            return self._inflight.hold(key)
        return nullcontext()

    def _execute(self, ctx: _RunContext) -> ProcessResult:
        names = ctx.names
        key = names.key

        ctx.was_cached = self._checker.is_available(EPISODE, key)
        self._emit(
            ctx,
            Stage.DOWNLOADING,
            "Found episode audio in cache" if ctx.was_cached else "Downloading episode audio",
            was_cached=ctx.was_cached,
        )
        self._check_cancel(ctx)

        if self._checker.is_available(SUMMARY, key):
            return self._result_from_cache(ctx)

        ctx.work_dir = create_work_dir(key, self.cfg.work_dir)
        audio_path = os.path.join(ctx.work_dir, names.source_audio)
        if ctx.was_cached:
            self._artifacts.get_to_file(self.layout.episodes, names.source_audio, audio_path)
        else:
            self._download_episode(ctx, audio_path)
        self._check_cancel(ctx)
        self._emit(ctx, Stage.DOWNLOADED, "Episode audio ready", was_cached=ctx.was_cached)

        self._emit(ctx, Stage.TRANSCRIBING, "Transcribing episode audio")
        transcript = self._obtain_transcript(ctx, audio_path)
        transcript_words = word_count(transcript)
        self._check_cancel(ctx)
        self._emit(
            ctx,
            Stage.TRANSCRIBED,
            f"Transcript ready ({transcript_words} words)",
            transcript_word_count=transcript_words,
        )

        self._emit(ctx, Stage.SUMMARIZING, "Summarizing transcript")
        summary = self._summarize(ctx, transcript)
        summary_words = word_count(summary)
        summary_text_locator = self._put_blob(
            ctx, self.layout.transcripts, names.summary_text, summary.encode("utf-8")
        )
        self._check_cancel(ctx)
        self._emit(
            ctx,
            Stage.SUMMARIZED,
            f"Summary ready ({summary_words} words)",
            transcript_word_count=transcript_words,
            summary_word_count=summary_words,
            summary_text=summary,
        )

        self._emit(ctx, Stage.GENERATING_SPEECH, "Generating summary audio")
        summary_audio_locator = self._synthesize(ctx, summary)
        self._check_cancel(ctx)

        self._metadata.save_summary(
            key,
            SummaryRecord(
                episode_key=key,
                transcript_artifact_path=ctx.transcript_locator,
                summary_text_artifact_path=summary_text_locator,
                summary_audio_artifact_path=summary_audio_locator,
                transcript_word_count=transcript_words,
                summary_word_count=summary_words,
            ),
        )
        self._copy_output(ctx)

        return ProcessResult(
            success=True,
            message="Summary audio ready",
            episode_key=key,
            was_cached=ctx.was_cached,
            summary_was_cached=False,
            summary_artifact_path=summary_audio_locator,
            local_summary_path=ctx.output_path,
            summary_text=summary,
            transcript_word_count=transcript_words,
            summary_word_count=summary_words,
        )

    def _download_episode(self, ctx: _RunContext, audio_path: str) -> None:
        names = ctx.names
        size_bytes = self._download(
            ctx.locator,
            audio_path,
            user_agent=self.cfg.user_agent,
            timeout=self.cfg.timeout,
            retry_total=self.cfg.http_retry_total,
            backoff_factor=self.cfg.http_backoff_factor,
            cancel_event=ctx.cancel_event,
        )
        self._check_cancel(ctx)
        artifact_path = self._artifacts.put_file(
            self.layout.episodes, names.source_audio, audio_path
        )
        ctx.created_blobs.append((self.layout.episodes, names.source_audio))
        self._check_cancel(ctx)
        self._metadata.save_episode(
            EpisodeRecord(
                cache_key=names.key,
                original_locator=ctx.locator,
                artifact_path=artifact_path,
                size_bytes=size_bytes,
            )
        )
        ctx.created_episode = True

    def _obtain_transcript(self, ctx: _RunContext, audio_path: str) -> str:
        names = ctx.names
        container = self.layout.transcripts
        if self._artifacts.exists(container, names.transcript):
            cached = self._read_text(container, names.transcript)
            if cached.strip():
                logger.info("Using cached transcript for %s", names.key)
                ctx.transcript_locator = self._artifacts.locator(container, names.transcript)
                return cached
            logger.warning("Cached transcript for %s is empty; transcribing again", names.key)

        chunks = self._chunker.split(audio_path, ctx.work_dir or "", ctx.cancel_event)
        transcriber = BoundedTranscriber(
            partial(
                self._provider.transcribe, settings=ctx.settings, cancel_event=ctx.cancel_event
            ),
            concurrency=self.cfg.transcription_concurrency,
            retry_attempts=self.cfg.chunk_retry_attempts,
            retry_initial_delay=self.cfg.chunk_retry_initial_delay,
            retry_max_delay=self.cfg.chunk_retry_max_delay,
        )
        transcript = transcriber.transcribe(chunks, ctx.cancel_event)
        if not transcript.strip():
            raise TranscriptionError("Transcription produced no text")
        self._check_cancel(ctx)
        ctx.transcript_locator = self._put_blob(
            ctx, container, names.transcript, transcript.encode("utf-8")
        )
        return transcript

    def _summarize(self, ctx: _RunContext, transcript: str) -> str:
        try:
            summary = self._provider.summarize(transcript, ctx.settings, ctx.cancel_event)
        except PipelineError:
            raise
        except Exception as exc:
            raise SummarizationError(f"Summarization failed: {exc}") from exc
        summary = trim_non_alphanumeric(summary or "")
        if not summary:
            raise SummarizationError("Summarization returned no text")
        return summary

    def _synthesize(self, ctx: _RunContext, summary: str) -> str:
        names = ctx.names
        out_path = os.path.join(ctx.work_dir or "", names.summary_audio)
        try:
            self._provider.synthesize(summary, out_path, ctx.settings, ctx.cancel_event)
        except PipelineError:
            raise
        except Exception as exc:
            raise SynthesisError(f"Speech synthesis failed: {exc}") from exc
        if not os.path.exists(out_path) or os.path.getsize(out_path) == 0:
            raise SynthesisError("Speech synthesis produced no audio")
        self._check_cancel(ctx)
        locator = self._artifacts.put_file(self.layout.summaries, names.summary_audio, out_path)
        ctx.created_blobs.append((self.layout.summaries, names.summary_audio))
        return locator

    def _result_from_cache(self, ctx: _RunContext) -> ProcessResult:
        key = ctx.names.key
        record = self._metadata.get_summary(key)
        if record is None:
            raise StorageError(f"Summary record for {key} disappeared while reading it")
        summary = trim_non_alphanumeric(
            self._read_text(self.layout.transcripts, ctx.names.summary_text)
        )
        logger.info("Full result for %s served from cache", key)
        self._copy_output(ctx)
        return ProcessResult(
            success=True,
            message="Summary served from cache",
            episode_key=key,
            was_cached=True,
            summary_was_cached=True,
            summary_artifact_path=record.summary_audio_artifact_path,
            local_summary_path=ctx.output_path,
            summary_text=summary,
            transcript_word_count=record.transcript_word_count,
            summary_word_count=record.summary_word_count,
        )

    def _put_blob(self, ctx: _RunContext, container: str, name: str, data: bytes) -> str:
        locator = self._artifacts.put(container, name, data)
        ctx.created_blobs.append((container, name))
        return locator

    def _read_text(self, container: str, name: str) -> str:
        buffer = io.BytesIO()
        self._artifacts.get_to_stream(container, name, buffer)
        return buffer.getvalue().decode("utf-8")

    def _copy_output(self, ctx: _RunContext) -> None:
        if ctx.output_path:
            self._artifacts.get_to_file(
                self.layout.summaries, ctx.names.summary_audio, ctx.output_path
            )
            logger.info("Summary audio written to %s", ctx.output_path)

    def _check_cancel(self, ctx: _RunContext) -> None:
        raise_if_cancelled(ctx.cancel_event, ctx.stage.value)

    def _emit(self, ctx: _RunContext, stage: Stage, message: str, **payload: Any) -> None:
        ctx.stage = stage
        status = status_for(
            stage, message, episode_key=ctx.key, elapsed=ctx.elapsed(), **payload
        )
        logger.info("[%s] %s: %s", ctx.key, stage.value, message)
        ctx.sink.emit(status)

    def _emit_error(self, ctx: _RunContext, exc: Exception) -> None:
        if isinstance(exc, PipelineError):
            detail = exc.user_message()
        else:
            detail = str(exc) or type(exc).__name__
        detail = redact_text(detail)
        payload: Dict[str, Any] = {"error_detail": detail, "was_cached": ctx.was_cached}
        failed_stage = ctx.stage
        ctx.stage = Stage.ERROR
        status = status_for(
            Stage.ERROR, detail, episode_key=ctx.key, elapsed=ctx.elapsed(), **payload
        )
        logger.info("[%s] error after %s: %s", ctx.key, failed_stage.value, detail)
        ctx.sink.emit(status)

    def _rollback(self, ctx: _RunContext) -> None:
        """Remove records and blobs this run committed before it was cancelled."""
        if ctx.key is None:
            return
        try:
            if ctx.created_episode:
                self._metadata.delete_episode(ctx.key)
            for container, name in reversed(ctx.created_blobs):
                self._artifacts.delete(container, name)
        except StorageError as exc:
            logger.warning("Rollback of cancelled run %s incomplete: %s", ctx.key, exc)
        ctx.created_blobs.clear()
        ctx.created_episode = False

    def _cleanup(self, ctx: _RunContext) -> None:
        remove_work_dir(ctx.work_dir)
        ctx.work_dir = None
