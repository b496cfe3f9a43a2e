"""Command-line interface for podcast_digest."""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import ExitStack, contextmanager
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    TextIO,
    TYPE_CHECKING,
)

from pydantic import ValidationError

from . import __version__, config, config_constants, progress
from .exceptions import PipelineError, ProviderConfigError
from .utils.log_setup import apply_log_level
from .utils.redaction import redact_text
from .workflow.orchestrator import PipelineOrchestrator
from .workflow.sinks import FanOutProgressSink, JSONLProgressSink, LoggingProgressSink, ProgressSink
from .workflow.sse import encode_sse

if TYPE_CHECKING:  # pragma: no cover - typing only
    import tqdm

_LOGGER = logging.getLogger(__name__)

# Progress bar constants
TQDM_NCOLS = 80
TQDM_MIN_INTERVAL = 0.5
TQDM_MIN_ITERS = 1
BYTES_PER_KB = 1024

OrchestratorFactory = Callable[[config.Config], PipelineOrchestrator]

# CLI flag destinations copied onto Config when given
_CONFIG_ARGS = ("provider", "storage_root", "log_level", "log_file")
_OVERRIDE_ARGS = ("api_base", "tts_voice", "tts_speed", "tts_format")


class _TqdmProgress:
    """Simple adapter that exposes tqdm's update interface."""

    def __init__(self, bar: "tqdm.tqdm") -> None:
        self._bar = bar

    def update(self, advance: int) -> None:
        self._bar.update(advance)


@contextmanager
def _tqdm_progress(total: Optional[int], description: str) -> Iterator[_TqdmProgress]:
    """Create a tqdm progress context matching the shared progress API."""
    from tqdm import tqdm

    kwargs: Dict[str, Any] = {"desc": description}
    if total is None:
        kwargs.update(
            total=None,
            unit="",
            leave=False,
            miniters=TQDM_MIN_ITERS,
            mininterval=TQDM_MIN_INTERVAL,
            bar_format="{desc}: {elapsed}",
            ncols=TQDM_NCOLS,
            dynamic_ncols=False,
        )
    else:
        kwargs.update(
            total=total,
            unit="B",
            unit_scale=True,
            unit_divisor=BYTES_PER_KB,
            leave=True,
        )

    with tqdm(**kwargs) as bar:
        yield _TqdmProgress(bar)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="podcast-digest",
        description="Download a podcast episode and turn it into a short spoken summary.",
    )
    parser.add_argument("locator", help="Episode audio URL, or a cache key from an earlier run")
    parser.add_argument("--config", help="Path to configuration file (JSON or YAML)")
    parser.add_argument(
        "--version", action="version", version=f"podcast_digest {__version__}"
    )

    output = parser.add_argument_group("Output")
    output.add_argument(
        "--stream",
        action="store_true",
        help="Print each progress event as a Server-Sent Events line on stdout",
    )
    output.add_argument("--events-jsonl", help="Append every progress event to this JSONL file")
    output.add_argument("--output", help="Also copy the summary audio to this path")

    provider = parser.add_argument_group("Provider")
    provider.add_argument("--provider", choices=config.VALID_PROVIDERS, help="AI provider")
    provider.add_argument("--api-base", help="Override the provider endpoint for this run")
    provider.add_argument("--tts-voice", help="Voice for the spoken summary")
    provider.add_argument("--tts-speed", type=float, help="Speech speed ratio (0.25-4.0)")
    provider.add_argument(
        "--tts-format", help=f"Audio format of the summary ({', '.join(config.VALID_TTS_FORMATS)})"
    )

    general = parser.add_argument_group("General")
    general.add_argument("--storage-root", help="Directory for the local storage backend")
    general.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    general.add_argument("--log-file", help="Also write logs to this file")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments and raise ValueError when they are invalid."""
    args = _build_parser().parse_args(argv)
    errors: List[str] = []
    if not (args.locator or "").strip():
        errors.append("An episode URL or cache key is required")
    if args.tts_speed is not None and not (
        config_constants.MIN_TTS_SPEED <= args.tts_speed <= config_constants.MAX_TTS_SPEED
    ):
        errors.append(
            f"--tts-speed must be between {config_constants.MIN_TTS_SPEED} and "
            f"{config_constants.MAX_TTS_SPEED}, got: {args.tts_speed}"
        )
    if errors:
        raise ValueError("Invalid input parameters:\n  " + "\n  ".join(errors))
    return args


def _build_config(args: argparse.Namespace) -> config.Config:
    """Merge the optional config file with flags given on the command line.

    Raises:
        ValueError: If the config file cannot be read
        ValidationError: If the merged values are invalid
    """
    payload: Dict[str, Any] = config.load_config_file(args.config) if args.config else {}
    for name in _CONFIG_ARGS:
        value = getattr(args, name)
        if value is not None:
            payload[name] = value
    return config.Config.model_validate(payload)


def _build_overrides(args: argparse.Namespace) -> Optional[config.ProviderOverrides]:
    values = {name: getattr(args, name) for name in _OVERRIDE_ARGS if getattr(args, name)}
    return config.ProviderOverrides(**values) if values else None


def _run_streaming(
    pipeline: PipelineOrchestrator,
    args: argparse.Namespace,
    overrides: Optional[config.ProviderOverrides],
    sink: Optional[ProgressSink],
    out: TextIO,
) -> int:
    last = None
    for status in pipeline.stream(
        args.locator, overrides=overrides, sink=sink, output_path=args.output
    ):
        out.write(encode_sse(status))
        out.flush()
        last = status
    return 0 if last is not None and last.is_complete else 1


def _run_blocking(
    pipeline: PipelineOrchestrator,
    args: argparse.Namespace,
    overrides: Optional[config.ProviderOverrides],
    sink: ProgressSink,
    out: TextIO,
    log: logging.Logger,
) -> int:
    try:
        result = pipeline.run(
            args.locator, overrides=overrides, sink=sink, output_path=args.output
        )
    except PipelineError as exc:
        # The error status was already logged by the progress sink
        log.debug("Run failed: %s", redact_text(str(exc)))
        return 1
    except Exception as exc:  # pragma: no cover
        log.error("Unexpected failure: %s", redact_text(str(exc)))
        return 1

    log.info(
        "Summary of %d words from a %d-word transcript (%s, %.1fs)",
        result.summary_word_count,
        result.transcript_word_count,
        "cached" if result.summary_was_cached else "generated",
        result.elapsed_seconds,
    )
    if result.summary_text:
        out.write(result.summary_text + "\n")
    out.write(f"{result.local_summary_path or result.summary_artifact_path}\n")
    return 0


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    apply_log_level_fn: Optional[Callable[[str, Optional[str]], None]] = None,
    orchestrator_factory: Optional[OrchestratorFactory] = None,
    logger: Optional[logging.Logger] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    """Entry point for the CLI; returns an exit status code."""
    log = logger or _LOGGER
    out = stdout or sys.stdout
    if apply_log_level_fn is None:
        apply_log_level_fn = apply_log_level
    if orchestrator_factory is None:
        orchestrator_factory = PipelineOrchestrator.from_config

    try:
        args = parse_args(argv)
        cfg = _build_config(args)
        overrides = _build_overrides(args)
    except ValidationError as exc:
        log.error("Invalid configuration: %s", exc)
        return 1
    except ValueError as exc:
        log.error("Error: %s", exc)
        return 1

    apply_log_level_fn(cfg.log_level, cfg.log_file)
    if not args.stream:
        progress.set_progress_factory(_tqdm_progress)

    try:
        pipeline = orchestrator_factory(cfg)
    except (ProviderConfigError, PipelineError, ValueError) as exc:
        log.error("Could not set up the pipeline: %s", redact_text(str(exc)))
        return 1

    log.info("Processing %s with provider %s", args.locator, cfg.provider)
    with ExitStack() as stack:
        sinks: List[ProgressSink] = []
        if args.events_jsonl:
            sinks.append(stack.enter_context(JSONLProgressSink(args.events_jsonl)))
        if args.stream:
            extra = FanOutProgressSink(*sinks) if sinks else None
            return _run_streaming(pipeline, args, overrides, extra, out)
        sinks.insert(0, LoggingProgressSink(log, level=logging.DEBUG))
        return _run_blocking(pipeline, args, overrides, FanOutProgressSink(*sinks), out, log)


if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())
