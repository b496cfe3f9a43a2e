"""Service API for programmatic use of podcast_digest.

This module provides a small, non-interactive interface for embedding the
pipeline in another process (a web handler, a queue worker, a daemon).

The service API is designed to:
- Never raise: every failure is reported in the returned ``ServiceResult``
- Take configuration as a ``Config`` object or a config file
- Keep request-scoped provider overrides explicit

Example:
    >>> from podcast_digest import service, config
    >>>
    >>> config_dict = config.load_config_file("digest.yaml")
    >>> cfg = config.Config(**config_dict)
    >>> result = service.run(cfg, "https://example.com/episode.mp3")
    >>> print(result.summary)
"""

from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import __version__, config
from .exceptions import PipelineError
from .models import ProcessResult
from .utils.log_setup import apply_log_level
from .utils.redaction import redact_text
from .workflow.orchestrator import PipelineOrchestrator
from .workflow.sinks import ProgressSink

logger = logging.getLogger(__name__)


@dataclass
class ServiceResult:
    """Result of a service run.

    Attributes:
        success: Whether the run reached the complete stage
        summary: Human-readable outcome message
        result: Full pipeline result when the run succeeded
        error: Redacted error message if success is False, None otherwise
    """

    success: bool
    summary: str
    result: Optional[ProcessResult] = None
    error: Optional[str] = None


def _error_text(exc: BaseException) -> str:
    if isinstance(exc, PipelineError):
        return redact_text(exc.user_message())
    return redact_text(str(exc)) or type(exc).__name__


def run(
    cfg: config.Config,
    locator: str,
    overrides: Optional[config.ProviderOverrides] = None,
    *,
    sink: Optional[ProgressSink] = None,
    cancel_event: Optional[threading.Event] = None,
    output_path: Optional[str] = None,
    orchestrator: Optional[PipelineOrchestrator] = None,
) -> ServiceResult:
    """Run the digest pipeline for one episode.

    Args:
        cfg: Configuration object
        locator: Source audio URL, or a cache key from an earlier run
        overrides: Per-call provider overrides (endpoint, key, voice, speed, format)
        sink: Optional progress sink receiving every status
        cancel_event: Set it from another thread to cancel the run
        output_path: Also copy the summary audio to this local path
        orchestrator: Pre-built orchestrator; built from ``cfg`` when omitted

    Returns:
        ServiceResult with the processing result or the error message
    """
    try:
        if cfg.log_file or cfg.log_level:
            apply_log_level(level=cfg.log_level or "INFO", log_file=cfg.log_file)

        pipeline = orchestrator or PipelineOrchestrator.from_config(cfg)
        result = pipeline.run(
            locator,
            overrides=overrides,
            sink=sink,
            cancel_event=cancel_event,
            output_path=output_path,
        )
        return ServiceResult(success=True, summary=result.message, result=result)
    except Exception as exc:
        error_msg = _error_text(exc)
        logger.error("Pipeline execution failed: %s", error_msg)
        logger.debug("Pipeline failure details", exc_info=True)
        return ServiceResult(success=False, summary="", error=error_msg)


def run_from_config_file(
    config_path: str | Path,
    locator: str,
    overrides: Optional[config.ProviderOverrides] = None,
) -> ServiceResult:
    """Load a configuration file and run the pipeline for ``locator``.

    Example:
        >>> result = service.run_from_config_file("digest.yaml", url)
        >>> if not result.success:
        ...     sys.exit(1)
    """
    try:
        config_dict = config.load_config_file(str(config_path))
        cfg = config.Config(**config_dict)
    except Exception as exc:
        error_msg = f"Failed to load configuration file: {redact_text(str(exc))}"
        logger.error(error_msg)
        return ServiceResult(success=False, summary="", error=error_msg)

    return run(cfg, locator, overrides)


def main() -> int:
    """Entry point for ``python -m podcast_digest.service --config FILE URL``.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    import argparse

    parser = argparse.ArgumentParser(
        description="Podcast Digest Service - run the pipeline from a configuration file",
    )
    parser.add_argument("locator", help="Episode audio URL or cache key")
    parser.add_argument(
        "--config",
        required=True,
        help="Path to configuration file (JSON or YAML)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"podcast_digest {__version__}",
    )
    args = parser.parse_args()

    result = run_from_config_file(args.config, args.locator)
    if result.success and result.result is not None:
        print(result.result.summary_artifact_path)
        return 0
    print(f"Error: {result.error}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
