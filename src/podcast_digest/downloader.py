"""HTTP session management and source audio download."""

from __future__ import annotations

import atexit
import logging
import os
import threading
from typing import cast, List, Optional

import requests
from requests.adapters import HTTPAdapter
from requests.utils import requote_uri
from urllib3.util.retry import Retry

from . import config_constants, progress
from .exceptions import CancelledError, SourceFetchError
from .progress import ProgressReporter
from .utils.cancellation import raise_if_cancelled
from .utils.filesystem import remove_file_quietly
from .utils.log_setup import quiet_transport_loggers

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 256
HTTP_RETRY_ALLOWED_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
HTTP_RETRY_STATUS_CODES = (429, 500, 502, 503, 504)
GENERIC_BINARY_CONTENT_TYPES = frozenset({"application/octet-stream", "binary/octet-stream"})

_THREAD_LOCAL = threading.local()
_SESSION_REGISTRY: List[requests.Session] = []
_SESSION_REGISTRY_LOCK = threading.Lock()
_transport_logs_quieted = False


def normalize_url(url: str) -> str:
    """Normalize URLs while preserving already-encoded segments."""
    normalized = requote_uri(url)
    if normalized != url:
        logger.debug("Normalized URL %s -> %s", url, normalized)
    return cast(str, normalized)


def is_audio_content_type(content_type: Optional[str]) -> bool:
    """Return True for ``audio/*`` and generic binary types, or when no type is sent."""
    if not content_type:
        return True
    media_type = content_type.split(";", 1)[0].strip().lower()
    if not media_type:
        return True
    return media_type.startswith("audio/") or media_type in GENERIC_BINARY_CONTENT_TYPES


def _configure_http_session(
    session: requests.Session,
    retry_total: int = config_constants.DEFAULT_HTTP_RETRY_TOTAL,
    backoff_factor: float = config_constants.DEFAULT_HTTP_BACKOFF_FACTOR,
) -> None:
    """Attach retry-enabled HTTP adapters to a session."""

    class LoggingRetry(Retry):
        def increment(self, method=None, url=None, *args, **kwargs):  # type: ignore[override]
            new_retry = super().increment(method, url, *args, **kwargs)
            attempt = len(new_retry.history) + 1
            reason = kwargs.get("error") or kwargs.get("response")
            logger.warning(
                "Retrying HTTP request (attempt %s) %s %s due to %s",
                attempt,
                method or "",
                url or "",
                reason,
            )
            return new_retry

    retry = LoggingRetry(
        total=retry_total,
        read=retry_total,
        connect=retry_total,
        status=retry_total,
        backoff_factor=backoff_factor,
        status_forcelist=HTTP_RETRY_STATUS_CODES,
        allowed_methods=HTTP_RETRY_ALLOWED_METHODS,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)


def _get_thread_request_session(
    retry_total: int = config_constants.DEFAULT_HTTP_RETRY_TOTAL,
    backoff_factor: float = config_constants.DEFAULT_HTTP_BACKOFF_FACTOR,
) -> requests.Session:
    global _transport_logs_quieted
    if not _transport_logs_quieted:
        quiet_transport_loggers()
        _transport_logs_quieted = True

    settings = (retry_total, backoff_factor)
    session = getattr(_THREAD_LOCAL, "session", None)
    if session is None or getattr(_THREAD_LOCAL, "settings", None) != settings:
        session = requests.Session()
        _configure_http_session(session, retry_total, backoff_factor)
        _THREAD_LOCAL.session = session
        _THREAD_LOCAL.settings = settings
        with _SESSION_REGISTRY_LOCK:
            _SESSION_REGISTRY.append(session)
        logger.debug("Created new thread-local HTTP session %s", hex(id(session)))
    return session


def _close_all_sessions() -> None:
    with _SESSION_REGISTRY_LOCK:
        for session in _SESSION_REGISTRY:
            session.close()
        _SESSION_REGISTRY.clear()


atexit.register(_close_all_sessions)


def _content_length(resp: requests.Response) -> Optional[int]:
    value = resp.headers.get("Content-Length")
    try:
        return int(value) if value else None
    except (TypeError, ValueError):
        return None


def download_to_file(
    url: str,
    out_path: str,
    *,
    user_agent: str = config_constants.DEFAULT_USER_AGENT,
    timeout: int = config_constants.DEFAULT_TIMEOUT_SECONDS,
    retry_total: int = config_constants.DEFAULT_HTTP_RETRY_TOTAL,
    backoff_factor: float = config_constants.DEFAULT_HTTP_BACKOFF_FACTOR,
    cancel_event: Optional[threading.Event] = None,
) -> int:
    """Stream the audio at ``url`` into ``out_path`` and return the byte count.

    Cancellation is checked between body chunks. On any failure the partial
    file is removed.

    Raises:
        SourceFetchError: On connection errors, timeouts, non-2xx responses or a
            Content-Type that is neither audio nor generic binary
        CancelledError: When ``cancel_event`` is set during the transfer
    """
    normalized_url = normalize_url(url)
    session = _get_thread_request_session(retry_total, backoff_factor)
    raise_if_cancelled(cancel_event, "downloading")

    try:
        resp = session.get(
            normalized_url, headers={"User-Agent": user_agent}, timeout=timeout, stream=True
        )
    except requests.Timeout as exc:
        raise SourceFetchError(f"Timed out fetching {url}: {exc}") from exc
    except requests.RequestException as exc:
        raise SourceFetchError(f"Failed to fetch {url}: {exc}") from exc

    try:
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise SourceFetchError(
                f"Source returned HTTP {resp.status_code} for {url}",
                status_code=resp.status_code,
            ) from exc

        content_type = resp.headers.get("Content-Type", "")
        if not is_audio_content_type(content_type):
            raise SourceFetchError(
                f"Source did not return audio content (Content-Type: {content_type})",
                suggestion="Check that the URL points directly at an audio file",
            )

        total_size = _content_length(resp)
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        logger.debug(
            "Streaming download from %s to %s (content-length=%s)", url, out_path, total_size
        )

        total_bytes = 0
        try:
            with open(out_path, "wb") as fh, progress.transfer_progress(
                total_size, f"Downloading {os.path.basename(out_path)}"
            ) as reporter:
                for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    raise_if_cancelled(cancel_event, "downloading")
                    if not chunk:
                        continue
                    fh.write(chunk)
                    total_bytes += len(chunk)
                    cast(ProgressReporter, reporter).update(len(chunk))
        except CancelledError:
            remove_file_quietly(out_path)
            raise
        except requests.RequestException as exc:
            remove_file_quietly(out_path)
            raise SourceFetchError(f"Failed to read response from {url}: {exc}") from exc
        except OSError as exc:
            remove_file_quietly(out_path)
            raise SourceFetchError(f"Failed to write {out_path}: {exc}") from exc

        if total_bytes == 0:
            remove_file_quietly(out_path)
            raise SourceFetchError(f"Source returned an empty body for {url}")

        logger.info("Downloaded %s (%d bytes)", url, total_bytes)
        return total_bytes
    finally:
        resp.close()
