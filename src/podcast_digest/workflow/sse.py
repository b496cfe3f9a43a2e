"""Server-Sent Events framing for progress statuses."""

from __future__ import annotations

import json
import logging
from typing import Iterable, Iterator

from pydantic import ValidationError

from .status import ProcessingStatus, Stage

logger = logging.getLogger(__name__)

SSE_CONTENT_TYPE = "text/event-stream"


def encode_sse(status: ProcessingStatus) -> str:
    """Frame one status as an SSE ``data:`` event."""
    return f"data: {status.to_json()}\n\n"


def iter_sse(statuses: Iterable[ProcessingStatus]) -> Iterator[str]:
    for status in statuses:
        yield encode_sse(status)


def decode_status(payload: str) -> ProcessingStatus:
    """Parse one event body back into a ProcessingStatus.

    An unknown stage token yields an error status. A body that is not a JSON
    object, or that fails validation, also yields an error status carrying
    the reason, so a receiver never silently drops an event.
    """
    text = payload.strip()
    if text.startswith("data:"):
        text = text[len("data:") :].strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Unparseable progress event: %s", exc)
        return ProcessingStatus(
            stage=Stage.ERROR, is_error=True, error_detail=f"Unparseable progress event: {exc}"
        )
    if not isinstance(data, dict):
        return ProcessingStatus(
            stage=Stage.ERROR, is_error=True, error_detail="Progress event is not a JSON object"
        )
    if "stage" not in data:
        data["stage"] = None
    try:
        return ProcessingStatus.model_validate(data)
    except ValidationError as exc:
        logger.warning("Invalid progress event: %s", exc)
        return ProcessingStatus(
            stage=Stage.ERROR, is_error=True, error_detail=f"Invalid progress event: {exc}"
        )
