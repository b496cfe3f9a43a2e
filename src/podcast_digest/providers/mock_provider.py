"""Offline provider returning canned output, for development and demos."""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Optional

from ..config import ProviderSettings
from ..utils.cancellation import raise_if_cancelled

logger = logging.getLogger(__name__)

MOCK_TRANSCRIPT = (
    "Welcome back to the show. Today we talk about how small teams ship reliable "
    "software. Our guest explains why they moved from nightly releases to "
    "continuous delivery, what broke along the way, and how automated tests and "
    "feature flags made the change safe. We close with advice for teams that are "
    "just getting started."
)

MOCK_SUMMARY = (
    "In this episode the hosts talk with a guest about shipping reliable software "
    "with a small team. The guest describes the move from nightly releases to "
    "continuous delivery, the problems it exposed, and how automated testing and "
    "feature flags reduced the risk. The episode ends with practical advice for "
    "teams beginning the same journey."
)

# MPEG-1 Layer III, 128 kbps, 44.1 kHz, no padding: 417 bytes per frame
_SILENT_FRAME = bytes.fromhex("fffb9064") + bytes(413)
_MOCK_AUDIO_FRAMES = 40


def mock_audio_bytes(frames: int = _MOCK_AUDIO_FRAMES) -> bytes:
    """Return a short run of silent MP3 frames (about one second per 38 frames)."""
    return _SILENT_FRAME * frames


class MockProvider:
    """Provider that never leaves the process.

    ``delay_seconds`` simulates latency per call; the wait ends early when
    the run is cancelled.
    """

    name = "mock"

    def __init__(self, delay_seconds: float = 0.0) -> None:
        self.delay_seconds = delay_seconds

    def _simulate_latency(self, cancel_event: Optional[threading.Event], stage: str) -> None:
        raise_if_cancelled(cancel_event, stage)
        if self.delay_seconds <= 0:
            return
        if cancel_event is not None:
            cancel_event.wait(self.delay_seconds)
        else:
            time.sleep(self.delay_seconds)
        raise_if_cancelled(cancel_event, stage)

    def transcribe(
        self,
        audio_path: str,
        settings: ProviderSettings,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        if not os.path.exists(audio_path):
            raise FileNotFoundError(f"Audio file not found: {audio_path}")
        self._simulate_latency(cancel_event, "transcribing")
        logger.debug("Mock transcription of %s", audio_path)
        return MOCK_TRANSCRIPT

    def summarize(
        self,
        text: str,
        settings: ProviderSettings,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        self._simulate_latency(cancel_event, "summarizing")
        return MOCK_SUMMARY

    def synthesize(
        self,
        text: str,
        out_path: str,
        settings: ProviderSettings,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._simulate_latency(cancel_event, "generating-speech")
        with open(out_path, "wb") as fh:
            fh.write(mock_audio_bytes())
