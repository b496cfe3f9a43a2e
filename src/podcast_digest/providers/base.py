"""Provider-agnostic AI capability protocols.

Each capability receives the run's ``ProviderSettings`` explicitly and an
optional cancellation event; implementations must not keep per-request state.
"""

from __future__ import annotations

import threading
from typing import Optional, Protocol, runtime_checkable

from ..config import ProviderSettings


@runtime_checkable
class TranscriptionProvider(Protocol):
    def transcribe(
        self,
        audio_path: str,
        settings: ProviderSettings,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Return the transcript of one audio file."""
        ...


@runtime_checkable
class SummarizationProvider(Protocol):
    def summarize(
        self,
        text: str,
        settings: ProviderSettings,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Condense ``text`` to about ``settings.summary_target_words`` words."""
        ...


@runtime_checkable
class SynthesisProvider(Protocol):
    def synthesize(
        self,
        text: str,
        out_path: str,
        settings: ProviderSettings,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Render ``text`` as speech into ``out_path`` in ``settings.tts_format``."""
        ...


@runtime_checkable
class AIProvider(TranscriptionProvider, SummarizationProvider, SynthesisProvider, Protocol):
    """A provider offering all three capabilities the pipeline needs."""

    name: str
