"""Unified OpenAI provider for transcription, summarization and speech synthesis.

One provider instance serves every run. Credentials and models come from the
``ProviderSettings`` passed with each call, so per-request overrides (another
endpoint, key or deployment) never touch shared state. Clients are cached per
``(api_key, api_base, api_version)``; when ``api_version`` is set the Azure
OpenAI client is used with ``api_base`` as the Azure endpoint.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Dict, Optional, Tuple, Union

from openai import AzureOpenAI, OpenAI

from .. import config_constants
from ..config import ProviderSettings
from ..exceptions import ProviderConfigError
from ..utils.cancellation import raise_if_cancelled
from ..utils.text import word_count
from . import prompts

logger = logging.getLogger(__name__)

ClientKey = Tuple[Optional[str], Optional[str], Optional[str]]


class OpenAIProvider:
    """OpenAI-backed implementation of all three AI capabilities."""

    name = "openai"

    def __init__(self, default_settings: Optional[ProviderSettings] = None) -> None:
        self.default_settings = default_settings or ProviderSettings()
        self._clients: Dict[ClientKey, Union[OpenAI, AzureOpenAI]] = {}
        self._clients_lock = threading.Lock()
        if not self.default_settings.api_key:
            logger.debug("No default OpenAI API key; every run must supply one")

    def _client(self, settings: ProviderSettings) -> Union[OpenAI, AzureOpenAI]:
        if not settings.api_key:
            raise ProviderConfigError(
                "API key not provided",
                provider="OpenAI",
                config_key="openai_api_key",
                suggestion="Set OPENAI_API_KEY or pass an api_key override",
            )
        key: ClientKey = (settings.api_key, settings.api_base, settings.api_version)
        with self._clients_lock:
            client = self._clients.get(key)
            if client is None:
                if settings.api_version:
                    if not settings.api_base:
                        raise ProviderConfigError(
                            "Azure endpoint not provided",
                            provider="AzureOpenAI",
                            config_key="openai_api_base",
                        )
                    client = AzureOpenAI(
                        api_key=settings.api_key,
                        azure_endpoint=settings.api_base,
                        api_version=settings.api_version,
                    )
                else:
                    client_kwargs: Dict[str, Any] = {"api_key": settings.api_key}
                    if settings.api_base:
                        client_kwargs["base_url"] = settings.api_base
                    client = OpenAI(**client_kwargs)
                self._clients[key] = client
                logger.debug(
                    "Created OpenAI client (base=%s, azure=%s)",
                    settings.api_base or "default",
                    bool(settings.api_version),
                )
            return client

    def transcribe(
        self,
        audio_path: str,
        settings: ProviderSettings,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Transcribe an audio file with the Whisper API.

        Raises:
            FileNotFoundError: If the audio file does not exist
            ProviderConfigError: If no API key is configured
        """
        raise_if_cancelled(cancel_event, "transcribing")
        if not os.path.exists(audio_path):
            raise FileNotFoundError(f"Audio file not found: {audio_path}")
        client = self._client(settings)
        logger.debug("Transcribing %s via %s", audio_path, settings.transcription_model)
        with open(audio_path, "rb") as audio_file:
            transcript = client.audio.transcriptions.create(
                model=settings.transcription_model,
                file=audio_file,
                response_format="text",
            )
        text = transcript if isinstance(transcript, str) else str(transcript)
        logger.debug("Transcription completed: %d characters", len(text))
        return text

    def _complete(self, settings: ProviderSettings, user_prompt: str) -> str:
        response = self._client(settings).chat.completions.create(
            model=settings.summary_model,
            messages=[
                {"role": "system", "content": prompts.SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            temperature=settings.summary_temperature,
        )
        content = response.choices[0].message.content
        if not content:
            logger.warning("Summary model returned empty content")
            return ""
        return content.strip()

    def summarize(
        self,
        text: str,
        settings: ProviderSettings,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Summarize a transcript, compressing once more if the result is too long."""
        raise_if_cancelled(cancel_event, "summarizing")
        summary = self._complete(
            settings,
            prompts.build_summary_prompt(
                text, settings.summary_target_words, config_constants.SPOKEN_WORDS_PER_MINUTE
            ),
        )
        words = word_count(summary)
        if words > settings.summary_max_words:
            raise_if_cancelled(cancel_event, "summarizing")
            logger.info(
                "Summary has %d words (max %d); compressing", words, settings.summary_max_words
            )
            summary = self._complete(
                settings,
                prompts.build_compress_prompt(summary, words, settings.summary_target_words),
            )
        return summary

    def synthesize(
        self,
        text: str,
        out_path: str,
        settings: ProviderSettings,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Render speech for ``text`` into ``out_path``."""
        raise_if_cancelled(cancel_event, "generating-speech")
        client = self._client(settings)
        logger.debug(
            "Synthesizing %d characters (voice=%s, speed=%.2f, format=%s)",
            len(text),
            settings.tts_voice,
            settings.tts_speed,
            settings.tts_format,
        )
        with client.audio.speech.with_streaming_response.create(
            model=settings.tts_model,
            voice=settings.tts_voice,
            input=text,
            response_format=settings.tts_format,
            speed=settings.tts_speed,
        ) as response:
            response.stream_to_file(out_path)
