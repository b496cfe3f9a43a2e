"""Factory for AI providers."""

from __future__ import annotations

import logging

from .. import config, config_constants
from ..exceptions import ProviderConfigError
from .base import AIProvider
from .mock_provider import MockProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


def create_provider(cfg: config.Config) -> AIProvider:
    """Create the provider selected by ``cfg.provider``.

    Raises:
        ProviderConfigError: If the provider name is not supported
    """
    if cfg.provider == config_constants.PROVIDER_MOCK:
        logger.debug("Using mock provider (delay=%.2fs)", cfg.mock_delay_seconds)
        return MockProvider(delay_seconds=cfg.mock_delay_seconds)
    if cfg.provider == config_constants.PROVIDER_OPENAI:
        return OpenAIProvider(cfg.provider_settings())
    raise ProviderConfigError(
        f"Unsupported provider: {cfg.provider}",
        provider=cfg.provider,
        config_key="provider",
        suggestion=f"Use one of {config_constants.VALID_PROVIDERS}",
    )
