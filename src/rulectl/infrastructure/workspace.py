"""Workspace — the single dependency injected into every service.

Owns the keyed JSON store, the provider client, and the batch policies
derived from settings. Constructed once per CLI invocation and stored on
``click.Context.obj``; tests build one around a fake provider.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from rulectl.errors import ProviderError
from rulectl.infrastructure.provider import CloudflareProvider, Provider
from rulectl.infrastructure.ratelimit import BatchPolicy, FixedDelayPolicy, TokenBucketPolicy
from rulectl.infrastructure.store import JsonStore

if TYPE_CHECKING:
    from rulectl.config.settings import RulectlSettings

logger = logging.getLogger(__name__)


class Workspace:
    """Store, provider and pacing for one rulectl workspace."""

    def __init__(
        self,
        settings: RulectlSettings,
        *,
        provider: Provider | None = None,
        store: JsonStore | None = None,
    ) -> None:
        self._settings = settings
        self._provider = provider
        self._store = store or JsonStore(settings.cache_dir)

    @property
    def root(self) -> Path:
        return self._settings.workspace_root

    @property
    def settings(self) -> RulectlSettings:
        return self._settings

    @property
    def store(self) -> JsonStore:
        return self._store

    @property
    def provider(self) -> Provider:
        """The provider client, built on first use.

        Raises:
            ProviderError: if no API token is configured.
        """
        if self._provider is None:
            token = self._settings.api_token
            if token is None or not token.get_secret_value():
                msg = "No API token configured (set RULECTL_API_TOKEN)"
                raise ProviderError(msg)
            cfg = self._settings.provider
            self._provider = CloudflareProvider(
                token.get_secret_value(),
                api_base=cfg.api_base,
                timeout=cfg.timeout_seconds,
                phase=cfg.phase,
            )
            logger.debug("Provider client created for %s", cfg.api_base)
        return self._provider

    async def aclose(self) -> None:
        """Release the provider's connection pool, if one was opened."""
        if isinstance(self._provider, CloudflareProvider):
            await self._provider.aclose()
            self._provider = None

    # --- Batch policies ---

    def propagation_policy(self) -> BatchPolicy:
        cfg = self._settings.propagation
        if cfg.strategy == "token_bucket":
            return TokenBucketPolicy(
                cfg.batch_size, rate=cfg.requests_per_second, burst=cfg.burst
            )
        return FixedDelayPolicy(cfg.batch_size, cfg.batch_delay_seconds)

    def analysis_policy(self) -> BatchPolicy:
        cfg = self._settings.analysis
        return FixedDelayPolicy(cfg.batch_size, cfg.batch_delay_seconds)

    def discovery_policy(self) -> BatchPolicy:
        cfg = self._settings.discovery
        return FixedDelayPolicy(cfg.batch_size, cfg.batch_delay_seconds)
