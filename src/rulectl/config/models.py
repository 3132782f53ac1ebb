"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults live here, ``rulectl.toml`` only carries
overrides. An empty file (or none at all) is a valid configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

# Hard ceiling on stored application history.
MAX_LOG_ENTRIES = 100

# --- rulectl.toml sections ---


class ProviderConfig(BaseModel):
    """[provider] section."""

    model_config = {"frozen": True}

    api_base: str = "https://api.cloudflare.com/client/v4"
    timeout_seconds: float = 30.0
    phase: str = "http_request_firewall_custom"
    zones_per_page: int = Field(default=50, ge=1, le=1000)


class StorageConfig(BaseModel):
    """[storage] section. Relative paths resolve against the workspace root."""

    model_config = {"frozen": True}

    cache_dir: Path = Path(".rulectl")


class PropagationConfig(BaseModel):
    """[propagation] section."""

    model_config = {"frozen": True}

    batch_size: int = Field(default=5, ge=1)
    batch_delay_seconds: float = Field(default=1.0, ge=0)
    strategy: Literal["fixed", "token_bucket"] = "fixed"
    requests_per_second: float = Field(default=4.0, gt=0)
    burst: int = Field(default=8, ge=1)


class AnalysisConfig(BaseModel):
    """[analysis] section."""

    model_config = {"frozen": True}

    batch_size: int = Field(default=12, ge=1)
    batch_delay_seconds: float = Field(default=0.25, ge=0)
    cache_validity_minutes: int = Field(default=30, ge=0)


class DiscoveryConfig(BaseModel):
    """[discovery] section."""

    model_config = {"frozen": True}

    batch_size: int = Field(default=3, ge=1)
    batch_delay_seconds: float = Field(default=1.0, ge=0)
    acceptance_threshold: float = Field(default=0.7, ge=0, le=1)


class LogConfig(BaseModel):
    """[log] section (application history, not process logging)."""

    model_config = {"frozen": True}

    max_entries: int = Field(default=MAX_LOG_ENTRIES, ge=1, le=MAX_LOG_ENTRIES)
