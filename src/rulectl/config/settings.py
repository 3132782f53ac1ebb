"""Unified settings: CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs   — CLI flags passed by Click
  2. Env vars      — ``RULECTL_*`` prefix, ``__`` for nested sections
  3. TOML file     — ``rulectl.toml`` discovered via walk-up
  4. Code defaults — baked into the section models
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

import click
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from rulectl.config.discovery import find_config
from rulectl.config.models import (
    AnalysisConfig,
    DiscoveryConfig,
    LogConfig,
    PropagationConfig,
    ProviderConfig,
    StorageConfig,
)


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``rulectl.toml`` file."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise click.ClickException(msg) from exc
        # Secrets never come from a file that may be committed.
        self._data.pop("api_token", None)

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# TOML path handed to settings_customise_sources during construction.
_tls = threading.local()


class RulectlSettings(BaseSettings):
    """Settings for the whole CLI, frozen after construction.

    Attributes:
        workspace_root: Parent of ``rulectl.toml``, or CWD if none found.
        config_path: The TOML file in effect, if any.
        api_token: Provider API token, from ``RULECTL_API_TOKEN`` only.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "RULECTL_",
        "env_nested_delimiter": "__",
    }

    workspace_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None
    api_token: SecretStr | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    # --- TOML sections ---
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    propagation: PropagationConfig = Field(default_factory=PropagationConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    log: LogConfig = Field(default_factory=LogConfig)

    @property
    def cache_dir(self) -> Path:
        """Store directory, resolved against the workspace root."""
        path = self.storage.cache_dir.expanduser()
        return path if path.is_absolute() else self.workspace_root / path

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert the TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        workspace_root: Path | None = None,
        **cli_flags: Any,
    ) -> RulectlSettings:
        """Construct settings from a CLI invocation.

        An explicit *config_path* must exist; otherwise ``rulectl.toml`` is
        discovered by walking up from *workspace_root* (or CWD).
        """
        toml_path: Path | None
        if config_path:
            toml_path = Path(config_path)
            if not toml_path.is_file():
                msg = f"Config file not found: {config_path}"
                raise click.ClickException(msg)
        else:
            toml_path = find_config(workspace_root)

        resolved_root = workspace_root
        if resolved_root is None:
            resolved_root = toml_path.parent if toml_path else Path.cwd()

        _tls.toml_path = toml_path
        try:
            return cls(
                workspace_root=resolved_root,
                config_path=toml_path,
                **cli_flags,
            )
        finally:
            _tls.toml_path = None
