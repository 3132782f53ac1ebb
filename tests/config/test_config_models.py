"""Tests for config section models."""

import pytest
from pydantic import ValidationError

from rulectl.config.models import DiscoveryConfig, LogConfig, PropagationConfig


class TestSectionModels:
    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            PropagationConfig(batch_size=0)

    def test_unknown_strategy_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PropagationConfig(strategy="adaptive")  # type: ignore[arg-type]

    def test_threshold_bounded(self) -> None:
        with pytest.raises(ValidationError):
            DiscoveryConfig(acceptance_threshold=1.5)

    def test_log_cap_cannot_exceed_hundred(self) -> None:
        assert LogConfig(max_entries=100).max_entries == 100
        with pytest.raises(ValidationError):
            LogConfig(max_entries=150)

    def test_frozen(self) -> None:
        cfg = PropagationConfig()
        with pytest.raises(ValidationError):
            cfg.batch_size = 3  # type: ignore[misc]
