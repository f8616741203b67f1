"""
Unit tests for ledger configuration.
"""

import pytest

from zkasset.config import LedgerConfig
from zkasset.errors import ConfigurationError


class TestLedgerConfig:
    """Test the LedgerConfig class."""

    def test_defaults_validate(self):
        LedgerConfig().validate()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"operator_address": ""},
            {"proof_generation_timeout": 0},
            {"max_input_notes": 0},
            {"max_output_notes": -1},
            {"default_scaling_factor": 0},
            {"default_scaling_factor": 1.5},
            {"default_scaling_factor": True},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ConfigurationError) as exc_info:
            LedgerConfig(**overrides).validate()
        assert exc_info.value.config_key == next(iter(overrides))

    def test_dict_roundtrip(self):
        config = LedgerConfig(operator_address="op", default_scaling_factor=10)
        assert LedgerConfig.from_dict(config.to_dict()) == config

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ConfigurationError, match="Unknown configuration keys"):
            LedgerConfig.from_dict({"operator_address": "op", "network_url": "x"})

    def test_from_dict_validates(self):
        with pytest.raises(ConfigurationError):
            LedgerConfig.from_dict({"proof_generation_timeout": -1})
