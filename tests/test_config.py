"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for gate configs.
"""

import os
import tempfile

import pytest
import yaml

from paygate.config.loader import (
    DeliveryConfig,
    GateConfig,
    GenerationConfig,
    PaymentConfig,
    PolicyKind,
    default_config,
    load_gate_config
)
from paygate.core.policy import OneTimeUnlockPolicy, PerBlockPolicy
from paygate.core.pricing import ONE_TIME_USAGE_FEE_WEI


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        config_data = {
            "payment": {
                "fee_wei": "10000000000000000",
                "policy": "per_block",
                "free_uses": 2,
                "uses_per_payment": 5
            },
            "generation": {
                "model": "gpt-4o",
                "timeout_seconds": 30,
                "max_workers": 4
            },
            "delivery": {
                "chunk_size": 8,
                "chunk_delay_seconds": 0
            }
        }

        config = load_gate_config(self._write_config(config_data))

        assert config.payment.fee_wei == ONE_TIME_USAGE_FEE_WEI
        assert config.payment.policy == PolicyKind.PER_BLOCK
        assert config.payment.free_uses == 2
        assert config.payment.uses_per_payment == 5
        assert config.generation.model == "gpt-4o"
        assert config.generation.timeout_seconds == 30.0
        assert config.generation.max_workers == 4
        assert config.delivery.chunk_size == 8
        assert config.delivery.chunk_delay_seconds == 0.0

    def test_minimal_config_uses_defaults(self):
        config = load_gate_config(self._write_config({"payment": {"fee_wei": 5}}))

        assert config.payment.fee_wei == 5
        assert config.payment.policy == PolicyKind.ONE_TIME
        assert config.generation == GenerationConfig()
        assert config.delivery == DeliveryConfig()

    def test_policy_is_case_insensitive(self):
        config = load_gate_config(self._write_config(
            {"payment": {"fee_wei": 5, "policy": "ONE_TIME"}}
        ))
        assert config.payment.policy == PolicyKind.ONE_TIME

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError, match="Gate config file not found"):
            load_gate_config(os.path.join(self.temp_dir, "missing.yaml"))

    def test_invalid_yaml(self):
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("payment: [unclosed")

        with pytest.raises(yaml.YAMLError, match="Invalid YAML"):
            load_gate_config(config_path)

    def test_empty_file(self):
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()

        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_gate_config(config_path)

    def test_non_mapping_config(self):
        with pytest.raises(ValueError, match="must be a dictionary"):
            load_gate_config(self._write_config(["payment"]))

    def test_unknown_top_level_key(self):
        with pytest.raises(ValueError, match="Unknown keys in configuration"):
            load_gate_config(self._write_config({"payment": {"fee_wei": 5}, "extra": {}}))

    def test_missing_payment_section(self):
        with pytest.raises(ValueError, match="Missing required 'payment' section"):
            load_gate_config(self._write_config({"delivery": {"chunk_size": 1}}))

    def test_missing_fee(self):
        with pytest.raises(ValueError, match="Missing required 'fee_wei'"):
            load_gate_config(self._write_config({"payment": {"policy": "one_time"}}))

    @pytest.mark.parametrize("fee", ["0.01", -1, 1.5, "abc"])
    def test_invalid_fee(self, fee):
        with pytest.raises(ValueError, match="fee_wei"):
            load_gate_config(self._write_config({"payment": {"fee_wei": fee}}))

    def test_zero_fee(self):
        with pytest.raises(ValueError, match="fee_wei must be > 0"):
            load_gate_config(self._write_config({"payment": {"fee_wei": 0}}))

    def test_unknown_policy(self):
        with pytest.raises(ValueError, match="'policy' in payment must be one of"):
            load_gate_config(self._write_config({"payment": {"fee_wei": 5, "policy": "monthly"}}))

    def test_unknown_payment_key(self):
        with pytest.raises(ValueError, match="Unknown keys in payment"):
            load_gate_config(self._write_config({"payment": {"fee_wei": 5, "currency": "WLD"}}))

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="'delivery' must be a dictionary"):
            load_gate_config(self._write_config({"payment": {"fee_wei": 5}, "delivery": [1]}))

    def test_non_integer_free_uses(self):
        with pytest.raises(ValueError, match="'free_uses' in payment must be an integer"):
            load_gate_config(self._write_config({"payment": {"fee_wei": 5, "free_uses": 1.5}}))

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError, match="chunk_size must be > 0"):
            load_gate_config(self._write_config({"payment": {"fee_wei": 5}, "delivery": {"chunk_size": 0}}))

    def test_invalid_timeout(self):
        with pytest.raises(ValueError, match="'timeout_seconds' in generation must be a number"):
            load_gate_config(self._write_config(
                {"payment": {"fee_wei": 5}, "generation": {"timeout_seconds": "soon"}}
            ))


class TestGateConfig:
    """Test config dataclasses."""

    def test_default_config(self):
        config = default_config()
        assert config.payment.fee_wei == ONE_TIME_USAGE_FEE_WEI
        assert config.generation.timeout_seconds == 60.0
        assert config.delivery.chunk_size == 1

    def test_build_one_time_policy(self):
        config = GateConfig(payment=PaymentConfig(free_uses=2))
        assert config.build_policy() == OneTimeUnlockPolicy(free_uses=2)

    def test_build_per_block_policy(self):
        config = GateConfig(payment=PaymentConfig(policy=PolicyKind.PER_BLOCK, uses_per_payment=3))
        assert config.build_policy() == PerBlockPolicy(free_uses=1, uses_per_payment=3)

    def test_invalid_values(self):
        with pytest.raises(ValueError, match="free_uses must be >= 0"):
            PaymentConfig(free_uses=-1)
        with pytest.raises(ValueError, match="model is required"):
            GenerationConfig(model=" ")
        with pytest.raises(ValueError, match="chunk_delay_seconds must be >= 0"):
            DeliveryConfig(chunk_delay_seconds=-0.1)
