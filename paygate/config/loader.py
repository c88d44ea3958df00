"""
Configuration management and loading.

Handles fee, payment policy, generation and delivery settings.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Set

import yaml

from paygate.core.policy import OneTimeUnlockPolicy, PaymentPolicy, PerBlockPolicy
from paygate.core.pricing import ONE_TIME_USAGE_FEE_WEI, parse_amount


class PolicyKind(Enum):
    """Supported payment-cycle policies."""
    ONE_TIME = "one_time"
    PER_BLOCK = "per_block"


@dataclass(frozen=True)
class PaymentConfig:
    """Fee and payment-cycle settings."""
    fee_wei: int = ONE_TIME_USAGE_FEE_WEI
    policy: PolicyKind = PolicyKind.ONE_TIME
    free_uses: int = 1
    uses_per_payment: int = 10

    def __post_init__(self):
        """Validate payment values."""
        if self.fee_wei <= 0:
            raise ValueError("fee_wei must be > 0")
        if self.free_uses < 0:
            raise ValueError("free_uses must be >= 0")
        if self.uses_per_payment <= 0:
            raise ValueError("uses_per_payment must be > 0")


@dataclass(frozen=True)
class GenerationConfig:
    """Backend settings."""
    model: str = "gpt-4o-mini"
    timeout_seconds: float = 60.0
    max_workers: int = 8

    def __post_init__(self):
        """Validate generation values."""
        if not self.model or not self.model.strip():
            raise ValueError("model is required and cannot be empty")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be > 0")


@dataclass(frozen=True)
class DeliveryConfig:
    """Chunking and pacing of delivered artifacts."""
    chunk_size: int = 1
    chunk_delay_seconds: float = 0.01

    def __post_init__(self):
        """Validate delivery values."""
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if self.chunk_delay_seconds < 0:
            raise ValueError("chunk_delay_seconds must be >= 0")


@dataclass(frozen=True)
class GateConfig:
    """Complete gate configuration."""
    payment: PaymentConfig
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)

    def build_policy(self) -> PaymentPolicy:
        """Create the payment policy described by the payment section."""
        if self.payment.policy == PolicyKind.PER_BLOCK:
            return PerBlockPolicy(
                free_uses=self.payment.free_uses,
                uses_per_payment=self.payment.uses_per_payment
            )
        return OneTimeUnlockPolicy(free_uses=self.payment.free_uses)


def default_config() -> GateConfig:
    """Configuration used when no file is given."""
    return GateConfig(payment=PaymentConfig())


def load_gate_config(path: str) -> GateConfig:
    """Load and validate gate configuration from a YAML file.

    Strict validation ensures a typo cannot silently change the fee or
    the payment policy.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated GateConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Gate config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    _check_keys(raw_config, {'payment', 'generation', 'delivery'}, "configuration")

    if 'payment' not in raw_config:
        raise ValueError("Missing required 'payment' section")

    return GateConfig(
        payment=_parse_payment(_section(raw_config, 'payment')),
        generation=_parse_generation(_section(raw_config, 'generation')),
        delivery=_parse_delivery(_section(raw_config, 'delivery'))
    )


def _section(raw_config: Dict, name: str) -> Dict:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict, allowed: Set[str], path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _number(data: Dict, key: str, path: str, integer: bool = False) -> Any:
    value = data[key]
    expected = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, expected):
        kind = "an integer" if integer else "a number"
        raise ValueError(f"'{key}' in {path} must be {kind}")
    return value


def _parse_payment(data: Dict) -> PaymentConfig:
    """Parse and validate the payment section.

    Raises:
        ValueError: If the section is invalid
    """
    _check_keys(data, {'fee_wei', 'policy', 'free_uses', 'uses_per_payment'}, "payment")

    if 'fee_wei' not in data:
        raise ValueError("Missing required 'fee_wei' in payment")
    try:
        fee_wei = parse_amount(data['fee_wei'])
    except ValueError:
        raise ValueError("'fee_wei' in payment must be a whole number of wei")

    kwargs: Dict[str, Any] = {'fee_wei': fee_wei}

    if 'policy' in data:
        policy_str = data['policy']
        if not isinstance(policy_str, str):
            raise ValueError("'policy' in payment must be a string")
        try:
            kwargs['policy'] = PolicyKind(policy_str.lower())
        except ValueError:
            valid_policies = [kind.value for kind in PolicyKind]
            raise ValueError(f"'policy' in payment must be one of: {valid_policies}")

    for key in ('free_uses', 'uses_per_payment'):
        if key in data:
            kwargs[key] = _number(data, key, "payment", integer=True)

    return PaymentConfig(**kwargs)


def _parse_generation(data: Dict) -> GenerationConfig:
    _check_keys(data, {'model', 'timeout_seconds', 'max_workers'}, "generation")

    kwargs: Dict[str, Any] = {}
    if 'model' in data:
        if not isinstance(data['model'], str):
            raise ValueError("'model' in generation must be a string")
        kwargs['model'] = data['model']
    if 'timeout_seconds' in data:
        kwargs['timeout_seconds'] = float(_number(data, 'timeout_seconds', "generation"))
    if 'max_workers' in data:
        kwargs['max_workers'] = _number(data, 'max_workers', "generation", integer=True)

    return GenerationConfig(**kwargs)


def _parse_delivery(data: Dict) -> DeliveryConfig:
    _check_keys(data, {'chunk_size', 'chunk_delay_seconds'}, "delivery")

    kwargs: Dict[str, Any] = {}
    if 'chunk_size' in data:
        kwargs['chunk_size'] = _number(data, 'chunk_size', "delivery", integer=True)
    if 'chunk_delay_seconds' in data:
        kwargs['chunk_delay_seconds'] = float(_number(data, 'chunk_delay_seconds', "delivery"))

    return DeliveryConfig(**kwargs)
