"""
Protocol configuration for zkremint.

This module provides the protocol parameters shared by the ledger, the
off-chain replicas and the claim circuit, with environment variable
overrides.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

from .crypto.field import FIELD_BITS
from .crypto.hashing import DEFAULT_ROUNDS, DEFAULT_SEED, HasherParams
from .errors.exceptions import ConfigurationError
from .logging import LogConfig, LogManager, LogLevel, get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class ProtocolConfig:
    """Protocol parameters for one zkremint deployment."""

    # Accumulator
    tree_depth: int = 20

    # Widths
    address_bits: int = 160
    amount_bits: int = 248

    # Namespace
    namespace_tag: int = 8065

    # Relayer fee unit (basis points)
    fee_denominator: int = 10000

    # Field hash
    hash_seed: str = DEFAULT_SEED
    hash_rounds: int = DEFAULT_ROUNDS

    # Logging
    log_level: str = "warning"

    # Environment overrides
    environment_overrides: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Apply environment variable overrides."""
        self._apply_environment_overrides()

    def _apply_environment_overrides(self):
        """Apply environment variable overrides.

        Only fields still at their default are overridden; values passed to
        the constructor take precedence.
        """
        defaults = {f.name: f.default for f in fields(self)}
        env_mappings = {
            "ZKREMINT_TREE_DEPTH": ("tree_depth", int),
            "ZKREMINT_AMOUNT_BITS": ("amount_bits", int),
            "ZKREMINT_NAMESPACE_TAG": ("namespace_tag", int),
            "ZKREMINT_HASH_ROUNDS": ("hash_rounds", int),
            "ZKREMINT_HASH_SEED": ("hash_seed", str),
            "ZKREMINT_LOG_LEVEL": ("log_level", str),
        }

        for env_var, (attr_name, attr_type) in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                try:
                    value = attr_type(env_value)
                except (ValueError, TypeError) as e:
                    logger.warning(
                        f"Ignoring invalid environment variable {env_var}={env_value}: {e}"
                    )
                    continue

                current = getattr(self, attr_name)
                if current != defaults[attr_name]:
                    if current != value:
                        logger.warning(
                            f"Ignoring {env_var}={env_value}: {attr_name} was set explicitly to {current}"
                        )
                    continue
                setattr(self, attr_name, value)
                self.environment_overrides[env_var] = value
                logger.info(f"Applied environment override {env_var}={value}")

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not 1 <= self.tree_depth <= 32:
            raise ConfigurationError(
                "tree_depth must be between 1 and 32",
                config_key="tree_depth",
                config_value=self.tree_depth,
            )
        if self.address_bits <= 0 or self.address_bits % 8 or self.address_bits >= FIELD_BITS:
            raise ConfigurationError(
                "address_bits must be a positive multiple of 8 below the field size",
                config_key="address_bits",
                config_value=self.address_bits,
            )
        # The comparator decomposes amount_bits + 1 bits, which must stay below P.
        if not 1 <= self.amount_bits <= FIELD_BITS - 2:
            raise ConfigurationError(
                f"amount_bits must be between 1 and {FIELD_BITS - 2}",
                config_key="amount_bits",
                config_value=self.amount_bits,
            )
        if self.namespace_tag < 0:
            raise ConfigurationError(
                "namespace_tag must be non-negative",
                config_key="namespace_tag",
                config_value=self.namespace_tag,
            )
        if self.fee_denominator <= 0:
            raise ConfigurationError(
                "fee_denominator must be positive",
                config_key="fee_denominator",
                config_value=self.fee_denominator,
            )
        try:
            LogLevel(self.log_level.lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown log level: {self.log_level}",
                config_key="log_level",
                config_value=self.log_level,
            )
        self.hasher_params()

    def hasher_params(self) -> HasherParams:
        """Field hash parameters; raises ConfigurationError if invalid."""
        return HasherParams(seed=self.hash_seed, rounds=self.hash_rounds)

    def require_hasher(self, params: HasherParams) -> None:
        """
        Check that a hasher uses this config's parameters.

        Raises:
            ConfigurationError: if ``params`` differs from ``hasher_params()``
        """
        expected = self.hasher_params()
        if params != expected:
            raise ConfigurationError(
                "Hasher parameters differ from the configured field hash",
                config_key="hasher",
                config_value=params.fingerprint(),
                metadata={"expected": expected.fingerprint()},
            )

    @property
    def capacity(self) -> int:
        return 1 << self.tree_depth

    def configure_logging(self) -> LogManager:
        """Install a global log manager at this config's level."""
        return setup_logging(LogConfig.from_level_name(self.log_level))

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "tree_depth": self.tree_depth,
            "address_bits": self.address_bits,
            "amount_bits": self.amount_bits,
            "namespace_tag": self.namespace_tag,
            "fee_denominator": self.fee_denominator,
            "hash_seed": self.hash_seed,
            "hash_rounds": self.hash_rounds,
            "log_level": self.log_level,
            "environment_overrides": dict(self.environment_overrides),
        }

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "ProtocolConfig":
        """Create configuration from dictionary."""
        return cls(**config_dict)

    def __str__(self) -> str:
        """String representation of configuration."""
        return (
            f"ProtocolConfig(tree_depth={self.tree_depth}, "
            f"amount_bits={self.amount_bits}, namespace_tag={self.namespace_tag}, "
            f"hash_rounds={self.hash_rounds})"
        )


# Global protocol configuration instance
_global_config: Optional[ProtocolConfig] = None


def get_global_config() -> ProtocolConfig:
    """Get the global protocol configuration."""
    global _global_config
    if _global_config is None:
        _global_config = ProtocolConfig()
    return _global_config


def set_global_config(config: ProtocolConfig) -> None:
    """Replace the global protocol configuration."""
    global _global_config
    config.validate()
    _global_config = config
