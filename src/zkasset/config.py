"""
Ledger configuration.

A ``LedgerConfig`` is constructed by the embedding application and injected
into the registry and transactions; nothing in the core reads process-wide
settings.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict

from .errors import ConfigurationError


@dataclass
class LedgerConfig:
    """Configuration for the note registry and join-split transactions."""

    # Account that spends public value on holders' behalf (the registry operator)
    operator_address: str = "operator"

    # Proof construction
    proof_generation_timeout: float = 30.0

    # Transition limits
    max_input_notes: int = 32
    max_output_notes: int = 32

    # Public units per note unit for registries that do not set their own
    default_scaling_factor: int = 1

    # Run the ConservationChecker after every applied transition
    enforce_conservation_check: bool = True

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not self.operator_address:
            raise ConfigurationError(
                "operator_address must be set", config_key="operator_address"
            )
        if self.proof_generation_timeout <= 0:
            raise ConfigurationError(
                "proof_generation_timeout must be positive",
                config_key="proof_generation_timeout",
                config_value=self.proof_generation_timeout,
            )
        if self.max_input_notes <= 0:
            raise ConfigurationError(
                "max_input_notes must be positive",
                config_key="max_input_notes",
                config_value=self.max_input_notes,
            )
        if self.max_output_notes <= 0:
            raise ConfigurationError(
                "max_output_notes must be positive",
                config_key="max_output_notes",
                config_value=self.max_output_notes,
            )
        if (
            isinstance(self.default_scaling_factor, bool)
            or not isinstance(self.default_scaling_factor, int)
            or self.default_scaling_factor <= 0
        ):
            raise ConfigurationError(
                "default_scaling_factor must be a positive integer",
                config_key="default_scaling_factor",
                config_value=self.default_scaling_factor,
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerConfig":
        """Build a validated config, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {sorted(unknown)}",
                config_key=sorted(unknown)[0],
            )
        config = cls(**data)
        config.validate()
        return config
