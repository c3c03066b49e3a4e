import signal
from typing import List, Optional

import yaml
from pydantic import BaseModel, ValidationError, field_validator
from pydantic_core import ErrorDetails

# Names accepted in a config even on platforms that lack them; they are skipped at install time.
_PORTABLE_SIGNALS = ("SIGINT", "SIGTERM", "SIGHUP", "SIGBREAK", "SIGQUIT", "SIGUSR1", "SIGUSR2")
# The OS never delivers these to a handler
_UNCATCHABLE_SIGNALS = ("SIGKILL", "SIGSTOP")

class ShutdownConfig(BaseModel):
    signals: List[str] = ["SIGINT", "SIGTERM", "SIGHUP"]
    handle_exit: bool = True  # Also drain when the interpreter exits normally
    exit_code: int = 0
    failure_exit_code: Optional[int] = None  # Status to use when any action failed
    action_timeout: Optional[float] = None  # Applies to awaitable actions only

    @field_validator('signals')
    @classmethod
    def validate_signals(cls, value: List[str]) -> List[str]:
        """Validate signal names and drop duplicates, keeping order."""
        names: List[str] = []
        for name in value:
            normalized = name.upper()
            if not normalized.startswith("SIG"):
                normalized = f"SIG{normalized}"
            if normalized not in signal.Signals.__members__ and normalized not in _PORTABLE_SIGNALS:
                raise ValueError(f"Unknown signal: {name}")
            if normalized in _UNCATCHABLE_SIGNALS:
                raise ValueError(f"Signal {normalized} cannot be handled")
            if normalized not in names:
                names.append(normalized)
        return names

    @field_validator('action_timeout')
    @classmethod
    def validate_action_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("action_timeout must be greater than 0")
        return value


def _build_validation_error_message(errors: List[ErrorDetails]) -> str:
    """Build a readable message from a list of Pydantic validation errors."""
    messages = []
    for error in errors:
        field_path = " -> ".join(str(loc) for loc in error['loc'])
        msg = error['msg']
        messages.append(f"Error in field '{field_path}': {msg}")

    return "\n".join(messages)

class ShutdownConfigLoader:
    """Validates YAML content and creates ShutdownConfig instances."""

    @classmethod
    def load(cls, yaml_content: str) -> ShutdownConfig:
        """
        Validate YAML content and create a ShutdownConfig instance.

        Args:
            yaml_content: The YAML content to validate

        Returns:
            ShutdownConfig: The validated configuration

        Raises:
            ValueError: If the YAML content is invalid
        """
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML format: {str(e)}")

        if data is None:
            return ShutdownConfig()
        if not isinstance(data, dict):
            raise ValueError("Invalid shutdown config format: expected a mapping")

        try:
            return ShutdownConfig.model_validate(data)
        except ValidationError as e:
            raise ValueError(_build_validation_error_message(e.errors()))
