"""
Error types for ecs-firelens configuration and synthesis.
"""

from __future__ import annotations

from pathlib import Path


class FirelensError(Exception):
    """Base exception for all ecs-firelens errors."""

    def __init__(self, message: str, path: Path | None = None):
        self.message = message
        self.path = path
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with the offending file if available."""
        if self.path is not None:
            return f"{self.path}: {self.message}"
        return self.message


class ConfigError(FirelensError):
    """
    Raised when deployment configuration cannot be used.

    Examples:
    - Malformed TOML in firelens.toml
    - Values rejected by the configuration schema
    - Log router configuration file not found
    """

    pass


class SynthError(FirelensError):
    """Raised when CDK synthesis of the stack fails."""

    pass


__all__ = [
    "FirelensError",
    "ConfigError",
    "SynthError",
]
