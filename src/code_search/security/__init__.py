"""Argument security for backend commands."""

from .argument_classifier import ArgumentClassification, FlagSpec, classify_arguments
from .command_validator import (
    ALLOWED_COMMANDS,
    ValidationResult,
    escape_shell_arg,
    validate_command,
)

__all__ = [
    "ALLOWED_COMMANDS",
    "ArgumentClassification",
    "FlagSpec",
    "ValidationResult",
    "classify_arguments",
    "escape_shell_arg",
    "validate_command",
]
