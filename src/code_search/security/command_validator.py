"""Command validation for backend execution.

This module validates that only allowlisted backends are executed and that
their arguments carry no shell-injection vectors. Validation runs BEFORE any
subprocess exists.

Validation is position-aware: search patterns and glob values legitimately
contain characters such as ``|``, ``(``, ``{`` and ``$``, so positions the
argument classifier marks as pattern-bearing get a much narrower check.
All other arguments (paths, flag values) must be free of shell metacharacters,
command substitution, null bytes and traversal tokens.
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Sequence

from ..exceptions import CommandValidationError
from .argument_classifier import BACKEND_TABLES, classify_arguments

# Using frozenset for immutability and O(1) lookup
ALLOWED_COMMANDS: FrozenSet[str] = frozenset(BACKEND_TABLES)

DANGEROUS_PATTERNS: List["re.Pattern[str]"] = [
    re.compile(r"[;&|`]"),  # command chaining / pipes / backticks
    re.compile(r"\$[({\w]"),  # command substitution and variable expansion
    re.compile(r"[<>]"),  # redirection
    re.compile(r"[(){}]"),  # subshells and brace expansion
    re.compile(r"\x00"),  # null bytes
    re.compile(r"[\r\n]"),  # embedded newlines
    re.compile(r"(^|[\\/])\.\.([\\/]|$)"),  # directory traversal
]

# Patterns are handed to the backend via argv, never a shell; only bytes that
# cannot travel through exec at all are rejected.
PATTERN_DANGEROUS_PATTERNS: List["re.Pattern[str]"] = [
    re.compile(r"\x00"),
]


@dataclass
class ValidationResult:
    """Result of command validation."""

    valid: bool
    error: Optional[str] = None

    def raise_if_invalid(self) -> None:
        """Raise CommandValidationError when validation failed."""
        if not self.valid:
            raise CommandValidationError(self.error or "Command validation failed")


def is_allowed_command(command: str) -> bool:
    """Check if command is an allowlisted search backend."""
    return command in ALLOWED_COMMANDS


def validate_command(command: str, args: Sequence[str]) -> ValidationResult:
    """Validate that a command is allowed and its arguments are safe.

    Args:
        command: Backend binary name (case-sensitive)
        args: Argument vector, excluding the command itself

    Returns:
        ValidationResult; ``error`` explains the first problem found
    """
    if not is_allowed_command(command):
        return ValidationResult(
            valid=False,
            error=(
                f"Command '{command}' is not allowed. "
                f"Allowed commands: {', '.join(sorted(ALLOWED_COMMANDS))}"
            ),
        )

    args = list(args)
    classification = classify_arguments(command, args)

    if classification.disallowed_flag is not None:
        kind = "operator" if command == "find" else "option"
        return ValidationResult(
            valid=False,
            error=f"{command} {kind} '{classification.disallowed_flag}' is not allowed.",
        )

    for index, arg in enumerate(args):
        is_pattern = classification.is_exempt(index)
        checks = PATTERN_DANGEROUS_PATTERNS if is_pattern else DANGEROUS_PATTERNS
        for dangerous in checks:
            if dangerous.search(arg):
                arg_type = "search pattern" if is_pattern else "argument"
                return ValidationResult(
                    valid=False,
                    error=(
                        f"Dangerous pattern detected in {arg_type}: {arg!r}. "
                        "This may be a command injection attempt."
                    ),
                )

    return ValidationResult(valid=True)


def escape_shell_arg(value: str) -> str:
    """Quote a value for embedding in a shell string.

    Wraps the value in single quotes and doubles embedded single quotes.
    Backends are always spawned from an argument vector; this exists only for
    the rare case a value has to be shown or embedded as shell text.
    """
    return "'" + value.replace("'", "''") + "'"
