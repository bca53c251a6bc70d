"""Argument-vector builders for the search backends."""

from .base import BaseCommandBuilder
from .find import FindCommandBuilder, parse_time_spec
from .grep import GREP_FALLBACK_WARNING, GrepCommandBuilder, grep_feature_warnings
from .ripgrep import RipgrepCommandBuilder, consolidate_globs

__all__ = [
    "BaseCommandBuilder",
    "FindCommandBuilder",
    "GREP_FALLBACK_WARNING",
    "GrepCommandBuilder",
    "RipgrepCommandBuilder",
    "consolidate_globs",
    "grep_feature_warnings",
    "parse_time_spec",
]
