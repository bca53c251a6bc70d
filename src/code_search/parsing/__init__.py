"""Parsers turning backend stdout into per-file match data."""

from .grep_output import parse_grep_line, parse_grep_output
from .ripgrep_json import (
    RgContext,
    RgMatch,
    RgSummary,
    RgUnrecognized,
    decode_line,
    parse_ripgrep_files_output,
    parse_ripgrep_json,
)
from .text import TRUNCATION_MARKER, assemble_context, complete_lines, truncate_code_points

__all__ = [
    "RgContext",
    "RgMatch",
    "RgSummary",
    "RgUnrecognized",
    "TRUNCATION_MARKER",
    "assemble_context",
    "complete_lines",
    "decode_line",
    "parse_grep_line",
    "parse_grep_output",
    "parse_ripgrep_files_output",
    "parse_ripgrep_json",
    "truncate_code_points",
]
