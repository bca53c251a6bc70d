"""Text helpers shared by the output parsers."""

from typing import Mapping

TRUNCATION_MARKER = "..."


def truncate_code_points(value: str, max_length: int) -> str:
    """Cap ``value`` at ``max_length`` code points, marker included.

    Python strings index by code point, so slicing never splits a
    multi-byte character.
    """
    if len(value) <= max_length:
        return value
    if max_length <= len(TRUNCATION_MARKER):
        return value[:max_length]
    return value[: max_length - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def strip_line_ending(text: str) -> str:
    return text.rstrip("\r\n")


def assemble_context(
    line_text: str,
    line_number: int,
    context_lines: Mapping[int, str],
    before: int,
    after: int,
) -> str:
    """Join the match line with whatever context exists around it.

    Lines ``line_number - before .. line_number + after`` are taken from
    ``context_lines`` in order; missing entries are skipped.
    """
    parts = []
    for offset in range(before, 0, -1):
        context = context_lines.get(line_number - offset)
        if context is not None:
            parts.append(context)
    parts.append(line_text)
    for offset in range(1, after + 1):
        context = context_lines.get(line_number + offset)
        if context is not None:
            parts.append(context)
    return "\n".join(parts)


def complete_lines(output: str) -> str:
    """Drop a trailing line that was cut off before its newline."""
    end = output.rfind("\n")
    return output[: end + 1]
