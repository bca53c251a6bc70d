"""Parser for line-oriented grep output (``grep -n -H`` or ``grep -l``)."""

import logging
import re
from typing import Dict, List

from ..models import FileMatches, Match, MatchLocation, ParseResult, SearchQuery
from .text import truncate_code_points

logger = logging.getLogger(__name__)

# First ":<digits>:" after a non-empty path; tolerates colons inside the path
_LINE_NUMBER_RE = re.compile(r":(\d+):")


def parse_grep_line(line: str):
    """Split one ``path:line:content`` record.

    Returns:
        ``(path, line_number, content)`` or None when the line is unusable.
        Lines without a line number fall back to ``path:content`` with
        line number 0.
    """
    found = _LINE_NUMBER_RE.search(line)
    if found and found.start() > 0:
        return line[: found.start()], int(found.group(1)), line[found.end():]

    colon = line.find(":")
    if colon > 0:
        path = line[:colon]
        if "\x00" not in path:
            return path, 0, line[colon + 1:]

    return None


def parse_grep_output(output: str, query: SearchQuery) -> ParseResult:
    """Build per-file matches from grep output.

    grep reports no byte offsets, so locations carry zeros except for
    char_length, which is the length of the (truncated) value.
    """
    grouped: Dict[str, List[Match]] = {}

    if query.files_only:
        for line in output.splitlines():
            path = line.strip()
            if path and path not in grouped:
                grouped[path] = []
        return ParseResult(
            files=[FileMatches(path=path, match_count=0) for path in grouped]
        )

    for line in output.splitlines():
        if not line or line == "--":
            continue

        parsed = parse_grep_line(line)
        if parsed is None:
            logger.debug(f"Skipping unparseable grep line: {line[:100]}")
            continue

        path, line_number, content = parsed
        value = truncate_code_points(content, query.match_content_length)
        grouped.setdefault(path, []).append(
            Match(
                value=value,
                location=MatchLocation(
                    byte_offset=0,
                    byte_length=0,
                    char_offset=0,
                    char_length=len(value),
                    line=line_number,
                    column=0,
                ),
            )
        )

    return ParseResult(
        files=[
            FileMatches(path=path, match_count=len(matches), matches=matches)
            for path, matches in grouped.items()
        ]
    )
