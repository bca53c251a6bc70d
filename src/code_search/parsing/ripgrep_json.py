"""
Parser for ripgrep output.

``rg --json`` emits one JSON message per line, tagged by ``type``. Each line
is decoded into a closed set of variants (RgMatch, RgContext, RgSummary,
RgUnrecognized); anything malformed or irrelevant becomes RgUnrecognized
and is ignored, so stray warnings on the stream never abort parsing.

``rg -l --stats`` prints plain paths followed by a text statistics block;
parse_ripgrep_files_output handles that form.
"""

import base64
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..models import FileMatches, Match, MatchLocation, ParseResult, SearchQuery, SearchStats
from .text import assemble_context, strip_line_ending, truncate_code_points

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RgMatch:
    path: str
    line_text: str
    line_number: int
    absolute_offset: int
    # First submatch, in bytes relative to the line start
    start: int
    end: int


@dataclass(frozen=True)
class RgContext:
    path: str
    line_text: str
    line_number: int


@dataclass(frozen=True)
class RgSummary:
    stats: SearchStats


@dataclass(frozen=True)
class RgUnrecognized:
    raw: str


RgMessage = Union[RgMatch, RgContext, RgSummary, RgUnrecognized]


def _arbitrary_data(value: Dict[str, Any]) -> str:
    """Decode ripgrep's ``{"text": ...}`` / ``{"bytes": base64}`` wrapper."""
    if "text" in value:
        return value["text"]
    return base64.b64decode(value["bytes"]).decode("utf-8", errors="replace")


def _byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


def decode_line(line: str) -> RgMessage:
    """Decode one line of ``rg --json`` output into a message variant."""
    stripped = line.strip()
    if not stripped.startswith("{"):
        return RgUnrecognized(line)

    try:
        message = json.loads(stripped)
        kind = message.get("type")
        data = message.get("data") or {}

        if kind == "match":
            line_text = _arbitrary_data(data["lines"])
            submatches = data.get("submatches") or []
            if submatches:
                start, end = submatches[0]["start"], submatches[0]["end"]
            else:
                # Inverted matches carry no submatches; the whole line is the match
                start, end = 0, _byte_length(strip_line_ending(line_text))
            return RgMatch(
                path=_arbitrary_data(data["path"]),
                line_text=strip_line_ending(line_text),
                line_number=int(data["line_number"]),
                absolute_offset=int(data["absolute_offset"]),
                start=int(start),
                end=int(end),
            )

        if kind == "context":
            return RgContext(
                path=_arbitrary_data(data["path"]),
                line_text=strip_line_ending(_arbitrary_data(data["lines"])),
                line_number=int(data["line_number"]),
            )

        if kind == "summary":
            stats = data["stats"]
            return RgSummary(
                SearchStats(
                    match_count=stats.get("matches"),
                    matched_lines=stats.get("matched_lines"),
                    files_matched=stats.get("searches_with_match"),
                    files_searched=stats.get("searches"),
                    bytes_searched=stats.get("bytes_searched"),
                    search_time=(stats.get("elapsed") or {}).get("human"),
                )
            )
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.debug(f"Skipping malformed ripgrep line ({e}): {line[:100]}")
        return RgUnrecognized(line)

    # begin/end messages and unknown types carry nothing we need
    return RgUnrecognized(line)


@dataclass
class _FileEntry:
    raw_matches: List[RgMatch] = field(default_factory=list)
    contexts: Dict[int, str] = field(default_factory=dict)


def parse_ripgrep_json(output: str, query: SearchQuery) -> ParseResult:
    """Build per-file matches from ``rg --json`` output.

    Files appear in the order ripgrep first reported them. Context assembly
    uses the query's before/after radii; each value is truncated to
    ``query.match_content_length`` code points. The summary message, when
    present, is returned as authoritative stats.
    """
    entries: Dict[str, _FileEntry] = {}
    stats: Optional[SearchStats] = None

    for line in output.splitlines():
        if not line.strip():
            continue
        message = decode_line(line)

        if isinstance(message, RgMatch):
            entries.setdefault(message.path, _FileEntry()).raw_matches.append(message)
        elif isinstance(message, RgContext):
            entry = entries.setdefault(message.path, _FileEntry())
            entry.contexts[message.line_number] = message.line_text
        elif isinstance(message, RgSummary):
            stats = message.stats

    before = query.before_radius
    after = query.after_radius
    max_length = query.match_content_length

    files: List[FileMatches] = []
    for path, entry in entries.items():
        # Context-only entries cannot occur for real output, but never report them
        if not entry.raw_matches:
            continue

        matches = []
        for raw in entry.raw_matches:
            value = assemble_context(
                raw.line_text, raw.line_number, entry.contexts, before, after
            )
            byte_offset = raw.absolute_offset + raw.start
            byte_length = raw.end - raw.start
            matches.append(
                Match(
                    value=truncate_code_points(value, max_length),
                    location=MatchLocation(
                        byte_offset=byte_offset,
                        byte_length=byte_length,
                        char_offset=byte_offset,
                        char_length=byte_length,
                        line=raw.line_number,
                        column=raw.start,
                    ),
                )
            )
        files.append(FileMatches(path=path, match_count=len(matches), matches=matches))

    return ParseResult(files=files, stats=stats)


_STATS_COUNT_RE = re.compile(
    r"^(\d+) (matches|matched lines|files contained matches|files searched|bytes searched)$"
)
_STATS_TIME_RE = re.compile(r"^([\d.]+) seconds spent searching$")

_STATS_FIELDS = {
    "matches": "match_count",
    "matched lines": "matched_lines",
    "files contained matches": "files_matched",
    "files searched": "files_searched",
    "bytes searched": "bytes_searched",
}


def parse_ripgrep_files_output(output: str) -> ParseResult:
    """Parse ``rg -l [--stats]`` output.

    Paths come first, one per line. With ``--stats`` a blank line separates
    them from the statistics block. Per-file match counts are unknown in
    this mode and reported as 0.
    """
    files: List[FileMatches] = []
    seen = set()
    stats_values: Dict[str, Any] = {}
    in_stats = False

    for line in output.splitlines():
        text = line.strip()
        if not text:
            in_stats = True
            continue

        if in_stats:
            count = _STATS_COUNT_RE.match(text)
            if count:
                stats_values[_STATS_FIELDS[count.group(2)]] = int(count.group(1))
                continue
            elapsed = _STATS_TIME_RE.match(text)
            if elapsed:
                stats_values["search_time"] = f"{elapsed.group(1)}s"
            continue

        if text not in seen:
            seen.add(text)
            files.append(FileMatches(path=text, match_count=0))

    stats = SearchStats(**stats_values) if stats_values else None
    return ParseResult(files=files, stats=stats)
