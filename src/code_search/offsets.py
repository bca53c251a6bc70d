"""Byte-offset to code-point-offset reconciliation for match locations."""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional

from .models import FileMatches, Match

logger = logging.getLogger(__name__)

ReadFile = Callable[[str], bytes]


def _read_bytes(path: str) -> bytes:
    return Path(path).read_bytes()


def _reconcile_match(match: Match, raw: bytes) -> Match:
    location = match.location
    end = location.byte_offset + location.byte_length
    if location.byte_offset < 0 or end > len(raw):
        # File changed since the search ran; the byte values are all we have
        return match

    char_offset = len(raw[: location.byte_offset].decode("utf-8", errors="replace"))
    char_length = len(raw[location.byte_offset:end].decode("utf-8", errors="replace"))
    return replace(
        match,
        location=replace(location, char_offset=char_offset, char_length=char_length),
    )


def reconcile_offsets(
    files: List[FileMatches], read_file: Optional[ReadFile] = None
) -> List[FileMatches]:
    """Replace placeholder char offsets with code-point offsets.

    Each file is read once. Files that cannot be read keep their byte-based
    values; the search result is still usable through line and column.

    Args:
        files: Parsed matches whose locations carry byte offsets
        read_file: Returns the raw bytes of a path (defaults to reading disk)

    Returns:
        New FileMatches objects; the input is not modified
    """
    reader = read_file or _read_bytes
    reconciled: List[FileMatches] = []

    for file_matches in files:
        if not file_matches.matches:
            reconciled.append(file_matches)
            continue

        try:
            raw = reader(file_matches.path)
        except OSError as e:
            logger.debug(f"Keeping byte offsets for {file_matches.path}: {e}")
            reconciled.append(file_matches)
            continue

        reconciled.append(
            replace(
                file_matches,
                matches=[_reconcile_match(match, raw) for match in file_matches.matches],
            )
        )

    return reconciled
