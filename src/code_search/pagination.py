"""
Two-level pagination for search results.

The pipeline is sort -> global cap -> outer window (files) -> inner window
(matches of the files on the current page). Each step is a separate
function; ``paginate`` composes them. Totals always describe the full
post-cap result set, never just the current page.
"""

import math
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple, TypeVar

from .models import (
    FileMatches,
    MatchPagination,
    PageResult,
    PaginationInfo,
    SearchQuery,
    SearchStats,
)

T = TypeVar("T")


def sort_files(files: Sequence[FileMatches], by_modified: bool = False) -> List[FileMatches]:
    """Sort by path, or newest first with path as the tie-breaker.

    Files without a timestamp sort after all timestamped files.
    """
    by_path = sorted(files, key=lambda f: f.path)
    if not by_modified:
        return by_path
    # Stable sort keeps path order among equal timestamps
    return sorted(by_path, key=lambda f: f.modified or "", reverse=True)


def apply_file_cap(items: Sequence[T], max_files: Optional[int]) -> Tuple[List[T], bool]:
    """Truncate to at most ``max_files`` items.

    Returns:
        (items, was_capped)
    """
    if max_files is None or len(items) <= max_files:
        return list(items), False
    return list(items[:max_files]), True


def paginate_files(
    items: Sequence[T], per_page: int, page: int
) -> Tuple[List[T], PaginationInfo]:
    """Return one page of items plus outer-window metadata.

    A page beyond the last one yields an empty list, not an error.
    """
    total = len(items)
    total_pages = math.ceil(total / per_page) if total else 0
    start = (page - 1) * per_page
    window = list(items[start:start + per_page]) if page <= total_pages else []

    return window, PaginationInfo(
        current_page=page,
        total_pages=total_pages,
        files_per_page=per_page,
        total_files=total,
        has_more=page < total_pages,
    )


def paginate_matches(file_matches: FileMatches, matches_per_page: int) -> FileMatches:
    """Keep the first page of a file's matches.

    match_count keeps the full total; match pagination metadata is attached
    only when the file has more matches than fit on one page.
    """
    total = file_matches.match_count
    if total <= matches_per_page and len(file_matches.matches) <= matches_per_page:
        return file_matches

    return replace(
        file_matches,
        matches=file_matches.matches[:matches_per_page],
        pagination=MatchPagination(
            current_page=1,
            total_pages=math.ceil(total / matches_per_page),
            matches_per_page=matches_per_page,
            total_matches=total,
            has_more=total > matches_per_page,
        ),
    )


def count_total_matches(
    files: Sequence[FileMatches],
    stats: Optional[SearchStats],
    files_only: bool,
    was_capped: bool,
) -> int:
    """Total matches for the post-cap result set.

    Backend stats win when they describe the same set of files: always in
    files-only mode (no match bodies exist), and in content mode unless the
    file cap dropped files.
    """
    stats_count = stats.match_count if stats is not None else None
    if files_only:
        return stats_count if stats_count is not None else len(files)
    if stats_count is not None and not was_capped:
        return stats_count
    return sum(f.match_count for f in files)


def paginate(
    files: Sequence[FileMatches],
    query: SearchQuery,
    stats: Optional[SearchStats] = None,
) -> PageResult:
    """Sort, cap and window parsed matches for one query."""
    ordered = sort_files(files, by_modified=query.show_file_last_modified)
    capped, was_capped = apply_file_cap(ordered, query.max_files)

    total_matches = count_total_matches(capped, stats, query.files_only, was_capped)
    page, info = paginate_files(capped, query.files_per_page, query.file_page_number)

    if not query.files_only:
        page = [paginate_matches(f, query.matches_per_page) for f in page]

    return PageResult(
        files=page,
        total_files=len(capped),
        total_matches=total_matches,
        pagination=info,
        was_capped=was_capped,
        uncapped_total_files=len(ordered),
    )
