"""Follow-up hints attached to search results."""

from typing import List, Optional

from .models import FileMatches, PageResult, PaginationInfo

EMPTY_RESULT_HINTS = [
    "No matches found. Check the pattern, or relax case sensitivity (smart_case / case_insensitive).",
    "Broaden the search: remove type/include filters or search a parent directory.",
    "Files ignored by .gitignore are skipped unless no_ignore is set; hidden files need hidden=True.",
]

LARGE_DIRECTORY_HINTS = [
    "Large codebase: start with files_only to find candidate files.",
    "Then narrow with type, include or exclude_dir before requesting match content.",
]


def file_page_hints(info: PaginationInfo, shown: int) -> List[str]:
    """Describe where the current page sits and how to get the next one."""
    hints = [
        f"File page {info.current_page}/{info.total_pages} "
        f"(showing {shown} of {info.total_files})"
    ]
    if info.has_more:
        hints.append(f"Next: file_page_number={info.current_page + 1}")
    else:
        hints.append("Final page")
    return hints


def pagination_hints(page: PageResult, max_files: Optional[int] = None) -> List[str]:
    """Page position, totals, cap and per-file overflow notes for a content search."""
    hints = file_page_hints(page.pagination, len(page.files))
    hints.insert(1, f"Total: {page.total_matches} matches across {page.total_files} files")

    if page.was_capped:
        hints.append(
            f"Results limited to {max_files} files (found {page.uncapped_total_files} matching)"
        )

    with_more = [f for f in page.files if isinstance(f, FileMatches) and f.pagination]
    if with_more:
        hints.append(
            f"Note: {len(with_more)} file(s) have more matches - "
            "raise matches_per_page or search the file directly to see more"
        )
    return hints


def timeout_hints(timeout_seconds: float) -> List[str]:
    return [
        f"Search timed out after {timeout_seconds:g} seconds.",
        "Try a more specific path or add type/include filters to narrow the search.",
        "Use files_only for faster discovery.",
        "Consider excluding large directories with exclude_dir.",
    ]


def output_limit_hints(max_output_bytes: int) -> List[str]:
    return [
        f"Backend output exceeded {max_output_bytes} bytes and was stopped.",
        "Narrow the pattern or path, lower max_matches_per_file, or use files_only.",
    ]


def backend_error_hints(engine: str) -> List[str]:
    return [
        f"{engine} reported an error; see stderr for details.",
        "Check that the pattern is a valid regular expression, or set fixed_string.",
    ]
