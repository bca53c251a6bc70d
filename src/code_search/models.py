"""
Data model for code search requests and results.

Queries are immutable pydantic models validated once at construction; result
types are plain dataclasses created fresh for each invocation.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SearchStatus = Literal["hasResults", "empty", "error"]
WorkflowMode = Literal["discovery", "paginated", "detailed"]


class SearchQuery(BaseModel):
    """Backend-agnostic content search request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pattern: str = Field(min_length=1, description="Pattern or regex to search for")
    path: str = Field(description="Root directory (already sandboxed by the caller)")
    mode: Optional[WorkflowMode] = Field(
        default=None, description="Preset applied before explicit options"
    )

    # Pattern modes
    fixed_string: bool = Field(default=False, description="Treat pattern as a literal")
    perl_regex: bool = Field(default=False, description="Use PCRE2 syntax")

    # Case sensitivity (priority: case_sensitive > case_insensitive > smart_case)
    smart_case: bool = Field(default=True)
    case_insensitive: bool = Field(default=False)
    case_sensitive: bool = Field(default=False)

    # Match behaviour
    whole_word: bool = Field(default=False)
    invert_match: bool = Field(default=False)
    line_regexp: bool = Field(default=False)

    # File filtering
    type: Optional[str] = Field(default=None, description="Backend file type, e.g. 'py'")
    include: List[str] = Field(default_factory=list, description="Include globs")
    exclude: List[str] = Field(default_factory=list, description="Exclude globs")
    exclude_dir: List[str] = Field(default_factory=list, description="Excluded directories")
    no_ignore: bool = Field(default=False, description="Do not honour .gitignore")
    hidden: bool = Field(default=False, description="Search hidden files")
    follow_symlinks: bool = Field(default=False)

    # Output control
    files_only: bool = Field(default=False, description="Report matching paths only")
    context_lines: Optional[int] = Field(default=None, ge=0, le=50)
    before_context: Optional[int] = Field(default=None, ge=0, le=50)
    after_context: Optional[int] = Field(default=None, ge=0, le=50)
    match_content_length: int = Field(
        default=200, ge=1, le=800, description="Max code points per match value"
    )
    max_matches_per_file: Optional[int] = Field(
        default=None, ge=1, le=100, description="Per-file cap passed to the backend"
    )
    max_files: Optional[int] = Field(
        default=None, ge=1, le=1000, description="Global cap on result files"
    )

    # Two-level pagination
    files_per_page: int = Field(default=10, ge=1, le=20)
    file_page_number: int = Field(default=1, ge=1)
    matches_per_page: int = Field(default=10, ge=1, le=100)

    # Advanced
    multiline: bool = Field(default=False)
    multiline_dotall: bool = Field(default=False)
    binary_files: Literal["text", "without-match", "binary"] = Field(
        default="without-match"
    )
    include_stats: bool = Field(default=True)
    sort: Literal["path", "modified", "accessed", "created"] = Field(default="path")
    sort_reverse: bool = Field(default=False)
    no_unicode: bool = Field(default=False)
    encoding: Optional[str] = Field(default=None)
    threads: Optional[int] = Field(default=None, ge=1, le=32)
    show_file_last_modified: bool = Field(
        default=False, description="Attach mtimes and sort newest first"
    )

    @property
    def before_radius(self) -> int:
        """Lines of context before a match (explicit value beats the shared radius)."""
        if self.before_context is not None:
            return self.before_context
        return self.context_lines or 0

    @property
    def after_radius(self) -> int:
        """Lines of context after a match (explicit value beats the shared radius)."""
        if self.after_context is not None:
            return self.after_context
        return self.context_lines or 0


class FindFilesQuery(BaseModel):
    """Path enumeration request served by the find backend."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    name: Optional[str] = None
    names: List[str] = Field(default_factory=list)
    iname: Optional[str] = None
    path_pattern: Optional[str] = None
    regex: Optional[str] = None
    regex_type: Optional[str] = None
    type: Optional[Literal["f", "d", "l"]] = None
    max_depth: Optional[int] = Field(default=None, ge=0, le=20)
    min_depth: Optional[int] = Field(default=None, ge=0, le=20)
    exclude_dir: Optional[List[str]] = None
    empty: bool = False
    size_greater: Optional[str] = Field(default=None, pattern=r"^\d+[ckMG]?$")
    size_less: Optional[str] = Field(default=None, pattern=r"^\d+[ckMG]?$")
    modified_within: Optional[str] = Field(default=None, pattern=r"^\d+[hdwm]$")
    modified_before: Optional[str] = Field(default=None, pattern=r"^\d+[hdwm]$")
    accessed_within: Optional[str] = Field(default=None, pattern=r"^\d+[hdwm]$")
    permissions: Optional[str] = Field(default=None, pattern=r"^[-+/]?[0-7]{3,4}$")
    executable: bool = False
    readable: bool = False
    writable: bool = False
    limit: int = Field(default=1000, ge=1, le=10000)
    details: bool = True
    show_file_last_modified: bool = True
    sort_by: Literal["modified", "size", "name", "path"] = "modified"
    files_per_page: int = Field(default=20, ge=1, le=100)
    file_page_number: int = Field(default=1, ge=1)


@dataclass
class MatchLocation:
    """Position of a match inside its source file.

    char_offset/char_length mirror the byte values until offset
    reconciliation replaces them with code-point positions.
    """

    byte_offset: int
    byte_length: int
    char_offset: int
    char_length: int
    line: int  # 1-based
    column: int  # 0-based


@dataclass
class Match:
    """A single match value (line plus context, possibly truncated)."""

    value: str
    location: MatchLocation


@dataclass
class MatchPagination:
    """Per-file match window metadata (only page 1 is ever served here)."""

    current_page: int
    total_pages: int
    matches_per_page: int
    total_matches: int
    has_more: bool


@dataclass
class FileMatches:
    """All matches for one file; match_count is always the full total."""

    path: str
    match_count: int
    matches: List[Match] = field(default_factory=list)
    pagination: Optional[MatchPagination] = None
    modified: Optional[str] = None


@dataclass
class SearchStats:
    """Authoritative totals reported by the backend summary."""

    match_count: Optional[int] = None
    matched_lines: Optional[int] = None
    files_matched: Optional[int] = None
    files_searched: Optional[int] = None
    bytes_searched: Optional[int] = None
    search_time: Optional[str] = None


@dataclass
class ParseResult:
    """Parser output: per-file matches plus optional backend stats."""

    files: List[FileMatches]
    stats: Optional[SearchStats] = None


@dataclass
class PaginationInfo:
    """Outer (file-level) window metadata."""

    current_page: int
    total_pages: int
    files_per_page: int
    total_files: int
    has_more: bool


@dataclass
class PageResult:
    """Output of the pagination engine."""

    files: List[Any]
    total_files: int
    total_matches: int
    pagination: PaginationInfo
    was_capped: bool = False
    uncapped_total_files: int = 0


@dataclass
class SearchResult:
    """Final content search response.

    total_files and total_matches describe the full post-cap result set;
    files holds only the current page. partial is set when the backend was
    stopped by a timeout or the output ceiling and files come from the output
    collected up to that point.
    """

    status: SearchStatus
    search_engine: str
    path: str
    files: List[FileMatches] = field(default_factory=list)
    total_files: int = 0
    total_matches: int = 0
    pagination: Optional[PaginationInfo] = None
    warnings: List[str] = field(default_factory=list)
    hints: List[str] = field(default_factory=list)
    stats: Optional[SearchStats] = None
    partial: bool = False
    error_code: Optional[str] = None
    error: Optional[str] = None
    stderr: Optional[str] = None
    elapsed_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain JSON-compatible data."""
        return asdict(self)


@dataclass
class FoundFile:
    """A path produced by file enumeration."""

    path: str
    type: str = "file"
    size: Optional[int] = None
    permissions: Optional[str] = None
    modified: Optional[str] = None


@dataclass
class FindFilesResult:
    """Final file enumeration response."""

    status: SearchStatus
    path: str
    files: List[FoundFile] = field(default_factory=list)
    total_files: int = 0
    pagination: Optional[PaginationInfo] = None
    partial: bool = False
    warnings: List[str] = field(default_factory=list)
    hints: List[str] = field(default_factory=list)
    error_code: Optional[str] = None
    error: Optional[str] = None
    stderr: Optional[str] = None
    elapsed_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain JSON-compatible data."""
        return asdict(self)
