"""
Content search orchestration.

ContentSearchService runs one query through the whole pipeline:

    config defaults and workflow preset -> query validation -> backend selection
    -> command build -> command validation -> supervised run -> exit-code mapping
    -> parse -> mtimes -> pagination -> offset reconciliation of the page -> hints

Runtime failures never raise; they come back as SearchResult(status="error")
with a stable error code, captured stderr and elapsed time. A run stopped by
the timeout or the output ceiling still returns the complete records it
produced, flagged as partial.
"""

import asyncio
import logging
import os
import re
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from .commands import (
    GREP_FALLBACK_WARNING,
    GrepCommandBuilder,
    RipgrepCommandBuilder,
    grep_feature_warnings,
)
from .config import Config, SearchLimitsConfig
from .exceptions import (
    BackendError,
    BackendUnavailableError,
    CommandValidationError,
    OutputLimitExceededError,
    QueryValidationError,
    SearchTimeoutError,
    SpawnError,
)
from .hints import (
    EMPTY_RESULT_HINTS,
    LARGE_DIRECTORY_HINTS,
    backend_error_hints,
    output_limit_hints,
    pagination_hints,
    timeout_hints,
)
from .models import FileMatches, ParseResult, SearchQuery, SearchResult
from .offsets import reconcile_offsets
from .pagination import paginate
from .parsing import (
    complete_lines,
    parse_grep_output,
    parse_ripgrep_files_output,
    parse_ripgrep_json,
)
from .process import ProcessResult, check_command_success, run_process
from .security import validate_command

logger = logging.getLogger(__name__)

Runner = Callable[..., Awaitable[ProcessResult]]
Probe = Callable[..., Awaitable[bool]]

ENGINE_PREFERENCE = ("rg", "grep")

# Presets fill only fields the caller did not set explicitly
MODE_PRESETS = {
    "discovery": {"files_only": True, "smart_case": True},
    "paginated": {"files_per_page": 10, "matches_per_page": 10, "smart_case": True},
    "detailed": {
        "context_lines": 3,
        "files_per_page": 10,
        "matches_per_page": 20,
        "smart_case": True,
    },
}

_SIMPLE_GLOB_RE = re.compile(r"^\*\.([A-Za-z0-9]+)$")
_KNOWN_TYPES = {"ts", "js", "py", "rust", "go", "java", "cpp", "c"}


def apply_workflow_mode(
    query: SearchQuery, limits: Optional[SearchLimitsConfig] = None
) -> SearchQuery:
    """Fill unset fields from the configured defaults, then the mode preset.

    Explicitly set fields always win; a preset beats the configured default.
    """
    update = {}
    if limits is not None:
        update.update(
            files_per_page=limits.default_files_per_page,
            matches_per_page=limits.default_matches_per_page,
            match_content_length=limits.default_match_content_length,
        )
    if query.mode:
        update.update(MODE_PRESETS[query.mode])
    update = {name: value for name, value in update.items() if name not in query.model_fields_set}
    if not update:
        return query
    return query.model_copy(update=update)


@dataclass
class QueryValidation:
    """Conflicts (errors) and advisory warnings for one query."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_query(query: SearchQuery) -> QueryValidation:
    """Check a query for conflicting options and costly settings."""
    result = QueryValidation()

    if query.fixed_string and query.perl_regex:
        result.errors.append("fixed_string and perl_regex are mutually exclusive. Choose one.")

    if query.files_only and query.invert_match:
        result.warnings.append(
            "files_only with invert_match lists files containing at least one non-matching line."
        )

    if query.line_regexp and query.whole_word:
        result.warnings.append(
            "line_regexp and whole_word both specified. line_regexp takes precedence."
        )

    if query.case_sensitive and query.case_insensitive:
        result.warnings.append(
            "Multiple case sensitivity modes specified. "
            "Priority: case_sensitive > case_insensitive > smart_case"
        )

    largest_context = max(query.before_radius, query.after_radius)
    if largest_context > 2:
        result.warnings.append(
            f"Context lines enabled ({largest_context} lines). Match values will include "
            f"context and be truncated to {query.match_content_length} characters. "
            "Use matches_per_page for pagination."
        )

    if query.multiline:
        result.warnings.append(
            "Multiline mode is memory-intensive and slower. Entire files are loaded into "
            "memory. Only use when the pattern genuinely spans multiple lines."
        )
        if query.perl_regex and not query.no_unicode:
            result.warnings.append(
                "TIP: For faster PCRE2 multiline searches on ASCII codebases, "
                "consider no_unicode=True."
            )
    elif query.multiline_dotall:
        result.warnings.append("multiline_dotall has no effect without multiline.")

    if len(query.include) > 1 and all(_SIMPLE_GLOB_RE.match(g) for g in query.include):
        extensions = ",".join(g[2:] for g in query.include)
        result.warnings.append(
            f'TIP: Consolidate globs for better performance: include=["*.{{{extensions}}}"] '
            "instead of separate globs."
        )

    if query.include and not query.type:
        simple = _SIMPLE_GLOB_RE.match(query.include[0])
        if simple and simple.group(1) in _KNOWN_TYPES:
            result.warnings.append(
                f'TIP: Use type="{simple.group(1)}" instead of an include glob for cleaner syntax.'
            )

    return result


@dataclass
class DirectoryEstimate:
    estimated_size_mb: float = 0.0
    estimated_file_count: int = 0
    is_large: bool = False


def estimate_directory(path: str, limits: SearchLimitsConfig) -> DirectoryEstimate:
    """Cheap size estimate: root files are stat'ed, one level of subdirectories is counted.

    Hidden subdirectories are skipped. Unreadable entries are ignored; an
    unreadable root yields an empty estimate.
    """
    file_count = 0
    total_size = 0

    try:
        with os.scandir(path) as entries:
            for entry in entries:
                try:
                    if entry.is_file(follow_symlinks=False):
                        total_size += entry.stat(follow_symlinks=False).st_size
                        file_count += 1
                    elif entry.is_dir(follow_symlinks=False) and not entry.name.startswith("."):
                        with os.scandir(entry.path) as sub_entries:
                            sub_files = sum(
                                1 for sub in sub_entries if sub.is_file(follow_symlinks=False)
                            )
                        file_count += sub_files
                        total_size += sub_files * limits.estimated_average_file_size_bytes
                except OSError:
                    continue
    except OSError as e:
        logger.debug(f"Could not estimate size of {path}: {e}")
        return DirectoryEstimate()

    size_mb = total_size / (1024 * 1024)
    return DirectoryEstimate(
        estimated_size_mb=size_mb,
        estimated_file_count=file_count,
        is_large=(
            size_mb > limits.large_directory_size_mb
            or file_count > limits.large_directory_file_count
        ),
    )


def format_mtime(path: str) -> Optional[str]:
    """ISO-8601 UTC modification time of ``path``, or None if it cannot be stat'ed."""
    try:
        mtime = os.stat(path).st_mtime
    except OSError:
        return None
    return datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat()


class ContentSearchService:
    """Runs content searches against rg, falling back to grep.

    The backend probe result is cached on the instance only.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        runner: Optional[Runner] = None,
        probe: Optional[Probe] = None,
    ):
        self.config = config or Config()
        self.limits = self.config.limits
        self._runner = runner or run_process
        self._probe = probe or check_command_success
        self._engine: Optional[str] = None

    async def detect_engine(self) -> Optional[str]:
        """Return the first available backend, probing with ``--version``."""
        if self._engine is None:
            for engine in ENGINE_PREFERENCE:
                if await self._probe(
                    engine,
                    ["--version"],
                    timeout=self.limits.probe_timeout_seconds,
                    max_output_bytes=self.limits.max_single_value_output_bytes,
                ):
                    self._engine = engine
                    break
            if self._engine != ENGINE_PREFERENCE[0]:
                logger.info(f"ripgrep not available, using {self._engine or 'no backend'}")
        return self._engine

    async def search(self, query: SearchQuery) -> SearchResult:
        """Run one content search. Never raises for runtime failures."""
        started = time.monotonic()
        query = apply_workflow_mode(query, self.limits)

        engine = await self.detect_engine()
        if engine is None:
            return self._error_result(
                query,
                "none",
                BackendUnavailableError("Neither rg nor grep is available on PATH"),
                started,
                hints=["Install ripgrep (rg) for full feature support."],
            )

        warnings: List[str] = []
        if engine == "grep":
            warnings.append(GREP_FALLBACK_WARNING)
            warnings.extend(grep_feature_warnings(query))

        validation = validate_query(query)
        warnings.extend(validation.warnings)
        if not validation.is_valid:
            return self._error_result(
                query,
                engine,
                QueryValidationError("Query validation failed", ", ".join(validation.errors)),
                started,
                warnings=warnings,
            )

        estimate = await asyncio.to_thread(estimate_directory, query.path, self.limits)
        if estimate.is_large and not query.files_only:
            warnings.append(
                f"Large directory detected (~{round(estimate.estimated_size_mb)}MB, "
                f"~{estimate.estimated_file_count} files). Consider a chunked workflow."
            )
            warnings.extend(LARGE_DIRECTORY_HINTS)

        builder = RipgrepCommandBuilder() if engine == "rg" else GrepCommandBuilder()
        command, args = builder.from_query(query).build()

        command_check = validate_command(command, args)
        if not command_check.valid:
            return self._error_result(
                query,
                engine,
                CommandValidationError(command_check.error or "Command validation failed"),
                started,
                warnings=warnings,
            )

        process_result = await self._runner(
            command,
            args,
            timeout=self.limits.timeout_seconds,
            allowed_env_vars=self.limits.allowed_env_vars,
            max_output_bytes=self.limits.max_output_bytes,
            kill_grace=self.limits.kill_grace_seconds,
        )
        return await self._build_result(query, engine, process_result, warnings, started)

    async def _build_result(
        self,
        query: SearchQuery,
        engine: str,
        process_result: ProcessResult,
        warnings: List[str],
        started: float,
    ) -> SearchResult:
        if process_result.timed_out or process_result.output_limit_exceeded:
            return await self._stopped_early_result(
                query, engine, process_result, warnings, started
            )

        if process_result.spawn_failed:
            return self._error_result(
                query,
                engine,
                SpawnError(process_result.error or f"Failed to spawn {engine}"),
                started,
                warnings=warnings,
            )

        # Exit code 1 means "no matches" for both backends
        if process_result.exit_code == 1 or (
            process_result.success and not process_result.stdout.strip()
        ):
            return self._empty_result(query, engine, warnings, started)

        if not process_result.success:
            logger.warning(
                f"{engine} exited with code {process_result.exit_code}: "
                f"{process_result.stderr.strip()[:200]}"
            )
            return self._error_result(
                query,
                engine,
                BackendError(
                    f"{engine} failed (exit code {process_result.exit_code})",
                    process_result.stderr.strip() or None,
                    exit_code=process_result.exit_code,
                ),
                started,
                warnings=warnings,
                hints=backend_error_hints(engine),
                stderr=process_result.stderr,
            )

        parsed = self._parse(engine, process_result.stdout, query)
        if not parsed.files:
            return self._empty_result(query, engine, warnings, started)

        return await self._results(query, engine, parsed, warnings, started)

    async def _stopped_early_result(
        self,
        query: SearchQuery,
        engine: str,
        process_result: ProcessResult,
        warnings: List[str],
        started: float,
    ) -> SearchResult:
        """Salvage whatever complete output arrived before a timeout or the output ceiling."""
        if process_result.timed_out:
            error = SearchTimeoutError(process_result.error or "Search timed out")
            hints = timeout_hints(self.limits.timeout_seconds)
        else:
            error = OutputLimitExceededError(
                process_result.error or "Output size limit exceeded",
                f"{len(process_result.stdout)} characters collected before the limit",
            )
            hints = output_limit_hints(self.limits.max_output_bytes)

        # Summary and stats blocks never arrive, so only the file data is kept
        parsed = self._parse(engine, complete_lines(process_result.stdout), query)
        if not parsed.files:
            return self._error_result(
                query,
                engine,
                error,
                started,
                warnings=warnings,
                hints=hints,
                stderr=process_result.stderr,
            )

        logger.warning(f"{engine} stopped early, returning partial results: {error}")
        warnings.append(
            f"Search stopped early after {self._elapsed_ms(started):.0f} ms ({error.message}); "
            "results are partial"
        )
        result = await self._results(
            query, engine, ParseResult(files=parsed.files), warnings, started
        )
        result.partial = True
        result.hints.extend(hints)
        result.error_code = error.error_code
        result.error = str(error)
        result.stderr = process_result.stderr or None
        return result

    async def _results(
        self,
        query: SearchQuery,
        engine: str,
        parsed: ParseResult,
        warnings: List[str],
        started: float,
    ) -> SearchResult:
        files = parsed.files
        if query.show_file_last_modified:
            files = await asyncio.to_thread(self._attach_mtimes, files)

        page = paginate(files, query, stats=parsed.stats)
        page_files = page.files
        if engine == "rg" and not query.files_only:
            # Only the visible page is converted; this reads those files from disk
            page_files = await asyncio.to_thread(reconcile_offsets, page_files)

        return SearchResult(
            status="hasResults",
            search_engine=engine,
            path=query.path,
            files=page_files,
            total_files=page.total_files,
            total_matches=page.total_matches,
            pagination=page.pagination,
            warnings=warnings,
            hints=pagination_hints(page, query.max_files),
            stats=parsed.stats if query.include_stats else None,
            elapsed_ms=self._elapsed_ms(started),
        )

    @staticmethod
    def _parse(engine: str, stdout: str, query: SearchQuery) -> ParseResult:
        if engine == "grep":
            return parse_grep_output(stdout, query)
        if query.files_only:
            return parse_ripgrep_files_output(stdout)
        return parse_ripgrep_json(stdout, query)

    @staticmethod
    def _attach_mtimes(files: List[FileMatches]) -> List[FileMatches]:
        return [replace(f, modified=format_mtime(f.path)) for f in files]

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.monotonic() - started) * 1000, 2)

    def _empty_result(
        self, query: SearchQuery, engine: str, warnings: List[str], started: float
    ) -> SearchResult:
        return SearchResult(
            status="empty",
            search_engine=engine,
            path=query.path,
            warnings=warnings,
            hints=list(EMPTY_RESULT_HINTS),
            elapsed_ms=self._elapsed_ms(started),
        )

    def _error_result(
        self,
        query: SearchQuery,
        engine: str,
        error,
        started: float,
        warnings: Optional[List[str]] = None,
        hints: Optional[List[str]] = None,
        stderr: Optional[str] = None,
    ) -> SearchResult:
        return SearchResult(
            status="error",
            search_engine=engine,
            path=query.path,
            warnings=warnings or [],
            hints=hints or [],
            error_code=error.error_code,
            error=str(error),
            stderr=stderr or None,
            elapsed_ms=self._elapsed_ms(started),
        )
