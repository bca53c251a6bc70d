"""File enumeration through the find backend."""

import asyncio
import logging
import os
import stat
import time
from datetime import datetime, timezone
from typing import List, Optional

from .commands import FindCommandBuilder
from .config import Config
from .exceptions import (
    BackendError,
    CodeSearchError,
    CommandValidationError,
    OutputLimitExceededError,
    SearchTimeoutError,
    SpawnError,
)
from .hints import file_page_hints, output_limit_hints, timeout_hints
from .models import FindFilesQuery, FindFilesResult, FoundFile
from .pagination import paginate_files
from .process import ProcessResult, run_process
from .search_service import Runner
from .security import validate_command

logger = logging.getLogger(__name__)


def describe_path(path: str, details: bool, with_modified: bool) -> FoundFile:
    """Build a FoundFile from ``os.lstat``; unreadable paths keep only their name."""
    try:
        st = os.lstat(path)
    except OSError as e:
        logger.debug(f"Could not stat {path}: {e}")
        return FoundFile(path=path)

    if stat.S_ISDIR(st.st_mode):
        kind = "directory"
    elif stat.S_ISLNK(st.st_mode):
        kind = "symlink"
    else:
        kind = "file"

    return FoundFile(
        path=path,
        type=kind,
        size=st.st_size if details else None,
        permissions=format(stat.S_IMODE(st.st_mode), "o") if details else None,
        modified=(
            datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat()
            if with_modified
            else None
        ),
    )


def _describe_paths(paths: List[str], details: bool, with_modified: bool) -> List[FoundFile]:
    return [describe_path(p, details, with_modified) for p in paths]


def sort_found_files(files: List[FoundFile], sort_by: str) -> List[FoundFile]:
    """Sort enumeration results; path is always the tie-breaker."""
    by_path = sorted(files, key=lambda f: f.path)
    if sort_by == "modified":
        return sorted(by_path, key=lambda f: f.modified or "", reverse=True)
    if sort_by == "size":
        return sorted(by_path, key=lambda f: f.size or 0, reverse=True)
    if sort_by == "name":
        return sorted(by_path, key=lambda f: os.path.basename(f.path))
    return by_path


class FindFilesService:
    """Runs ``find`` under supervision and pages the resulting paths."""

    def __init__(
        self,
        config: Optional[Config] = None,
        runner: Optional[Runner] = None,
        platform: Optional[str] = None,
    ):
        self.config = config or Config()
        self.limits = self.config.limits
        self._runner = runner or run_process
        self.platform = platform

    async def find(self, query: FindFilesQuery) -> FindFilesResult:
        """Enumerate paths for one query. Never raises for runtime failures."""
        started = time.monotonic()

        try:
            command, args = (
                FindCommandBuilder(self.platform)
                .from_query(query, self.config.find_default_exclude_dirs)
                .build()
            )
        except CodeSearchError as e:
            return self._error_result(query, e, started)

        check = validate_command(command, args)
        if not check.valid:
            return self._error_result(
                query, CommandValidationError(check.error or "Command validation failed"), started
            )

        process_result = await self._runner(
            command,
            args,
            timeout=self.limits.timeout_seconds,
            allowed_env_vars=self.limits.allowed_env_vars,
            max_output_bytes=self.limits.max_output_bytes,
            kill_grace=self.limits.kill_grace_seconds,
        )
        return await self._build_result(query, process_result, started)

    async def _build_result(
        self, query: FindFilesQuery, process_result: ProcessResult, started: float
    ) -> FindFilesResult:
        if process_result.timed_out or process_result.output_limit_exceeded:
            return await self._stopped_early_result(query, process_result, started)
        if process_result.spawn_failed:
            return self._error_result(
                query, SpawnError(process_result.error or "Failed to spawn find"), started
            )

        warnings: List[str] = []
        paths = [p for p in process_result.stdout.split("\0") if p]

        if not process_result.success:
            # find exits 1 after e.g. permission errors but still prints what it found
            if not paths:
                return self._error_result(
                    query,
                    BackendError(
                        f"find failed (exit code {process_result.exit_code})",
                        process_result.stderr.strip() or None,
                        exit_code=process_result.exit_code,
                    ),
                    started,
                    stderr=process_result.stderr,
                )
            first_error = process_result.stderr.strip().splitlines()[:1]
            warnings.append(
                "find reported errors for some paths; results may be incomplete"
                + (f": {first_error[0]}" if first_error else "")
            )

        return await self._results(query, paths, warnings, started)

    async def _stopped_early_result(
        self, query: FindFilesQuery, process_result: ProcessResult, started: float
    ) -> FindFilesResult:
        """Keep the NUL-terminated paths printed before a timeout or the output ceiling."""
        if process_result.timed_out:
            error = SearchTimeoutError(process_result.error or "find timed out")
            hints = timeout_hints(self.limits.timeout_seconds)
        else:
            error = OutputLimitExceededError(process_result.error or "Output size limit exceeded")
            hints = output_limit_hints(self.limits.max_output_bytes)

        # Anything after the last NUL is a path cut off mid-write
        paths = [p for p in process_result.stdout.split("\0")[:-1] if p]
        if not paths:
            return self._error_result(
                query, error, started, hints=hints, stderr=process_result.stderr
            )

        logger.warning(f"find stopped early, returning partial results: {error}")
        elapsed = round((time.monotonic() - started) * 1000)
        warnings = [f"find stopped early after {elapsed} ms ({error.message}); results are partial"]
        result = await self._results(query, paths, warnings, started)
        result.partial = True
        result.hints.extend(hints)
        result.error_code = error.error_code
        result.error = str(error)
        result.stderr = process_result.stderr or None
        return result

    async def _results(
        self, query: FindFilesQuery, paths: List[str], warnings: List[str], started: float
    ) -> FindFilesResult:
        if len(paths) > query.limit:
            warnings.append(f"Results limited to {query.limit} of {len(paths)} paths")
            paths = paths[: query.limit]

        with_modified = query.show_file_last_modified or query.sort_by == "modified"
        files = await asyncio.to_thread(_describe_paths, paths, query.details, with_modified)
        files = sort_found_files(files, query.sort_by)

        page, info = paginate_files(files, query.files_per_page, query.file_page_number)
        if not query.show_file_last_modified:
            for found in page:
                found.modified = None

        return FindFilesResult(
            status="hasResults" if files else "empty",
            path=query.path,
            files=page,
            total_files=len(files),
            pagination=info,
            warnings=warnings,
            hints=file_page_hints(info, len(page)) if files else [],
            elapsed_ms=round((time.monotonic() - started) * 1000, 2),
        )

    @staticmethod
    def _error_result(
        query: FindFilesQuery,
        error: CodeSearchError,
        started: float,
        hints: Optional[List[str]] = None,
        stderr: Optional[str] = None,
    ) -> FindFilesResult:
        return FindFilesResult(
            status="error",
            path=query.path,
            hints=hints or [],
            error_code=error.error_code,
            error=str(error),
            stderr=stderr or None,
            elapsed_ms=round((time.monotonic() - started) * 1000, 2),
        )
