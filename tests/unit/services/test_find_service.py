"""Tests for FindFilesService with a fake runner and real files on disk."""

import os
import shutil
import sys

import pytest

from code_search.find_service import FindFilesService, describe_path, sort_found_files
from code_search.models import FindFilesQuery, FoundFile
from code_search.process import ProcessResult


@pytest.fixture
def tree(tmp_path):
    """Three files with distinct sizes and modification times."""
    files = {
        "small.py": (b"x", 1_600_000_000),
        "big.txt": (b"x" * 500, 1_650_000_000),
        "mid.md": (b"x" * 50, 1_700_000_000),
    }
    for name, (content, mtime) in files.items():
        path = tmp_path / name
        path.write_bytes(content)
        os.utime(path, (mtime, mtime))
    return tmp_path


def nul_output(*paths):
    return "".join(f"{p}\0" for p in paths)


def make_service(make_runner, result):
    runner = make_runner(result)
    return FindFilesService(runner=runner, platform="linux"), runner


class TestFindFilesService:
    """Enumeration, sorting, limits and error mapping."""

    @pytest.mark.asyncio
    async def test_sorted_by_modified_by_default(self, tree, make_runner):
        output = nul_output(tree / "small.py", tree / "big.txt", tree / "mid.md")
        service, runner = make_service(
            make_runner, ProcessResult(stdout=output, exit_code=0, success=True)
        )

        result = await service.find(FindFilesQuery(path=str(tree)))

        assert result.status == "hasResults"
        assert [os.path.basename(f.path) for f in result.files] == ["mid.md", "big.txt", "small.py"]
        assert result.files[0].size == 50
        assert result.files[0].type == "file"
        assert result.files[0].modified.startswith("2023-")
        assert runner.calls[0]["command"] == "find"
        assert runner.calls[0]["args"][-1] == "-print0"

    @pytest.mark.asyncio
    async def test_sort_by_size_without_modified(self, tree, make_runner):
        output = nul_output(tree / "small.py", tree / "big.txt", tree / "mid.md")
        service, _ = make_service(
            make_runner, ProcessResult(stdout=output, exit_code=0, success=True)
        )

        result = await service.find(
            FindFilesQuery(path=str(tree), sort_by="size", show_file_last_modified=False)
        )

        assert [f.size for f in result.files] == [500, 50, 1]
        assert all(f.modified is None for f in result.files)

    @pytest.mark.asyncio
    async def test_limit_and_pagination(self, tree, make_runner):
        output = nul_output(*(tree / name for name in ("small.py", "big.txt", "mid.md")))
        service, _ = make_service(
            make_runner, ProcessResult(stdout=output, exit_code=0, success=True)
        )

        result = await service.find(
            FindFilesQuery(path=str(tree), limit=2, sort_by="path", files_per_page=1)
        )

        assert result.total_files == 2
        assert len(result.files) == 1
        assert result.pagination.total_pages == 2
        assert result.pagination.has_more
        assert any("limited to 2 of 3" in w for w in result.warnings)
        assert "Next: file_page_number=2" in result.hints

    @pytest.mark.asyncio
    async def test_no_output_is_empty(self, tree, make_runner):
        service, _ = make_service(make_runner, ProcessResult(exit_code=0, success=True))

        result = await service.find(FindFilesQuery(path=str(tree)))

        assert result.status == "empty"
        assert result.files == []

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_paths(self, tree, make_runner):
        service, _ = make_service(
            make_runner,
            ProcessResult(
                stdout=nul_output(tree / "mid.md"),
                stderr="find: './secret': Permission denied\n",
                exit_code=1,
            ),
        )

        result = await service.find(FindFilesQuery(path=str(tree)))

        assert result.status == "hasResults"
        assert "Permission denied" in result.warnings[0]

    @pytest.mark.asyncio
    async def test_failure_without_paths_is_error(self, tree, make_runner):
        service, _ = make_service(
            make_runner,
            ProcessResult(stderr="find: 'nope': No such file or directory\n", exit_code=1),
        )

        result = await service.find(FindFilesQuery(path="nope"))

        assert result.status == "error"
        assert result.error_code == "BACKEND_ERROR"
        assert "No such file" in result.stderr

    @pytest.mark.asyncio
    async def test_timeout_mapping(self, tree, make_runner):
        service, _ = make_service(
            make_runner, ProcessResult(timed_out=True, error="Command timeout after 30.0s")
        )

        result = await service.find(FindFilesQuery(path=str(tree)))

        assert result.error_code == "COMMAND_TIMEOUT"

    @pytest.mark.asyncio
    async def test_timeout_keeps_printed_paths(self, tree, make_runner):
        # The third path was cut off before its NUL terminator
        output = nul_output(tree / "small.py", tree / "big.txt") + str(tree / "mi")
        service, _ = make_service(
            make_runner,
            ProcessResult(stdout=output, timed_out=True, error="Command timeout after 30.0s"),
        )

        result = await service.find(FindFilesQuery(path=str(tree), sort_by="path"))

        assert result.status == "hasResults"
        assert result.partial
        assert [os.path.basename(f.path) for f in result.files] == ["big.txt", "small.py"]
        assert result.total_files == 2
        assert result.error_code == "COMMAND_TIMEOUT"
        assert any("results are partial" in w for w in result.warnings)
        assert any("timed out" in hint for hint in result.hints)

    @pytest.mark.asyncio
    async def test_output_limit_keeps_printed_paths(self, tree, make_runner):
        service, _ = make_service(
            make_runner,
            ProcessResult(
                stdout=nul_output(tree / "mid.md"),
                output_limit_exceeded=True,
                error="Output size limit exceeded",
            ),
        )

        result = await service.find(FindFilesQuery(path=str(tree)))

        assert result.partial
        assert result.total_files == 1
        assert result.error_code == "OUTPUT_TOO_LARGE"

    @pytest.mark.asyncio
    async def test_output_limit_without_complete_path_is_error(self, tree, make_runner):
        service, _ = make_service(
            make_runner,
            ProcessResult(
                stdout=str(tree / "sm"),
                output_limit_exceeded=True,
                error="Output size limit exceeded",
            ),
        )

        result = await service.find(FindFilesQuery(path=str(tree)))

        assert result.status == "error"
        assert not result.partial
        assert result.files == []
        assert result.error_code == "OUTPUT_TOO_LARGE"

    @pytest.mark.asyncio
    async def test_windows_unsupported(self, make_runner):
        runner = make_runner()
        service = FindFilesService(runner=runner, platform="win32")

        result = await service.find(FindFilesQuery(path="."))

        assert result.status == "error"
        assert result.error_code == "COMMAND_NOT_AVAILABLE"
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_default_excludes_pruned(self, make_runner):
        service, runner = make_service(make_runner, ProcessResult(exit_code=0, success=True))

        await service.find(FindFilesQuery(path="."))

        args = runner.calls[0]["args"]
        assert "-prune" in args
        assert "*/node_modules" in args


class TestHelpers:
    """describe_path and sort_found_files."""

    def test_describe_directory(self, tmp_path):
        found = describe_path(str(tmp_path), details=True, with_modified=False)

        assert found.type == "directory"
        assert found.modified is None
        assert found.permissions

    def test_describe_missing_path(self, tmp_path):
        found = describe_path(str(tmp_path / "gone"), details=True, with_modified=True)

        assert found == FoundFile(path=str(tmp_path / "gone"))

    def test_sort_by_name(self):
        files = [FoundFile(path="b/zeta.py"), FoundFile(path="a/alpha.py"), FoundFile(path="c/beta.py")]

        assert [f.path for f in sort_found_files(files, "name")] == [
            "a/alpha.py",
            "c/beta.py",
            "b/zeta.py",
        ]


@pytest.mark.skipif(
    sys.platform == "win32" or shutil.which("find") is None, reason="POSIX find required"
)
class TestRealFind:
    """End-to-end against the installed find."""

    @pytest.mark.asyncio
    async def test_find_by_name(self, sample_repo):
        result = await FindFilesService().find(
            FindFilesQuery(path=str(sample_repo), names=["*.py", "*.ts"], type="f", sort_by="path")
        )

        assert result.status == "hasResults"
        assert [os.path.basename(f.path) for f in result.files] == ["app.ts", "util.py"]

    @pytest.mark.asyncio
    async def test_default_excludes_skip_node_modules(self, sample_repo):
        result = await FindFilesService().find(
            FindFilesQuery(path=str(sample_repo), name="*.js", type="f")
        )

        assert result.status == "empty"
