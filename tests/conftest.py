"""
Shared pytest fixtures for Code Search tests.

Provides query factories, a fake process runner for service tests and a
small on-disk sample repository.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from code_search.models import SearchQuery
from code_search.process import ProcessResult


class FakeRunner:
    """Stands in for run_process; records calls and returns a canned result."""

    def __init__(self, result: Optional[ProcessResult] = None):
        self.result = result or ProcessResult(stdout="", exit_code=1)
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, command, args, **kwargs) -> ProcessResult:
        self.calls.append({"command": command, "args": list(args), **kwargs})
        return self.result


class FakeProbe:
    """Availability probe reporting a fixed set of installed backends."""

    def __init__(self, available=("rg", "grep")):
        self.available = set(available)
        self.calls: List[str] = []
        self.options: List[Dict[str, Any]] = []

    async def __call__(self, command, args, **kwargs) -> bool:
        self.calls.append(command)
        self.options.append(kwargs)
        return command in self.available


@pytest.fixture
def make_query():
    """Factory for SearchQuery with a harmless default pattern and path."""

    def _make(**overrides) -> SearchQuery:
        values = {"pattern": "needle", "path": "src"}
        values.update(overrides)
        return SearchQuery(**values)

    return _make


@pytest.fixture
def make_runner():
    """Factory for FakeRunner returning the given ProcessResult."""
    return FakeRunner


@pytest.fixture
def make_probe():
    """Factory for FakeProbe reporting the given backends as installed."""
    return FakeProbe


@pytest.fixture
def sample_repo(tmp_path: Path) -> Path:
    """Small tree with ASCII and multi-byte content."""
    repo = tmp_path / "repo"
    (repo / "src").mkdir(parents=True)
    (repo / "node_modules" / "dep").mkdir(parents=True)

    (repo / "src" / "app.ts").write_text(
        "import x from 'y';\nconst needle = 1;\nexport default needle;\n",
        encoding="utf-8",
    )
    (repo / "src" / "util.py").write_text(
        "# héllo wörld\ndef needle():\n    return 'ñ'\n", encoding="utf-8"
    )
    (repo / "README.md").write_text("Nothing to see here\n", encoding="utf-8")
    (repo / "node_modules" / "dep" / "index.js").write_text(
        "module.exports = 'needle';\n", encoding="utf-8"
    )
    return repo
