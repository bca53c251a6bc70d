"""Command builder for ripgrep, the preferred structured-output backend."""

import re
from typing import List

from ..models import SearchQuery
from .base import BaseCommandBuilder

_SIMPLE_GLOB_RE = re.compile(r"^\*\.([A-Za-z0-9]+)$")


def consolidate_globs(globs: List[str]) -> List[str]:
    """Merge simple extension globs into one brace glob.

    ``["*.ts", "*.tsx"]`` becomes ``["*.{ts,tsx}"]``; anything more complex
    is left untouched.
    """
    if len(globs) < 2:
        return list(globs)

    extensions = []
    for glob in globs:
        match = _SIMPLE_GLOB_RE.match(glob)
        if not match:
            return list(globs)
        extensions.append(match.group(1))

    return ["*.{" + ",".join(extensions) + "}"]


class RipgrepCommandBuilder(BaseCommandBuilder):
    """Translates a SearchQuery into an ``rg`` argument vector."""

    def __init__(self):
        super().__init__("rg")

    def from_query(self, query: SearchQuery) -> "RipgrepCommandBuilder":
        self.reset()

        # Output format: NDJSON for content, plain paths for files-only
        if query.files_only:
            self.add_flag("-l")
        else:
            self.add_flag("--json")
        self.add_flag("-n")

        # Case sensitivity priority: case_sensitive > case_insensitive > smart_case
        if query.case_sensitive:
            self.add_flag("-s")
        elif query.case_insensitive:
            self.add_flag("-i")
        elif query.smart_case:
            self.add_flag("-S")

        if query.fixed_string:
            self.add_flag("-F")
        elif query.perl_regex:
            self.add_flag("-P")

        if query.line_regexp:
            self.add_flag("-x")
        elif query.whole_word:
            self.add_flag("-w")

        if query.invert_match:
            self.add_flag("-v")

        if not query.files_only:
            self._add_context(query)
            if query.max_matches_per_file:
                self.add_option("-m", query.max_matches_per_file)

        if query.type:
            self.add_option("-t", query.type)
        for glob in consolidate_globs(query.include):
            self.add_option("-g", glob)
        for glob in query.exclude:
            self.add_option("-g", f"!{glob}")
        for directory in query.exclude_dir:
            self.add_option("-g", f"!{directory.rstrip('/')}/")

        if query.no_ignore:
            self.add_flag("--no-ignore")
        if query.hidden:
            self.add_flag("--hidden")
        if query.follow_symlinks:
            self.add_flag("-L")

        if query.multiline:
            self.add_flag("-U")
            if query.multiline_dotall:
                self.add_flag("--multiline-dotall")

        if query.binary_files == "text":
            self.add_flag("-a")
        elif query.binary_files == "binary":
            self.add_flag("--binary")

        if query.include_stats:
            self.add_flag("--stats")

        if query.sort_reverse:
            self.add_option("--sortr", query.sort)
        else:
            self.add_option("--sort", query.sort)

        if query.no_unicode:
            self.add_flag("--no-unicode")
        if query.encoding:
            self.add_option("-E", query.encoding)
        if query.threads:
            self.add_option("-j", query.threads)

        self.add_option("--color", "never")

        # A leading dash would otherwise be read as a flag
        if query.pattern.startswith("-"):
            self.add_arg("--")
        self.add_arg(query.pattern)
        self.add_arg(query.path)
        return self

    def _add_context(self, query: SearchQuery) -> None:
        before = query.before_radius
        after = query.after_radius
        if before and before == after:
            self.add_option("-C", before)
            return
        if before:
            self.add_option("-B", before)
        if after:
            self.add_option("-A", after)
