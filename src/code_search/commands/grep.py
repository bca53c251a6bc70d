"""
Command builder for grep (fallback when ripgrep is not available).

Maps SearchQuery options to grep equivalents where possible and reports the
ones grep cannot honour so the caller can surface them as warnings.
"""

from typing import Dict, List

from ..models import SearchQuery
from .base import BaseCommandBuilder

GREP_FALLBACK_WARNING = (
    "Using grep fallback (ripgrep not available). Some features are limited: "
    "no byte offsets, no multiline patterns, no backend statistics."
)

# Maps ripgrep file types to extensions for grep --include
TYPE_TO_EXTENSIONS: Dict[str, List[str]] = {
    "ts": ["ts", "tsx"],
    "js": ["js", "jsx", "mjs", "cjs"],
    "py": ["py", "pyi"],
    "rust": ["rs"],
    "go": ["go"],
    "java": ["java"],
    "cpp": ["cpp", "cc", "cxx", "hpp", "h"],
    "c": ["c", "h"],
    "css": ["css", "scss", "sass", "less"],
    "html": ["html", "htm"],
    "json": ["json"],
    "yaml": ["yaml", "yml"],
    "md": ["md", "markdown"],
    "xml": ["xml"],
    "sh": ["sh", "bash", "zsh"],
    "rb": ["rb"],
    "php": ["php"],
    "swift": ["swift"],
    "kt": ["kt", "kts"],
    "scala": ["scala"],
    "sql": ["sql"],
    "lua": ["lua"],
}


def grep_feature_warnings(query: SearchQuery) -> List[str]:
    """List query options that the grep fallback cannot honour."""
    warnings: List[str] = []

    if query.smart_case and not (query.case_sensitive or query.case_insensitive):
        warnings.append(
            "smart_case not supported by grep - using case-insensitive search (-i)"
        )
    if query.multiline:
        warnings.append("multiline patterns not supported by grep - feature disabled")
    if query.perl_regex:
        warnings.append("perl_regex not portable to grep - using extended regex (-E)")
    if query.sort != "path" or query.sort_reverse:
        warnings.append(
            f'sort="{query.sort}" not supported by grep - results will be in path order'
        )
    if not query.no_ignore:
        warnings.append("grep does not respect .gitignore - all files will be searched")
    if query.include_stats:
        warnings.append("include_stats not supported by grep - stats will not be available")
    if query.before_radius or query.after_radius:
        warnings.append("context lines not supported by grep fallback - showing matching lines only")
    if query.threads or query.encoding:
        warnings.append("threads/encoding options are ignored by grep")

    return warnings


class GrepCommandBuilder(BaseCommandBuilder):
    """Translates a SearchQuery into a ``grep`` argument vector."""

    def __init__(self):
        super().__init__("grep")

    def from_query(self, query: SearchQuery) -> "GrepCommandBuilder":
        self.reset()
        self.add_flag("-r")

        if query.fixed_string:
            self.add_flag("-F")
        else:
            # ERE is the closest portable dialect to ripgrep's syntax
            self.add_flag("-E")

        # grep has no smart case, so smart case falls back to insensitive
        if not query.case_sensitive and (query.case_insensitive or query.smart_case):
            self.add_flag("-i")

        if query.line_regexp:
            self.add_flag("-x")
        elif query.whole_word:
            self.add_flag("-w")

        if query.invert_match:
            self.add_flag("-v")

        self.add_flag("-n")
        self.add_flag("-H")

        if query.files_only:
            self.add_flag("-l")
        elif query.max_matches_per_file:
            self.add_option("-m", query.max_matches_per_file)

        if query.type:
            extensions = TYPE_TO_EXTENSIONS.get(query.type, [query.type])
            for ext in extensions:
                self.add_option("--include", f"*.{ext}")
        for glob in query.include:
            self.add_option("--include", glob)
        for glob in query.exclude:
            self.add_option("--exclude", glob)
        for directory in query.exclude_dir:
            self.add_option("--exclude-dir", directory.rstrip("/"))

        if query.binary_files == "text":
            self.add_flag("-a")
        else:
            self.add_flag("-I")

        if query.follow_symlinks:
            self.add_flag("-R")

        self.add_flag("--color=never")
        self.add_option("-e", query.pattern)
        self.add_arg(query.path)
        return self
