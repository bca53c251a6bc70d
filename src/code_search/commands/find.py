"""Command builder for find (path enumeration)."""

import re
import sys
from typing import List, Optional, Tuple

from ..exceptions import BackendUnavailableError
from ..models import FindFilesQuery
from .base import BaseCommandBuilder

_TIME_RE = re.compile(r"^(\d+)([hdwm])$")

# Days per unit for -mtime/-atime; hours go through -mmin/-amin instead
_DAYS_PER_UNIT = {"d": 1, "w": 7, "m": 30}


def parse_time_spec(value: str, access: bool = False) -> Tuple[str, int]:
    """Convert ``Nh``/``Nd``/``Nw``/``Nm`` into a find predicate and amount.

    Hours map to minutes (``-mmin``); days, weeks and months map to days
    (``-mtime``). With ``access`` the ``-amin``/``-atime`` predicates are used.

    Raises:
        ValueError: If the value is not a recognised time spec
    """
    match = _TIME_RE.match(value)
    if not match:
        raise ValueError(f"Invalid time specification: {value!r}")

    amount = int(match.group(1))
    unit = match.group(2)
    if unit == "h":
        return ("-amin" if access else "-mmin"), amount * 60
    return ("-atime" if access else "-mtime"), amount * _DAYS_PER_UNIT[unit]


class FindCommandBuilder(BaseCommandBuilder):
    """Translates a FindFilesQuery into a ``find`` argument vector.

    GNU find (Linux) and BSD find (macOS) differ in a few predicates; the
    platform is taken from ``sys.platform`` unless given explicitly.
    """

    def __init__(self, platform: Optional[str] = None):
        super().__init__("find")
        self.platform = platform or sys.platform

    @property
    def is_linux(self) -> bool:
        return self.platform.startswith("linux")

    @property
    def is_macos(self) -> bool:
        return self.platform == "darwin"

    def from_query(
        self, query: FindFilesQuery, default_exclude_dirs: Optional[List[str]] = None
    ) -> "FindCommandBuilder":
        if self.platform.startswith("win"):
            raise BackendUnavailableError(
                "find is not available on Windows",
                "use content search with files_only instead",
            )

        self.reset()

        # Global options must precede the starting path
        if self.is_linux:
            self.add_flag("-O3")
        elif self.is_macos and query.regex:
            self.add_flag("-E")

        self.add_arg(query.path)

        if query.max_depth is not None:
            self.add_option("-maxdepth", query.max_depth)
        if query.min_depth is not None:
            self.add_option("-mindepth", query.min_depth)

        exclude_dirs = (
            query.exclude_dir if query.exclude_dir is not None else default_exclude_dirs
        )
        if exclude_dirs:
            self._add_prune_block(exclude_dirs)
            self.add_arg("-o")

        self._add_filters(query)
        self.add_flag("-print0")
        return self

    def _add_prune_block(self, exclude_dirs: List[str]) -> None:
        """( -path */d -o -path */d/* ... ) -prune"""
        self.add_arg("(")
        for index, directory in enumerate(exclude_dirs):
            directory = directory.rstrip("/")
            if index > 0:
                self.add_arg("-o")
            self.add_option("-path", f"*/{directory}")
            self.add_arg("-o")
            self.add_option("-path", f"*/{directory}/*")
        self.add_arg(")")
        self.add_flag("-prune")

    def _add_filters(self, query: FindFilesQuery) -> None:
        if query.type:
            self.add_option("-type", query.type)

        if len(query.names) == 1:
            self.add_option("-name", query.names[0])
        elif query.names:
            self.add_arg("(")
            for index, name in enumerate(query.names):
                if index > 0:
                    self.add_arg("-o")
                self.add_option("-name", name)
            self.add_arg(")")
        elif query.name:
            self.add_option("-name", query.name)

        if query.iname:
            self.add_option("-iname", query.iname)
        if query.path_pattern:
            self.add_option("-path", query.path_pattern)

        if query.regex:
            if self.is_linux and query.regex_type:
                self.add_option("-regextype", query.regex_type)
            self.add_option("-regex", query.regex)

        if query.empty:
            self.add_flag("-empty")

        if query.size_greater:
            self.add_option("-size", f"+{query.size_greater}")
        if query.size_less:
            self.add_option("-size", f"-{query.size_less}")

        if query.modified_within:
            predicate, amount = parse_time_spec(query.modified_within)
            self.add_option(predicate, f"-{amount}")
        if query.modified_before:
            predicate, amount = parse_time_spec(query.modified_before)
            self.add_option(predicate, f"+{amount}")
        if query.accessed_within:
            predicate, amount = parse_time_spec(query.accessed_within, access=True)
            self.add_option(predicate, f"-{amount}")

        if query.permissions:
            self.add_option("-perm", query.permissions)

        # BSD find has no -executable/-readable/-writable
        for enabled, gnu_flag, mode in (
            (query.executable, "-executable", "+111"),
            (query.readable, "-readable", "+444"),
            (query.writable, "-writable", "+222"),
        ):
            if not enabled:
                continue
            if self.is_linux:
                self.add_flag(gnu_flag)
            else:
                self.add_option("-perm", mode)
