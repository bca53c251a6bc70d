"""
Position-aware classification of backend command arguments.

Each backend describes its flags in a small table mapping flag name to a
FlagSpec. A single left-to-right scan over the argument vector then decides
which positions hold search patterns or globs (exempt from the
dangerous-character check) and which flags are not allowed at all.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Set, Tuple

_FLAG_BUNDLE_RE = re.compile(r"^-[a-zA-Z]{2,}$")


@dataclass(frozen=True)
class FlagSpec:
    """How a single flag treats the token that follows it.

    Attributes:
        consumes_value: The next token (or the ``=value`` suffix) belongs to this flag
        value_is_exempt: The value is a pattern or glob and may contain metacharacters
        supplies_pattern: The value is the search pattern itself (e.g. ``-e``)
    """

    consumes_value: bool = False
    value_is_exempt: bool = False
    supplies_pattern: bool = False


BOOLEAN = FlagSpec()
VALUE = FlagSpec(consumes_value=True)
PATTERN_VALUE = FlagSpec(consumes_value=True, value_is_exempt=True)
SEARCH_PATTERN = FlagSpec(consumes_value=True, value_is_exempt=True, supplies_pattern=True)


@dataclass(frozen=True)
class BackendArgTable:
    """Flag grammar for one backend."""

    command: str
    flags: Dict[str, FlagSpec]
    # find grammar: leading operands are paths, the expression follows
    paths_first: bool = False
    structural_tokens: FrozenSet[str] = frozenset()
    denied_flags: FrozenSet[str] = frozenset()
    denied_prefixes: Tuple[str, ...] = ()
    allow_flag_bundles: bool = False


@dataclass
class ArgumentClassification:
    """Outcome of scanning one argument vector."""

    exempt_positions: Set[int] = field(default_factory=set)
    pattern_position: Optional[int] = None
    disallowed_flag: Optional[str] = None

    def is_exempt(self, index: int) -> bool:
        return index in self.exempt_positions


RG_TABLE = BackendArgTable(
    command="rg",
    flags={
        # Pattern-bearing values
        "-g": PATTERN_VALUE,
        "--glob": PATTERN_VALUE,
        "--iglob": PATTERN_VALUE,
        "--include": PATTERN_VALUE,
        "--exclude": PATTERN_VALUE,
        "--exclude-dir": PATTERN_VALUE,
        "-e": SEARCH_PATTERN,
        "--regexp": SEARCH_PATTERN,
        # Auxiliary values
        "-A": VALUE,
        "-B": VALUE,
        "-C": VALUE,
        "-m": VALUE,
        "--max-count": VALUE,
        "-t": VALUE,
        "--type": VALUE,
        "-T": VALUE,
        "--type-not": VALUE,
        "-j": VALUE,
        "--threads": VALUE,
        "--sort": VALUE,
        "--sortr": VALUE,
        "--max-filesize": VALUE,
        "-E": VALUE,
        "--encoding": VALUE,
        "--color": VALUE,
        # Plain switches
        "-F": BOOLEAN,
        "-P": BOOLEAN,
        "-s": BOOLEAN,
        "-i": BOOLEAN,
        "-S": BOOLEAN,
        "-w": BOOLEAN,
        "-x": BOOLEAN,
        "-v": BOOLEAN,
        "-a": BOOLEAN,
        "--binary": BOOLEAN,
        "-L": BOOLEAN,
        "-n": BOOLEAN,
        "--column": BOOLEAN,
        "-l": BOOLEAN,
        "--files-without-match": BOOLEAN,
        "--count-matches": BOOLEAN,
        "-c": BOOLEAN,
        "--no-ignore": BOOLEAN,
        "--hidden": BOOLEAN,
        "-U": BOOLEAN,
        "--multiline-dotall": BOOLEAN,
        "--json": BOOLEAN,
        "--stats": BOOLEAN,
        "--no-mmap": BOOLEAN,
        "--mmap": BOOLEAN,
        "--no-messages": BOOLEAN,
        "--no-unicode": BOOLEAN,
        "--passthru": BOOLEAN,
        "--version": BOOLEAN,
    },
    denied_prefixes=("--pre",),
    allow_flag_bundles=True,
)

GREP_TABLE = BackendArgTable(
    command="grep",
    flags={
        "--include": PATTERN_VALUE,
        "--exclude": PATTERN_VALUE,
        "--exclude-dir": PATTERN_VALUE,
        "-e": SEARCH_PATTERN,
        "--regexp": SEARCH_PATTERN,
        "-A": VALUE,
        "-B": VALUE,
        "-C": VALUE,
        "-m": VALUE,
        "--max-count": VALUE,
        # --color only takes an inline value for grep
        "--color": BOOLEAN,
        "-r": BOOLEAN,
        "-R": BOOLEAN,
        "-n": BOOLEAN,
        "-H": BOOLEAN,
        "-h": BOOLEAN,
        "-I": BOOLEAN,
        "-a": BOOLEAN,
        "-i": BOOLEAN,
        "-w": BOOLEAN,
        "-v": BOOLEAN,
        "-x": BOOLEAN,
        "-l": BOOLEAN,
        "-L": BOOLEAN,
        "-c": BOOLEAN,
        "-F": BOOLEAN,
        "-E": BOOLEAN,
        "-P": BOOLEAN,
        "-s": BOOLEAN,
        "-o": BOOLEAN,
        "--version": BOOLEAN,
    },
    allow_flag_bundles=True,
)

FIND_TABLE = BackendArgTable(
    command="find",
    flags={
        "-name": PATTERN_VALUE,
        "-iname": PATTERN_VALUE,
        "-path": PATTERN_VALUE,
        "-regex": PATTERN_VALUE,
        "-size": PATTERN_VALUE,
        "-perm": PATTERN_VALUE,
        "-maxdepth": VALUE,
        "-mindepth": VALUE,
        "-type": VALUE,
        "-regextype": VALUE,
        "-mtime": VALUE,
        "-mmin": VALUE,
        "-atime": VALUE,
        "-amin": VALUE,
        "-O3": BOOLEAN,
        "-E": BOOLEAN,
        "-empty": BOOLEAN,
        "-executable": BOOLEAN,
        "-readable": BOOLEAN,
        "-writable": BOOLEAN,
        "-prune": BOOLEAN,
        "-print": BOOLEAN,
        "-print0": BOOLEAN,
        "--version": BOOLEAN,
    },
    paths_first=True,
    structural_tokens=frozenset({"(", ")", "-o", "-or"}),
    denied_flags=frozenset(
        {
            "-delete",
            "-exec",
            "-execdir",
            "-ok",
            "-okdir",
            "-printf",
            "-fprintf",
            "-fprint",
            "-fprint0",
            "-fls",
            "-ls",
        }
    ),
)

BACKEND_TABLES: Dict[str, BackendArgTable] = {
    table.command: table for table in (RG_TABLE, GREP_TABLE, FIND_TABLE)
}


def _split_inline_value(arg: str) -> Tuple[str, bool]:
    """Split ``--flag=value`` into (``--flag``, True)."""
    if arg.startswith("--") and "=" in arg:
        return arg.split("=", 1)[0], True
    return arg, False


def _is_flag(arg: str) -> bool:
    return arg.startswith("-") and arg != "-"


def _is_boolean_bundle(table: BackendArgTable, arg: str) -> bool:
    """True for bundles like ``-in`` whose every letter is a known boolean flag."""
    if not table.allow_flag_bundles or not _FLAG_BUNDLE_RE.match(arg):
        return False
    return all(table.flags.get(f"-{letter}") == BOOLEAN for letter in arg[1:])


def _scan_searcher(table: BackendArgTable, args: list) -> ArgumentClassification:
    """Scan rg/grep style arguments: flags, then pattern, then paths."""
    result = ArgumentClassification()
    pattern_found = False
    i = 0

    while i < len(args):
        arg = args[i]

        if arg == "--":
            # Everything after the separator is an operand; only the first is the pattern
            if not pattern_found and i + 1 < len(args):
                result.exempt_positions.add(i + 1)
                result.pattern_position = i + 1
            break

        if _is_flag(arg):
            name, has_inline_value = _split_inline_value(arg)
            spec = table.flags.get(name)

            if any(name.startswith(prefix) for prefix in table.denied_prefixes):
                spec = None
            elif spec is None and _is_boolean_bundle(table, arg):
                i += 1
                continue

            if spec is None:
                if result.disallowed_flag is None:
                    result.disallowed_flag = arg
                i += 1
                continue

            if has_inline_value:
                if spec.value_is_exempt:
                    result.exempt_positions.add(i)
                if spec.supplies_pattern:
                    pattern_found = True
                    result.pattern_position = i
                i += 1
                continue

            if spec.consumes_value:
                value_index = i + 1
                if value_index < len(args):
                    if spec.value_is_exempt:
                        result.exempt_positions.add(value_index)
                    if spec.supplies_pattern:
                        pattern_found = True
                        result.pattern_position = value_index
                # Skip the value; it is never re-read as a flag
                i += 2
                continue

            i += 1
            continue

        if not pattern_found:
            result.exempt_positions.add(i)
            result.pattern_position = i
            pattern_found = True
        i += 1

    return result


def _scan_find(table: BackendArgTable, args: list) -> ArgumentClassification:
    """Scan find arguments: global options and paths, then a predicate expression."""
    result = ArgumentClassification()
    in_expression = False
    i = 0

    while i < len(args):
        arg = args[i]

        if not in_expression and not _is_flag(arg) and arg not in table.structural_tokens:
            i += 1
            continue
        in_expression = True

        if arg in table.structural_tokens:
            result.exempt_positions.add(i)
            i += 1
            continue

        if arg in table.denied_flags:
            if result.disallowed_flag is None:
                result.disallowed_flag = arg
            i += 1
            continue

        spec = table.flags.get(arg)
        if spec is not None:
            if spec.consumes_value:
                if spec.value_is_exempt and i + 1 < len(args):
                    result.exempt_positions.add(i + 1)
                i += 2
                continue
            i += 1
            continue

        if _is_flag(arg) and result.disallowed_flag is None:
            result.disallowed_flag = arg
        i += 1

    return result


def classify_arguments(command: str, args: list) -> ArgumentClassification:
    """Classify argument positions for a backend command.

    Args:
        command: Backend name (must have a table in BACKEND_TABLES)
        args: Argument vector, excluding the command itself

    Returns:
        ArgumentClassification with exempt positions and any disallowed flag

    Raises:
        KeyError: If the command has no argument table
    """
    table = BACKEND_TABLES[command]
    if table.paths_first:
        return _scan_find(table, args)
    return _scan_searcher(table, args)
