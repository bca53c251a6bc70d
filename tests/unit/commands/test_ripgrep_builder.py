"""Tests for RipgrepCommandBuilder."""

from code_search.commands import RipgrepCommandBuilder, consolidate_globs
from code_search.security import validate_command


def build(query):
    return RipgrepCommandBuilder().from_query(query).build()


class TestRipgrepBuilder:
    """Query to argv translation for rg."""

    def test_default_query(self, make_query):
        command, args = build(make_query())

        assert command == "rg"
        assert args == [
            "--json", "-n", "-S", "--stats",
            "--sort", "path", "--color", "never",
            "needle", "src",
        ]

    def test_files_only_uses_plain_output(self, make_query):
        _, args = build(make_query(files_only=True, context_lines=3, max_matches_per_file=5))

        assert "-l" in args
        assert "--json" not in args
        # Context and per-file caps are meaningless without match bodies
        assert "-C" not in args
        assert "-m" not in args

    def test_case_priority(self, make_query):
        _, args = build(make_query(case_sensitive=True, case_insensitive=True))
        assert "-s" in args and "-i" not in args and "-S" not in args

        _, args = build(make_query(case_insensitive=True))
        assert "-i" in args and "-S" not in args

    def test_pattern_modes(self, make_query):
        _, args = build(make_query(fixed_string=True))
        assert "-F" in args

        _, args = build(make_query(perl_regex=True))
        assert "-P" in args

    def test_line_regexp_beats_whole_word(self, make_query):
        _, args = build(make_query(line_regexp=True, whole_word=True, invert_match=True))

        assert "-x" in args
        assert "-w" not in args
        assert "-v" in args

    def test_shared_context_radius(self, make_query):
        _, args = build(make_query(context_lines=2))

        assert args[args.index("-C") + 1] == "2"

    def test_explicit_before_after_override_radius(self, make_query):
        _, args = build(make_query(context_lines=2, before_context=1))

        assert "-C" not in args
        assert args[args.index("-B") + 1] == "1"
        assert args[args.index("-A") + 1] == "2"

    def test_max_matches_per_file_only_when_explicit(self, make_query):
        _, args = build(make_query(matches_per_page=5))
        assert "-m" not in args

        _, args = build(make_query(max_matches_per_file=7))
        assert args[args.index("-m") + 1] == "7"

    def test_filters(self, make_query):
        query = make_query(
            type="py",
            include=["*.ts", "*.tsx"],
            exclude=["*.min.js"],
            exclude_dir=["node_modules/", "dist"],
            no_ignore=True,
            hidden=True,
            follow_symlinks=True,
        )
        _, args = build(query)

        assert args[args.index("-t") + 1] == "py"
        globs = [args[i + 1] for i, a in enumerate(args) if a == "-g"]
        assert globs == ["*.{ts,tsx}", "!*.min.js", "!node_modules/", "!dist/"]
        assert {"--no-ignore", "--hidden", "-L"} <= set(args)

    def test_multiline_and_binary(self, make_query):
        _, args = build(make_query(multiline=True, multiline_dotall=True, binary_files="text"))
        assert {"-U", "--multiline-dotall", "-a"} <= set(args)

        _, args = build(make_query(binary_files="binary"))
        assert "--binary" in args

    def test_sort_reverse_and_advanced(self, make_query):
        query = make_query(
            sort="modified", sort_reverse=True, no_unicode=True, encoding="latin1", threads=4,
            include_stats=False,
        )
        _, args = build(query)

        assert args[args.index("--sortr") + 1] == "modified"
        assert "--no-unicode" in args
        assert args[args.index("-E") + 1] == "latin1"
        assert args[args.index("-j") + 1] == "4"
        assert "--stats" not in args

    def test_dash_pattern_gets_separator(self, make_query):
        _, args = build(make_query(pattern="-foo"))

        assert args[-3:] == ["--", "-foo", "src"]

    def test_plain_pattern_has_no_separator(self, make_query):
        _, args = build(make_query())
        assert "--" not in args

    def test_built_commands_pass_validation(self, make_query):
        query = make_query(
            pattern="(foo|bar){2}",
            include=["*.{ts,js}"],
            exclude_dir=["node_modules"],
            context_lines=2,
            max_matches_per_file=3,
        )
        command, args = build(query)

        assert validate_command(command, args).valid

    def test_builder_reusable(self, make_query):
        builder = RipgrepCommandBuilder()
        builder.from_query(make_query(pattern="first"))

        _, args = builder.from_query(make_query(pattern="second")).build()

        assert "first" not in args
        assert args[-2:] == ["second", "src"]


class TestConsolidateGlobs:
    """Simple extension globs merge into a brace glob."""

    def test_merges_simple_globs(self):
        assert consolidate_globs(["*.ts", "*.tsx", "*.js"]) == ["*.{ts,tsx,js}"]

    def test_single_glob_untouched(self):
        assert consolidate_globs(["*.ts"]) == ["*.ts"]

    def test_complex_globs_untouched(self):
        globs = ["src/**/*.ts", "*.js"]
        assert consolidate_globs(globs) == globs
