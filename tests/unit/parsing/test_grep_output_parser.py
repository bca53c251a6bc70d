"""Tests for the grep fallback output parser."""

from code_search.parsing import parse_grep_line, parse_grep_output


class TestParseGrepLine:
    """path:line:content splitting."""

    def test_standard_record(self):
        assert parse_grep_line("src/a.ts:12:const x = 1;") == ("src/a.ts", 12, "const x = 1;")

    def test_content_with_colons(self):
        assert parse_grep_line("a.py:3:url = 'http://x:80'") == ("a.py", 3, "url = 'http://x:80'")

    def test_path_with_colon(self):
        assert parse_grep_line("C:/code/a.py:7:hit") == ("C:/code/a.py", 7, "hit")

    def test_fallback_without_line_number(self):
        assert parse_grep_line("notes.txt:some text") == ("notes.txt", 0, "some text")

    def test_unusable_lines(self):
        assert parse_grep_line("no separator at all") is None
        assert parse_grep_line(":12:missing path") is None


class TestParseGrepOutput:
    """Grouping and location defaults."""

    def test_grouping_and_locations(self, make_query):
        output = "a.ts:1:foo\na.ts:5:foo bar\nb.ts:2:foo\n"

        result = parse_grep_output(output, make_query())

        assert [(f.path, f.match_count) for f in result.files] == [("a.ts", 2), ("b.ts", 1)]
        location = result.files[0].matches[1].location
        assert location.line == 5
        assert location.byte_offset == 0
        assert location.byte_length == 0
        assert location.column == 0
        assert location.char_length == len("foo bar")
        assert result.stats is None

    def test_scenario_skips_lines_without_colon(self, make_query):
        output = "a.txt:3:hello\nbroken line\n"

        result = parse_grep_output(output, make_query())

        assert len(result.files) == 1
        assert result.files[0].matches[0].location.line == 3
        assert result.files[0].matches[0].value == "hello"

    def test_group_separators_skipped(self, make_query):
        output = "a.txt:1:x\n--\na.txt:9:y\n"

        result = parse_grep_output(output, make_query())

        assert result.files[0].match_count == 2

    def test_values_truncated(self, make_query):
        result = parse_grep_output("a.txt:1:" + "x" * 50, make_query(match_content_length=20))

        value = result.files[0].matches[0].value
        assert value == "x" * 17 + "..."
        assert result.files[0].matches[0].location.char_length == 20

    def test_files_only(self, make_query):
        result = parse_grep_output("a.ts\nb.ts\na.ts\n\n", make_query(files_only=True))

        assert [f.path for f in result.files] == ["a.ts", "b.ts"]
        assert all(f.match_count == 0 and f.matches == [] for f in result.files)

    def test_empty_output(self, make_query):
        assert parse_grep_output("", make_query()).files == []
