"""Tests for byte to code-point offset reconciliation."""

from code_search.models import FileMatches, Match, MatchLocation
from code_search.offsets import reconcile_offsets


def file_with_match(path, byte_offset, byte_length):
    location = MatchLocation(
        byte_offset=byte_offset,
        byte_length=byte_length,
        char_offset=byte_offset,
        char_length=byte_length,
        line=1,
        column=byte_offset,
    )
    return FileMatches(path=path, match_count=1, matches=[Match(value="v", location=location)])


class TestReconcileOffsets:
    """Char offsets count code points of the file's actual content."""

    def test_ascii_unchanged(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("hello needle", encoding="utf-8")

        [result] = reconcile_offsets([file_with_match(str(target), 6, 6)])

        assert result.matches[0].location.char_offset == 6
        assert result.matches[0].location.char_length == 6

    def test_multibyte_prefix(self, tmp_path):
        target = tmp_path / "u.txt"
        # "héllo " is 7 bytes but 6 code points; "wörld" is 6 bytes, 5 code points
        target.write_text("héllo wörld", encoding="utf-8")

        [result] = reconcile_offsets([file_with_match(str(target), 7, 6)])

        location = result.matches[0].location
        assert location.byte_offset == 7
        assert location.byte_length == 6
        assert location.char_offset == 6
        assert location.char_length == 5

    def test_emoji(self):
        raw = "🎉 x".encode("utf-8")

        [result] = reconcile_offsets(
            [file_with_match("mem.txt", 5, 1)], read_file=lambda path: raw
        )

        assert result.matches[0].location.char_offset == 2

    def test_unreadable_file_keeps_byte_values(self, tmp_path):
        original = file_with_match(str(tmp_path / "gone.txt"), 7, 6)

        [result] = reconcile_offsets([original])

        assert result.matches[0].location.char_offset == 7
        assert result.matches[0].location.char_length == 6

    def test_out_of_range_keeps_byte_values(self):
        [result] = reconcile_offsets(
            [file_with_match("short.txt", 50, 3)], read_file=lambda path: b"tiny"
        )

        assert result.matches[0].location.char_offset == 50

    def test_each_file_read_once_and_input_untouched(self):
        reads = []

        def reader(path):
            reads.append(path)
            return "ü needle needle".encode("utf-8")

        original = file_with_match("f.txt", 3, 6)
        original.matches.append(
            Match(value="w", location=MatchLocation(10, 6, 10, 6, 1, 10))
        )

        [result] = reconcile_offsets([original], read_file=reader)

        assert reads == ["f.txt"]
        assert [m.location.char_offset for m in result.matches] == [2, 9]
        assert original.matches[0].location.char_offset == 3
