"""
Tests for position-aware command validation.

Pattern and glob positions may carry regex and glob metacharacters; every
other position must be free of shell metacharacters.
"""

import pytest

from code_search.exceptions import CommandValidationError
from code_search.security import ALLOWED_COMMANDS, escape_shell_arg, validate_command
from code_search.security.command_validator import ValidationResult

SHELL_METACHARACTERS = [";", "|", "&", "`", "$(id)", "${HOME}", "(", "{", "<", ">"]


class TestCommandAllowlist:
    """Only the three search backends may run."""

    def test_allowlist_contents(self):
        assert ALLOWED_COMMANDS == frozenset({"rg", "grep", "find"})

    @pytest.mark.parametrize("command", ["bash", "sh", "python", "RG", "rm"])
    def test_rejects_commands_outside_allowlist(self, command):
        result = validate_command(command, ["foo"])

        assert not result.valid
        assert f"Command '{command}' is not allowed" in result.error
        assert "Allowed commands: find, grep, rg" in result.error

    def test_accepts_plain_ripgrep_invocation(self):
        result = validate_command("rg", ["--json", "-n", "needle", "src"])

        assert result.valid
        assert result.error is None


class TestPatternPositions:
    """Metacharacters are accepted in pattern positions and rejected elsewhere."""

    @pytest.mark.parametrize("fragment", SHELL_METACHARACTERS)
    def test_metacharacters_allowed_in_search_pattern(self, fragment):
        result = validate_command("rg", ["--json", f"foo{fragment}bar", "src"])
        assert result.valid, result.error

    @pytest.mark.parametrize("fragment", SHELL_METACHARACTERS)
    def test_metacharacters_rejected_in_path(self, fragment):
        result = validate_command("rg", ["--json", "foo", f"src{fragment}x"])

        assert not result.valid
        assert "Dangerous pattern detected in argument" in result.error

    @pytest.mark.parametrize("fragment", SHELL_METACHARACTERS)
    def test_metacharacters_allowed_in_glob_value(self, fragment):
        result = validate_command("rg", ["-g", f"*{fragment}.ts", "foo", "src"])
        assert result.valid, result.error

    def test_brace_glob_allowed_after_glob_flag_but_not_as_path(self):
        assert validate_command("rg", ["-g", "*.{ts,tsx}", "foo", "src"]).valid
        assert not validate_command("rg", ["foo", "*.{ts,tsx}"]).valid

    def test_inline_glob_value_is_exempt(self):
        assert validate_command("rg", ["--glob=*.{ts,tsx}", "foo", "src"]).valid

    def test_auxiliary_flag_value_is_not_exempt(self):
        result = validate_command("rg", ["-C", "$(id)", "foo", "src"])

        assert not result.valid
        assert "argument" in result.error

    def test_auxiliary_flag_value_is_not_taken_as_pattern(self):
        # "3" belongs to -C, so the pattern is the next bare token
        assert validate_command("rg", ["-C", "3", "foo|bar", "src"]).valid

    def test_pattern_after_double_dash_is_exempt(self):
        assert validate_command("rg", ["-n", "--", "-foo|bar", "src"]).valid

    def test_path_after_double_dash_is_still_checked(self):
        assert not validate_command("rg", ["-n", "--", "-foo", "src;ls"]).valid

    def test_null_byte_rejected_even_in_pattern(self):
        result = validate_command("rg", ["foo\x00bar", "src"])

        assert not result.valid
        assert "search pattern" in result.error

    def test_newline_rejected_in_path(self):
        assert not validate_command("rg", ["foo", "src\nrm"]).valid

    @pytest.mark.parametrize("path", ["../etc", "src/../..", "..", "a\\..\\b"])
    def test_traversal_rejected(self, path):
        assert not validate_command("rg", ["foo", path]).valid

    def test_double_dots_inside_names_are_fine(self):
        assert validate_command("rg", ["foo", "src/v1..v2/file"]).valid

    def test_regexp_flag_value_is_exempt_for_grep(self):
        args = ["-r", "-E", "-e", "a|b(c)", "--include", "*.{c,h}", "--color=never", "src"]
        assert validate_command("grep", args).valid


class TestDisallowedFlags:
    """Flags outside the backend tables are rejected."""

    @pytest.mark.parametrize("args", [["--pre", "cat", "foo", "."], ["--pre=cat", "foo", "."]])
    def test_preprocessor_flag_rejected(self, args):
        result = validate_command("rg", args)

        assert not result.valid
        assert "rg option" in result.error
        assert "is not allowed" in result.error

    def test_unknown_long_flag_rejected(self):
        result = validate_command("rg", ["--unknown-flag", "foo", "."])

        assert not result.valid
        assert "'--unknown-flag'" in result.error

    def test_short_flag_bundle_allowed(self):
        assert validate_command("rg", ["-in", "foo", "."]).valid

    @pytest.mark.parametrize("operator", ["-exec", "-execdir", "-delete", "-ok", "-fprint"])
    def test_find_action_operators_rejected(self, operator):
        result = validate_command("find", ["src", "-name", "*.py", operator, "x"])

        assert not result.valid
        assert f"find operator '{operator}' is not allowed." == result.error

    def test_find_prune_expression_accepted(self):
        args = [
            "-O3", "src",
            "(", "-path", "*/node_modules", "-o", "-path", "*/node_modules/*", ")",
            "-prune", "-o",
            "(", "-name", "*.py", "-o", "-name", "*.{ts,js}", ")",
            "-size", "+10k", "-mtime", "-7", "-print0",
        ]
        assert validate_command("find", args).valid

    def test_find_auxiliary_value_checked(self):
        assert not validate_command("find", ["src", "-maxdepth", "$(id)"]).valid


class TestHelpers:
    """escape_shell_arg and ValidationResult helpers."""

    def test_escape_wraps_in_single_quotes(self):
        assert escape_shell_arg("hello world") == "'hello world'"

    def test_escape_doubles_embedded_quotes(self):
        assert escape_shell_arg("it's") == "'it''s'"

    def test_raise_if_invalid(self):
        with pytest.raises(CommandValidationError) as exc_info:
            ValidationResult(valid=False, error="nope").raise_if_invalid()

        assert exc_info.value.error_code == "COMMAND_VALIDATION_FAILED"
        assert str(exc_info.value) == "nope"

    def test_raise_if_invalid_noop_when_valid(self):
        ValidationResult(valid=True).raise_if_invalid()
