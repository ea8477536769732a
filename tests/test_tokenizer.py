"""Tests for the command tokenizer and flag extraction."""

import pytest

from ascbot.command.tokenizer import check_range, extract_flags, split_overload, tokenize
from ascbot.datatypes.command_datatypes import FlagSpec, FlagType
from ascbot.errors import ValidationError

DAYS = FlagSpec("days", FlagType.NUMBER, minimum=1, maximum=7)
SILENT = FlagSpec("silent", FlagType.BOOLEAN)
NOTE = FlagSpec("note", FlagType.STRING)
SPECS = (DAYS, SILENT, NOTE)


class TestTokenize:
    def test_flags_are_removed_from_tokens(self):
        tokens, flags = tokenize("<@123> spamming links --days=3 --silent=true", SPECS)
        assert tokens == ("<@123>", "spamming", "links")
        assert flags == {"days": 3, "silent": True}

    def test_quoted_string_flag_keeps_spaces(self):
        tokens, flags = tokenize('hello --note="two words" world', SPECS)
        assert tokens == ("hello", "world")
        assert flags["note"] == "two words"

    def test_last_occurrence_wins(self):
        _, flags = tokenize("--days=2 --days=5", SPECS)
        assert flags["days"] == 5

    def test_flag_names_are_case_insensitive(self):
        _, flags = tokenize("--DAYS=4", SPECS)
        assert flags["days"] == 4

    def test_undeclared_flag_ignored_when_open(self):
        tokens, flags = tokenize("reason --bogus=1", SPECS)
        assert tokens == ("reason",)
        assert "bogus" not in flags

    def test_undeclared_flag_rejected_when_closed(self):
        with pytest.raises(ValidationError) as excinfo:
            tokenize("reason --bogus=1", SPECS, closed=True)
        assert excinfo.value.code == "INVALID_FLAG"
        assert "days, note, silent" in excinfo.value.message

    def test_flags_mapping_is_read_only(self):
        _, flags = extract_flags("--days=1", SPECS)
        with pytest.raises(TypeError):
            flags["days"] = 2  # type: ignore[index]


class TestCoercion:
    @pytest.mark.parametrize("raw,expected", [("true", True), ("Y", True), ("1", True), ("no", False), ("0", False)])
    def test_boolean_values(self, raw, expected):
        _, flags = tokenize(f"--silent={raw}", SPECS)
        assert flags["silent"] is expected

    def test_invalid_boolean_raises(self):
        with pytest.raises(ValidationError) as excinfo:
            tokenize("--silent=maybe", SPECS)
        assert excinfo.value.code == "INVALID_FLAG_TYPE"
        assert excinfo.value.message == "Flag silent must be true or false"

    def test_invalid_number_raises(self):
        with pytest.raises(ValidationError) as excinfo:
            tokenize("--days=abc", SPECS)
        assert excinfo.value.code == "INVALID_FLAG_TYPE"


class TestHelpers:
    def test_split_overload_joins_the_rest(self):
        head, rest = split_overload(("<@1>", "<@2>", "being", "rude"), 2)
        assert head == ("<@1>", "<@2>")
        assert rest == "being rude"

    def test_split_overload_empty_rest(self):
        head, rest = split_overload(("<@1>",), 1)
        assert rest == ""

    def test_check_range_accepts_bounds(self):
        check_range(DAYS, 1, "x")
        check_range(DAYS, 7, "x")
        check_range(DAYS, None, "x")

    @pytest.mark.parametrize("value", [0, 8, True, "3"])
    def test_check_range_rejects(self, value):
        with pytest.raises(ValidationError) as excinfo:
            check_range(DAYS, value, "an integer bigger than 0 and lower than 8")
        assert excinfo.value.message == "Flag days must be an integer bigger than 0 and lower than 8"
