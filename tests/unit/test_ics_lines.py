"""Unit tests for studycal.calendar.ics_lines content-line helpers."""

import pytest

from studycal.calendar.ics_lines import ContentLine, split_property, unescape_text, unfold_lines

pytestmark = pytest.mark.unit


class TestUnfoldLines:
    def test_joins_space_and_tab_continuations(self) -> None:
        text = "SUMMARY:Linear Alge\r\n bra\r\n\tLecture\r\nUID:1\r\n"
        assert unfold_lines(text) == ["SUMMARY:Linear AlgebraLecture", "UID:1"]

    def test_keeps_whitespace_after_fold_marker(self) -> None:
        assert unfold_lines("DESCRIPTION:one\n  two") == ["DESCRIPTION:one two"]

    def test_mixed_line_endings_and_blank_lines(self) -> None:
        assert unfold_lines("A:1\r\n\r\nB:2\nC:3\rD:4") == ["A:1", "B:2", "C:3", "D:4"]

    def test_empty_input(self) -> None:
        assert unfold_lines("") == []


class TestSplitProperty:
    def test_plain_property(self) -> None:
        assert split_property("SUMMARY:Team sync") == ContentLine("SUMMARY", {}, "Team sync")

    def test_parameters_are_upper_cased_and_unquoted(self) -> None:
        prop = split_property('dtstart;tzid="America/New_York";value=DATE-TIME:20250110T090000')
        assert prop is not None
        assert prop.name == "DTSTART"
        assert prop.params == {"TZID": "America/New_York", "VALUE": "DATE-TIME"}
        assert prop.value == "20250110T090000"

    def test_colon_inside_quoted_parameter(self) -> None:
        prop = split_property('ATTENDEE;CN="Doe: Jane":mailto:jane@example.com')
        assert prop is not None
        assert prop.params["CN"] == "Doe: Jane"
        assert prop.value == "mailto:jane@example.com"

    def test_value_may_contain_colons(self) -> None:
        prop = split_property("DESCRIPTION:Instructor: Dr. Smith")
        assert prop is not None
        assert prop.value == "Instructor: Dr. Smith"

    @pytest.mark.parametrize("line", ["NOVALUE", ":value-without-name", ";X=1:value"])
    def test_malformed_lines_return_none(self, line: str) -> None:
        assert split_property(line) is None


@pytest.mark.parametrize(
    "raw,expected",
    [
        (r"Office hours\, room 4", "Office hours, room 4"),
        (r"a\;b", "a;b"),
        (r"line one\nline two\Nthree", "line one\nline two\nthree"),
        (r"C:\\temp", "C:\\temp"),
        (r"\\n stays literal", "\\n stays literal"),
        ("no escapes", "no escapes"),
    ],
)
def test_unescape_text(raw: str, expected: str) -> None:
    assert unescape_text(raw) == expected
