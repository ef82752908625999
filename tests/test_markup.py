"""
Tests for commit message markup parsing.
"""
import pytest

from pushtrello.commits.markup import Link, Text, parse_message
from pushtrello.errors import ParseError


class TestParseMessage:

    def test_plain_text(self):
        assert parse_message("Just a fix") == [Text("Just a fix")]

    def test_empty_message(self):
        assert parse_message("") == []

    def test_reference_with_list_name(self):
        nodes = parse_message("Fixed it [CARD-1](Done)")
        assert nodes == [Text("Fixed it "), Link("CARD-1", [Text("Done")])]

    def test_reference_without_list_name(self):
        nodes = parse_message("[https://trello.com/c/AbCd1234] tidy up")
        assert nodes == [Link("https://trello.com/c/AbCd1234", []), Text(" tidy up")]

    def test_list_name_is_stripped(self):
        assert parse_message("[A]( In Review )") == [Link("A", [Text("In Review")])]

    def test_blank_list_name_gives_no_child(self):
        assert parse_message("[A]()") == [Link("A", [])]

    def test_several_references(self):
        nodes = parse_message("[A](Done) and [B]")
        assert nodes == [Link("A", [Text("Done")]), Text(" and "), Link("B", [])]

    @pytest.mark.parametrize("message", ["see [the docs]", "[ ]", "[]"])
    def test_brackets_that_are_not_references_stay_text(self, message):
        assert parse_message(message) == [Text(message)]

    def test_parenthesis_not_after_reference_is_text(self):
        assert parse_message("Fix (again)") == [Text("Fix (again)")]

    def test_multiline_message(self):
        nodes = parse_message("Summary\n\nCloses [X1](Done)\n")
        assert nodes == [Text("Summary\n\nCloses "), Link("X1", [Text("Done")]), Text("\n")]

    def test_unterminated_bracket(self):
        with pytest.raises(ParseError):
            parse_message("Fix [CARD-1")

    def test_bracket_closed_on_next_line_is_unterminated(self):
        with pytest.raises(ParseError):
            parse_message("Fix [CARD-1\n]")

    def test_unterminated_list_name(self):
        with pytest.raises(ParseError):
            parse_message("Fix [CARD-1](Done")

    def test_nested_parenthesis(self):
        with pytest.raises(ParseError):
            parse_message("Fix [CARD-1](Do(ne)")
