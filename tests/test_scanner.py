import pytest

from errors import EndOfCodeError
from scanner import Line, scan_lines, split_source


def test_blank_lines_and_comments_are_skipped():
    lines, functions = scan_lines(["", "   ; a comment", "x$ = 1", "  "])
    assert [line.line_number for line in lines] == [3]
    assert functions == []


def test_assignment_gets_implicit_let():
    lines, _ = scan_lines(["x$ = 1", "arr$[0] = 2", "StdWriteLine(x$)"])
    assert lines[0].text == "LET x$ = 1"
    assert lines[0].name == "LET"
    assert lines[1].text == "LET arr$[0] = 2"
    assert lines[2].text == "StdWriteLine(x$)"


def test_continuation_merges_physical_lines():
    lines, _ = scan_lines(["x$ = 1 + _", "  2 + _", "3", "y$ = 4"])
    assert len(lines) == 2
    assert lines[0].line_number == 1
    assert lines[0].text == "LET x$ = 1 + 2 + 3"
    assert lines[1].line_number == 4


def test_continuation_at_end_of_input_fails():
    with pytest.raises(EndOfCodeError) as info:
        scan_lines(["x$ = 1", "y$ = 2 + _"])
    assert info.value.line == 2


def test_function_headers_are_recorded():
    source = ["x$ = 1", "FUNCTION add(a$, b$)", "return a$ + b$", "END FUNCTION"]
    lines, functions = scan_lines(source)
    assert functions == [2]
    assert len(lines) == 4


def test_display_name_is_upper_case_and_call_shape_is_detected():
    lines, _ = scan_lines(["stdwriteline(1)", "break"])
    assert lines[0].name == "stdwriteline"
    assert lines[0].display_name == "STDWRITELINE"
    assert lines[0].is_call_shaped
    assert lines[1].display_name == "BREAK"
    assert not lines[1].is_call_shaped


def test_name_stops_at_space_before_parenthesis():
    line = Line(1, "IF (x$ > 1) THEN")
    assert line.name == "IF"
    assert not line.is_call_shaped


def test_lines_compare_by_number_only():
    a = Line(5, "x$ = 1")
    b = Line(5, "something else")
    c = Line(7, "x$ = 1")
    assert a == b
    assert a != c
    assert a < c
    assert len({a, b, c}) == 2


def test_split_source_handles_crlf():
    assert split_source("a\r\nb\nc") == ["a", "b", "c"]


def test_assignment_target_names_the_line():
    lines, _ = scan_lines(["grid$[1, 2] = 7", "x$=1"])
    assert lines[0].text == "LET grid$[1, 2] = 7"
    assert lines[0].display_name == "grid$"
    assert lines[1].text == "LET x$=1"
    assert lines[1].display_name == "x$"
