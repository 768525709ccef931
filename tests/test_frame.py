import pytest

from errors import ArgumentCountError, TBasicTypeError
from frame import StackFrame, parse_arguments
from values import to_array


def test_parse_arguments_keeps_quoted_text_together():
    assert parse_arguments('LET x$ = "a b"') == ["LET", "x$", "=", "a b"]
    assert parse_arguments("  BREAK  ") == ["BREAK"]
    assert parse_arguments('#include "lib file.bas"') == ["#include", "lib file.bas"]


def test_frame_from_text():
    frame = StackFrame.from_text(None, "  SLEEP 100  ")
    assert frame.name == "SLEEP"
    assert frame.count == 2
    assert frame.text_after_name() == "100"


def test_frame_from_call_shaped_text():
    frame = StackFrame.from_text(None, "return(a$ + 1)")
    assert frame.name == "return"
    assert frame.text_after_name() == "(a$ + 1)"
    assert StackFrame.from_text(None, "return").text_after_name() == ""


def test_frame_from_values_puts_name_in_slot_zero():
    frame = StackFrame.from_values(None, "Foo", [1, "two"])
    assert frame.name == "Foo"
    assert list(frame) == ["Foo", 1, "two"]
    assert frame[2] == "two"
    assert len(frame) == 3


def test_assert_args_names_the_callee():
    frame = StackFrame.from_values(None, "foo", [1, 2])
    frame.assert_args(3)
    frame.assert_args(2, at_least=True)
    with pytest.raises(ArgumentCountError) as info:
        frame.assert_args(2)
    assert info.value.message == "FOO does not take 2 parameters"


def test_singular_parameter_message():
    frame = StackFrame.from_values(None, "bar", [1])
    with pytest.raises(ArgumentCountError) as info:
        frame.assert_args(1)
    assert info.value.message == "BAR does not take 1 parameter"


def test_typed_getters_coerce_text():
    frame = StackFrame.from_values(None, "f", ["12", 2.0, "true", "1.5"])
    assert frame.get_int(1) == 12
    assert frame.get_int(2) == 2
    assert frame.get_bool(3) is True
    assert frame.get_float(4) == 1.5


def test_typed_getters_reject_wrong_types():
    frame = StackFrame.from_values(None, "f", [2.5, None, to_array([1])])
    with pytest.raises(TBasicTypeError) as info:
        frame.get_int(1)
    assert info.value.message == "expected parameter 1 to be of type int"
    with pytest.raises(TBasicTypeError):
        frame.get_str(2)
    with pytest.raises(TBasicTypeError):
        frame.get_bool(3)
    with pytest.raises(TBasicTypeError):
        frame.get_array(1)


def test_get_int_range():
    frame = StackFrame.from_values(None, "f", [5])
    assert frame.get_int_range(1, 0, 10) == 5
    with pytest.raises(TBasicTypeError):
        frame.get_int_range(1, 0, 3)


def test_add_appends_default_arguments():
    frame = StackFrame.from_values(None, "f", ["x"])
    frame.add(0)
    assert frame.count == 3
    assert frame.get_int(2) == 0
