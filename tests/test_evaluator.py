import math

import pytest

from errors import TBasicDivideByZeroError, TBasicParseError, TBasicTypeError, UndefinedNameError
from evaluator import Evaluator, index_group, read_string, split_arguments
from operators import BINARY_OPERATORS, Side, UnaryOperator
from values import UINT64_MAX


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("2 + 3 * 4", 14),
        ("(2 + 3) * 4", 20),
        ("10 - 3 - 2", 5),
        ("2 * 3 + 4 * 5", 26),
        ("100 / 10 / 5", 2),
        ("7 / 2", 3.5),
        ("7 MOD 3", 1),
        ("-7 MOD 3", -1),
        ("1 << 4", 16),
        ("256 >> 4", 16),
        ("0xFF & 0x0F", 15),
        ("5 | 2", 7),
        ("6 ^ 3", 5),
        ("1 + 2 = 3", True),
        ("1 < 2 AND 2 < 3", True),
        ("2 <= 2", True),
        ("3 =< 2", False),
        ("3 => 2", True),
        ("-2 + 5", 3),
        ("--2", 2),
        ("NOT TRUE", False),
        ("NOT (1 = 2)", True),
        ("0x10", 16),
        ("3.5e1", 35),
        ("", 0),
    ],
)
def test_arithmetic_and_precedence(executer, expression, expected):
    assert executer.evaluate(expression) == expected


def test_integral_results_collapse_to_int(executer):
    result = executer.evaluate("6 / 2")
    assert result == 3 and isinstance(result, int)
    assert isinstance(executer.evaluate("0.5 + 0.25"), float)


def test_short_circuit_skips_right_operand(executer):
    assert executer.evaluate("FALSE AND (1/0)") is False
    assert executer.evaluate("TRUE OR (1/0)") is True
    with pytest.raises(TBasicDivideByZeroError):
        executer.evaluate("TRUE AND (1/0)")


def test_string_equality_is_case_insensitive_only_for_single_equals(executer):
    assert executer.evaluate('"ABC" = "abc"') is True
    assert executer.evaluate('"ABC" == "abc"') is False
    assert executer.evaluate('"ABC" <> "abc"') is True
    assert executer.evaluate('"abc" != "abc"') is False


def test_string_concatenation(executer):
    assert executer.evaluate('"a" + 1') == "a1"
    assert executer.evaluate('"x" + TRUE') == "xTrue"
    assert executer.evaluate("'single' + \"double\"") == "singledouble"


def test_string_escapes(executer):
    assert executer.evaluate(r'"a\tb\n"') == "a\tb\n"
    assert executer.evaluate(r'"A\"q\""') == 'A"q"'


def test_operator_on_incompatible_types(executer):
    with pytest.raises(TBasicTypeError) as info:
        executer.evaluate('"a" * 2')
    assert "cannot be applied to objects of type 'string' and 'int'" in info.value.message


def test_divide_by_zero(executer):
    with pytest.raises(TBasicDivideByZeroError):
        executer.evaluate("1 / 0")
    with pytest.raises(TBasicDivideByZeroError):
        executer.evaluate("5 MOD 0")


def test_bitwise_not_is_unsigned(executer):
    assert executer.evaluate("~0") == UINT64_MAX


def test_missing_operator(executer):
    with pytest.raises(TBasicParseError) as info:
        executer.evaluate("2 3")
    assert "Missing binary operator" in info.value.message


def test_trailing_binary_operator(executer):
    with pytest.raises(TBasicParseError) as info:
        executer.evaluate("2 +")
    assert "cannot end in a binary operation" in info.value.message


def test_invalid_token(executer):
    with pytest.raises(TBasicParseError):
        executer.evaluate("2 + # 3")


def test_unterminated_string(executer):
    with pytest.raises(TBasicParseError):
        executer.evaluate('"abc')


def test_variables_and_indexing(executer):
    executer.execute("x$ = 4\nDIM a$[3]\na$[1] = 5")
    assert executer.evaluate("x$ * 2") == 8
    assert executer.evaluate("a$[1] + 1") == 6
    # indexing binds tighter than unary minus
    assert executer.evaluate("-a$[1]") == -5


def test_null_variable_reads_as_zero(executer):
    executer.execute("DIM n$")
    assert executer.evaluate("n$ + 1") == 1
    assert executer.evaluate("null") is None


def test_undefined_variable(executer):
    with pytest.raises(UndefinedNameError) as info:
        executer.evaluate("missing$ + 1")
    assert info.value.name == "missing$"


def test_function_calls_in_expressions(executer):
    assert executer.evaluate("POW(2, 10) + 1") == 1025
    assert executer.evaluate("StrUpper(\"a\" + \"b\")") == "AB"


def test_evaluator_reuses_tokens_but_reads_fresh_values(executer):
    executer.execute("i$ = 1")
    ev = Evaluator("i$ + 1", executer)
    assert ev.evaluate() == 2
    executer.execute("i$ = 10")
    ev.reparse()
    assert ev.evaluate() == 11


def test_read_string_returns_close_index():
    close, value = read_string('x = "a\\"b" + 1', 4)
    assert value == 'a"b'
    assert close == 9


def test_index_group_skips_strings_and_nesting():
    text = '(a$[1] + (")" + 2))'
    assert index_group(text, 0) == len(text) - 1


def test_split_arguments_respects_nesting():
    assert split_arguments('1, "a,b", f(2, 3), x$[1,2]') == ["1", '"a,b"', "f(2, 3)", "x$[1,2]"]
    assert split_arguments("   ") == []


def test_left_side_unary_operator_takes_the_preceding_operand(executer):
    factorial = UnaryOperator("!", lambda v: math.factorial(int(v)), Side.LEFT)
    plus = BINARY_OPERATORS["+"]
    ev = Evaluator("", executer)
    assert ev._apply_unary([3, factorial, plus, 1]) == [6, plus, 1]
    with pytest.raises(TBasicParseError):
        ev._apply_unary([factorial, 3])
