import math

import pytest

from errors import ScriptError, TBasicRuntimeError, TBasicTypeError
from tblib.arrays import same_value
from tblib.mathlib import evaluate_isolated
from values import to_array


# ---- math ----


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("POW(2, 10)", 1024),
        ("SQRT(16)", 4),
        ("ABS(-3.5)", 3.5),
        ("IPART(3.7)", 3),
        ("IPART(-3.7)", -3),
        ("FPART(2.5)", 0.5),
        ("ROUND(3.14159)", 3.14),
        ("ROUND(3.14159, 3)", 3.142),
        ("ROUND(7.6, 0)", 8),
        ("COS(0)", 1),
    ],
)
def test_math_functions(executer, expression, expected):
    assert executer.evaluate(expression) == expected


def test_logarithms(executer):
    assert executer.evaluate("LOG(1000)") == pytest.approx(3)
    assert executer.evaluate("LN(@E)") == pytest.approx(1)
    assert executer.evaluate("@PI") == math.pi


def test_domain_errors_yield_nan(executer):
    assert math.isnan(executer.evaluate("SQRT(-1)"))


def test_round_rejects_out_of_range_digits(executer):
    with pytest.raises(TBasicTypeError):
        executer.evaluate("ROUND(1.5, 16)")


def test_ipart_of_infinity(executer):
    with pytest.raises(TBasicTypeError):
        executer.evaluate("IPART(POW(10, 400))")


def test_random_is_in_unit_interval(executer):
    for _ in range(20):
        value = executer.evaluate("RANDOM()")
        assert 0 <= value < 1


def test_eval_computes_an_expression(run):
    result = run('r$ = EVAL("1 + 2 * 3")\ns$ = @status')
    assert result.var("r$") == 7
    assert result.var("s$") == 0


@pytest.mark.parametrize("expression", ['"1 +"', '"x$ + 1"', '"StrUpper(1)"'])
def test_eval_failure_sets_status(run, expression):
    result = run(f"x$ = 1\nr$ = EVAL({expression})\ns$ = @status")
    assert result.var("s$") == 1


def test_evaluate_isolated_sees_only_math():
    assert evaluate_isolated("POW(3, 2) + @PI") == pytest.approx(9 + math.pi)


# ---- runtime ----


@pytest.mark.parametrize(
    "expression, expected",
    [
        ('Size("abc")', 3),
        ("Len(\"\")", 0),
        ("Size(1)", 8),
        ("Size(1.5)", 8),
        ("Size(TRUE)", 1),
        ("Size(null)", 0),
        ('IsStr("a")', True),
        ("IsStr(1)", False),
        ("IsInt(1)", True),
        ("IsInt(1.5)", False),
        ("IsDouble(1.5)", True),
        ("IsBool(FALSE)", True),
        ("IsNull(null)", True),
        ("IsNull(0)", False),
        ('Int("42")', 42),
        ("Int(2.7)", 3),
        ('Double("1.5")', 1.5),
        ('Bool("true")', True),
        ("Bool(0)", False),
        ("Str(1.5)", "1.5"),
        ("Str(TRUE)", "True"),
        ("Char(65)", "A"),
        ('Char("z")', "z"),
        ("Byte(255)", 255),
    ],
)
def test_runtime_functions(executer, expression, expected):
    assert executer.evaluate(expression) == expected


def test_size_of_array(executer):
    executer.execute("DIM a$[4]")
    assert executer.evaluate("Size(a$)") == 4
    assert executer.evaluate("IsArray(a$)") is True


def test_is_defined(executer):
    executer.execute("x$ = 1")
    assert executer.evaluate('IsDefined("x$")') is True
    assert executer.evaluate('IsDefined("StrUpper")') is True
    assert executer.evaluate('IsDefined("nope$")') is False


def test_null_variables_read_as_zero(executer):
    executer.execute("DIM n$")
    assert executer.evaluate("IsNull(n$)") is False


@pytest.mark.parametrize("expression", ["Byte(300)", 'Int("abc")', 'Char("ab")'])
def test_failed_conversions(executer, expression):
    with pytest.raises(TBasicTypeError) as info:
        executer.evaluate(expression)
    assert info.value.message.startswith("Parameter cannot be")


# ---- strings ----


@pytest.mark.parametrize(
    "expression, expected",
    [
        ('StrIndexOf("hello", "l")', 2),
        ('StrLastIndexOf("hello", "l")', 3),
        ('StrIndexOf("hello", "l", 3)', 3),
        ('StrIndexOf("hello", "l", 0, 2)', -1),
        ('StrLastIndexOf("hello", "l", 0, 3)', 2),
        ('StrIndexOf("hello", "z")', -1),
        ('StrContains("hello", "ell")', True),
        ('StrCompare("a", "b")', -1),
        ('StrCompare("b", "b")', 0),
        ('StrUpper("abc")', "ABC"),
        ('StrLower("ABC")', "abc"),
        ('StrTrim("  x  ")', "x"),
        ('StrTrimStart("  x  ")', "x  "),
        ('StrTrimEnd("  x  ")', "  x"),
        ('StrLeft("hello", 2)', "he"),
        ('StrRight("hello", 2)', "lo"),
        ('Substring("hello", 1, 3)', "ell"),
        ('Substring("hello", 2)', "llo"),
        ('CharsToStr(StrToChars("abc"))', "abc"),
    ],
)
def test_string_functions(executer, expression, expected):
    assert executer.evaluate(expression) == expected


def test_str_split(executer):
    executer.execute('parts$ = StrSplit("a,b,,c", ",")')
    assert executer.evaluate("Size(parts$)") == 4
    assert executer.evaluate("parts$[3]") == "c"
    assert executer.evaluate("parts$[2]") == ""


@pytest.mark.parametrize(
    "expression",
    ['StrIndexOf("hello", "l", 9)', 'StrLeft("hi", 5)', 'Substring("hello", 4, 3)'],
)
def test_string_ranges_are_checked(executer, expression):
    with pytest.raises(TBasicRuntimeError):
        executer.evaluate(expression)


def test_str_index_of_requires_two_arguments(run):
    with pytest.raises(ScriptError) as info:
        run('r$ = StrIndexOf("hello")')
    assert info.value.detail == "STRINDEXOF does not take 1 parameter"


# ---- arrays ----


@pytest.fixture
def mixed(executer):
    executer.execute('DIM a$[3]\na$[0] = 1\na$[1] = "1"\na$[2] = 1')
    return executer


@pytest.mark.parametrize(
    "expression, expected",
    [
        ('ArrayContains(a$, "1")', True),
        ("ArrayContains(a$, 2)", False),
        ("ArrayIndexOf(a$, 1)", 0),
        ('ArrayIndexOf(a$, "1")', 1),
        ("ArrayLastIndexOf(a$, 1)", 2),
        ("ArrayIndexOf(a$, 1, 1)", 2),
        ("ArrayIndexOf(a$, 1, 1, 1)", -1),
        ("ArrayIndexOf(a$, TRUE)", -1),
    ],
)
def test_array_search(mixed, expression, expected):
    assert mixed.evaluate(expression) == expected


def test_array_window_is_checked(mixed):
    with pytest.raises(TBasicRuntimeError):
        mixed.evaluate("ArrayIndexOf(a$, 1, 2, 5)")


def test_array_resize_keeps_common_elements(mixed):
    mixed.execute("b$ = ArrayResize(a$, 5)")
    assert mixed.evaluate("Size(b$)") == 5
    assert mixed.evaluate("b$[1]") == "1"
    assert mixed.evaluate("Size(a$)") == 3


def test_same_value():
    arr = to_array([1])
    assert same_value(2.0, 2)
    assert not same_value(1, True)
    assert not same_value("1", 1)
    assert same_value(arr, arr)
    assert not same_value(arr, to_array([1]))


# ---- console ----


def test_std_write(run):
    result = run('StdWrite("a")\nStdWriteLine(1.5)\nStdWrite(TRUE)')
    assert result.text == "a1.5\nTrue"


def test_std_read_line(run):
    answers = iter(["first"])
    result = run("r$ = StdReadLine()\ns$ = @status", input_provider=lambda: next(answers))
    assert result.var("r$") == "first"
    assert result.var("s$") == 0


def test_std_read_line_at_end_of_input(run):
    def _eof():
        raise EOFError

    result = run("r$ = IsNull(StdReadLine())\nline$ = StdReadLine()\ns$ = @status", input_provider=_eof)
    assert result.var("r$") is True
    assert result.var("s$") == -1
