import io
import math
import pytest
from scriptit.sit_runtime import ScriptRunner, StdLib, inclusive_range
from scriptit.sit_interpreter import Evaluator
from scriptit.sit_datatypes import SitTypeError


async def run_sit(src: str):
    runner = ScriptRunner()
    return await runner.handle_script(src)


def assert_ok(res, expected=None):
    assert res.status == 'success', f"expected success, got {res.status}: {res.error_message}"
    if expected is not None:
        assert res.value == expected


def assert_error(res, contains=None):
    assert res.status == 'error', f"expected error, got {res.status} (value={res.value!r})"
    if contains:
        assert contains in (res.error_message or ""), res.error_message


def test_builtin_table_is_complete():
    names = set(StdLib(Evaluator()).builtins())
    expected = {
        'print', 'pprint', 'input', 'read', 'write', 'readLine', 'sqrt', 'abs', 'min', 'max',
        'ceil', 'floor', 'round', 'sin', 'cos', 'tan', 'cot', 'sec', 'csc', 'asin', 'acos',
        'atan', 'log', 'log2', 'log10', 'list', 'set', 'append', 'pop', 'len', 'str', 'int',
        'float', 'type', 'bool', 'repr', 'isinstance', 'sum', 'sorted', 'reversed', 'all',
        'any', 'range_list', 'upper', 'lower', 'strip', 'title', 'capitalize', 'isdigit',
        'isalpha', 'find', 'startswith', 'endswith', 'replace', 'contains', 'count', 'index',
        'sort', 'add', 'remove', 'split', 'slice',
    }
    assert names == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("src, expected", [
    ("sqrt(16).", 4.0),
    ("abs(-5).", 5),
    ("abs(-2.5).", 2.5),
    ("min(3, 1, 2).", 1),
    ("max([3, 9, 2]).", 9),
    ("min('b', 'a').", 'a'),
    ("ceil(2.1).", 3),
    ("floor(-2.1).", -3),
    ("round(2.5).", 3),
    ("round(-2.5).", -3),
    ("round(3.14159, 2).", 3.14),
    ("sin(0).", 0.0),
    ("cos(0).", 1.0),
    ("log10(1000).", 3.0),
    ("log2(8).", 3.0),
    ("log(1).", 0.0),
    ("atan(0).", 0.0),
])
async def test_math_builtins(src, expected):
    assert_ok(await run_sit(src), expected)


@pytest.mark.asyncio
async def test_math_domain_errors_give_nan():
    res = await run_sit("sqrt(-1).")
    assert_ok(res)
    assert math.isnan(res.value)


@pytest.mark.asyncio
async def test_log_of_zero_is_negative_infinity():
    assert_ok(await run_sit("log(0)."), -math.inf)


@pytest.mark.asyncio
async def test_reciprocal_trig_at_zero_divides_by_zero():
    assert_error(await run_sit("cot(0)."), "DivisionByZeroError")
    assert_ok(await run_sit("sec(0)."), 1.0)


@pytest.mark.asyncio
async def test_math_rejects_non_numbers():
    assert_error(await run_sit("sqrt('x')."), "TypeError: sqrt() expects a number, got string")


@pytest.mark.asyncio
@pytest.mark.parametrize("src, expected", [
    ("len('hello').", 5),
    ("len([1, 2]).", 2),
    ("len({1, 1}).", 1),
    ("str(42).", "42"),
    ("str(4.0).", "4"),
    ("str([1, 'a']).", "[1, 'a']"),
    ("int(3.7).", 3),
    ("int(-3.7).", -3),
    ("int('12').", 12),
    ("float(42).", 42.0),
    ("float('2.5').", 2.5),
    ("type(1).", "int"),
    ("type(1.0).", "float"),
    ("type('s').", "string"),
    ("type([]).", "list"),
    ("type({}).", "set"),
    ("type(None).", "none"),
    ("type(True).", "bool"),
    ("bool(0).", False),
    ("bool('x').", True),
    ("repr('hello').", "'hello'"),
    ("isinstance(42, 'int').", True),
    ("isinstance('hi', 'str').", True),
    ("isinstance(1.5, 'int').", False),
    ("sum([1, 2, 3, 4, 5]).", 15),
    ("sum([]).", 0),
    ("sorted([5, 3, 1, 4, 2]).", (1, 2, 3, 4, 5)),
    ("sorted({3, 1}).", (1, 3)),
    ("reversed([1, 2, 3]).", (3, 2, 1)),
    ("reversed('abc').", "cba"),
    ("all([True, True]).", True),
    ("all([True, False]).", False),
    ("any([False, 0, 'x']).", True),
    ("any([]).", False),
    ("range_list(0, 5).", (0, 1, 2, 3, 4, 5)),
    ("range_list(3, 1).", (3, 2, 1)),
    ("range_list(0, 10, 5).", (0, 5, 10)),
    ("set().", frozenset()),
])
async def test_conversion_and_collection_builtins(src, expected):
    assert_ok(await run_sit(src), expected)


@pytest.mark.asyncio
async def test_builtin_arity_is_checked():
    assert_error(await run_sit("len(1, 2)."), "ArityError: Built-in 'len' expects 1 argument(s), got 2")
    assert_error(await run_sit("write('f')."), "expects 2 to 3 argument(s)")


@pytest.mark.asyncio
async def test_builtin_type_errors():
    assert_error(await run_sit("len(5)."), "TypeError")
    assert_error(await run_sit("append(5, 1)."), "append() expects a list")
    assert_error(await run_sit("pop([])."), "empty list")
    assert_error(await run_sit("int('abc')."), "Cannot convert 'abc' to int")
    assert_error(await run_sit("sorted([1, 'a'])."), "cannot compare")


def test_inclusive_range_rejects_zero_step():
    with pytest.raises(SitTypeError, match="Step cannot be zero"):
        inclusive_range(1, 5, 0)


@pytest.mark.asyncio
async def test_pprint_emits_pretty_form():
    res = await run_sit("pprint(['a', 1]).")
    assert [e['message'] for e in res.side_effects if e['topics'] == ['stdout']] == ["['a', 1]"]


@pytest.mark.asyncio
async def test_input_reads_a_line_and_echoes_prompt():
    echo = io.StringIO()
    runner = ScriptRunner(echo=echo)
    runner.evaluator.input_stream = io.StringIO("Ada\n")
    res = await runner.handle_script("var name = input('name? '). 'hi ' + name.")
    assert_ok(res, "hi Ada")
    assert echo.getvalue() == "name? "


@pytest.mark.asyncio
async def test_input_without_stream_is_io_error():
    runner = ScriptRunner()
    runner.evaluator.input_stream = None
    assert_error(await runner.handle_script("input()."), "IOError")


@pytest.mark.asyncio
async def test_print_streams_to_echo():
    echo = io.StringIO()
    runner = ScriptRunner(echo=echo)
    await runner.handle_script("print('one'). print(2).")
    assert echo.getvalue() == "one\n2\n"
