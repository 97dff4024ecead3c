import pytest
from scriptit.sit_runtime import ScriptRunner
from scriptit.sit_interpreter import Evaluator, DEFAULT_MAX_CALL_DEPTH


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


@pytest.mark.asyncio
async def test_basic_function_with_at():
    assert_ok(await run_sit("fn add @(a,b): give(a+b). ; add(3,4)."), 7)


@pytest.mark.asyncio
async def test_give_without_parentheses():
    assert_ok(await run_sit("fn sq(x): give x * x. ; sq(9)."), 81)


@pytest.mark.asyncio
async def test_function_without_give_returns_none():
    res = await run_sit("fn noop(): pass. ; noop().")
    assert_ok(res)
    assert res.value is None


@pytest.mark.asyncio
async def test_give_unwinds_from_nested_loops():
    src = """
fn first_over(limit):
    for i in range(from 1 to 100):
        var j = 0.
        while j < 3:
            if i * i > limit: give i. ;
            j++.
        ;
    ;
    give None.
;
first_over(50).
"""
    assert_ok(await run_sit(src), 8)


@pytest.mark.asyncio
async def test_recursion():
    src = """
fn fact(n):
    if n <= 1: give 1. ;
    give n * fact(n - 1).
;
fact(20).
"""
    assert_ok(await run_sit(src), 2432902008176640000)


@pytest.mark.asyncio
async def test_recursive_fibonacci():
    src = """
fn fib(n):
    if n < 2: give n. ;
    give fib(n - 1) + fib(n - 2).
;
fib(15).
"""
    assert_ok(await run_sit(src), 610)


@pytest.mark.asyncio
async def test_mutual_recursion():
    src = """
fn is_even(n): if n == 0: give True. ; give is_odd(n - 1). ;
fn is_odd(n): if n == 0: give False. ; give is_even(n - 1). ;
[is_even(10), is_odd(7)].
"""
    assert_ok(await run_sit(src), (True, True))


@pytest.mark.asyncio
async def test_closure_sees_later_changes_to_defining_scope():
    src = """
var factor = 2.
fn scale(x): give x * factor. ;
factor = 10.
scale(3).
"""
    assert_ok(await run_sit(src), 30)


@pytest.mark.asyncio
async def test_nested_function_captures_enclosing_frame():
    src = """
fn outer(a):
    fn inner(b): give a + b. ;
    give inner(10).
;
outer(5).
"""
    assert_ok(await run_sit(src), 15)


@pytest.mark.asyncio
async def test_function_is_a_value():
    res = await run_sit("fn f(a, b): pass. ; [type(f), str(f)].")
    assert_ok(res, ("function", "<fn f(a, b)>"))


@pytest.mark.asyncio
async def test_redefinition_replaces_function():
    assert_ok(await run_sit("fn f(): give 1. ; fn f(): give 2. ; f()."), 2)


@pytest.mark.asyncio
async def test_user_function_shadows_builtin():
    assert_ok(await run_sit("fn len(x): give 99. ; len([1])."), 99)


@pytest.mark.asyncio
async def test_arity_mismatch():
    res = await run_sit("fn f(a, b): give a + b. ; f(1).")
    assert_error(res, "ArityError: Function 'f' expects 2 argument(s), got 1")


@pytest.mark.asyncio
async def test_unknown_function():
    assert_error(await run_sit("noSuchFunction()."), "UndefinedVariableError: Unknown function: noSuchFunction")


@pytest.mark.asyncio
async def test_calling_a_non_function():
    assert_error(await run_sit("var x = 1. x()."), "TypeError: 'x' is not a function (got int)")


@pytest.mark.asyncio
async def test_arguments_evaluated_left_to_right():
    res = await run_sit("fn pair(a, b): give [a, b]. ; pair(print('first'), print('second')).")
    assert_ok(res, (None, None))
    assert [e['message'] for e in res.side_effects if e['topics'] == ['stdout']] == ['first', 'second']


@pytest.mark.asyncio
async def test_runaway_recursion_is_reported(monkeypatch):
    monkeypatch.setenv("SIT_MAX_CALL_DEPTH", "50")
    res = await run_sit("fn down(n): give down(n + 1). ; down(0).")
    assert_error(res, "RecursionError: Maximum call depth exceeded (50)")


@pytest.mark.parametrize("raw", ["lots", "0", "-3"], ids=["not_a_number", "zero", "negative"])
def test_bad_call_depth_setting_falls_back_to_default(monkeypatch, capsys, raw):
    monkeypatch.setenv("SIT_MAX_CALL_DEPTH", raw)
    assert Evaluator().max_call_depth == DEFAULT_MAX_CALL_DEPTH
    assert "[WARN] ignoring SIT_MAX_CALL_DEPTH" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_bad_recursion_limit_setting_still_runs(monkeypatch, capsys):
    monkeypatch.setenv("SIT_RECURSION_LIMIT", "ten thousand")
    assert_ok(await run_sit("1 + 1."), 2)
    assert "[WARN] ignoring SIT_RECURSION_LIMIT" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_deep_recursion_within_limit():
    src = """
fn count(n):
    if n == 0: give 0. ;
    give 1 + count(n - 1).
;
count(200).
"""
    assert_ok(await run_sit(src), 200)
