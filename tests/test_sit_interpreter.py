import pytest
from scriptit.sit_runtime import ScriptRunner
from scriptit.sit_parser import parse
from scriptit.sit_interpreter import Evaluator
from scriptit.sit_datatypes import Scope


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


def printed(res):
    return [e['message'] for e in res.side_effects if e.get('topics') == ['stdout']]


# --- Arithmetic ---

@pytest.mark.asyncio
@pytest.mark.parametrize("src, expected", [
    ("1 + 2.", 3),
    ("2 + 3 * 4.", 14),
    ("(2 + 3) * 4.", 20),
    ("2 ^ 3 + 4 * 2 - 1.", 15),
    ("2 ^ 10.", 1024),
    ("-5 + 3.", -2),
    ("-(-5).", 5),
    ("17 % 5.", 2),
    ("10 / 2.", 5),
    ("10 / 4.", 2.5),
    (".5 + .5.", 1.0),
    ("1000000 * 1000000.", 1000000000000),
    ("2 ^ 100.", 2 ** 100),
    ("True + True.", 2),
    ("var x = 5. 2x.", 10),
    ("2(3 + 4).", 14),
    ("(2 + 1)(3 + 1).", 12),
])
async def test_arithmetic(src, expected):
    assert_ok(await run_sit(src), expected)


@pytest.mark.asyncio
async def test_division_by_zero_is_reported():
    assert_error(await run_sit("print(1 / 0)."), "DivisionByZeroError: Division by zero")
    assert_error(await run_sit("5 % 0."), "Modulo by zero")


# --- Booleans and short-circuit ---

@pytest.mark.asyncio
@pytest.mark.parametrize("src, expected", [
    ("1 == 1.", True),
    ("1 != 1.", False),
    ("3 < 5 && 5 < 3.", False),
    ("3 < 5 or 5 < 3.", True),
    ("not True.", False),
    ("!0.", True),
    ("5 is 5.", True),
    ("5 is not 6.", True),
    ("10 points 10.", True),
    ("10 points 10.0.", False),
    ("10 not points 10.0.", True),
    ("'a' == 'a'.", True),
    ("None == None.", True),
    ("1 == '1'.", False),
])
async def test_comparisons_and_logic(src, expected):
    res = await run_sit(src)
    assert_ok(res)
    assert res.value is expected


@pytest.mark.asyncio
async def test_or_short_circuits_before_division():
    assert_ok(await run_sit("(1==1) || (10/0)."), True)


@pytest.mark.asyncio
async def test_and_short_circuits_before_division():
    assert_ok(await run_sit("(1==0) && (10/0)."), False)


@pytest.mark.asyncio
async def test_ordering_across_kinds_is_type_error():
    assert_error(await run_sit("1 < 'a'."), "TypeError")


# --- Variables ---

@pytest.mark.asyncio
async def test_var_defaults_to_none():
    res = await run_sit("var x. x.")
    assert_ok(res)
    assert res.value is None


@pytest.mark.asyncio
async def test_var_multiple_declarators():
    assert_ok(await run_sit("var a = 1 b = 2 c = 3. a + b + c."), 6)
    assert_ok(await run_sit("var a = 1, b, c = 3. [a, b, c]."), (1, None, 3))


@pytest.mark.asyncio
async def test_let_be():
    assert_ok(await run_sit("let x be 42. x."), 42)


@pytest.mark.asyncio
@pytest.mark.parametrize("src, expected", [
    ("var x = 10. x += 5. x.", 15),
    ("var x = 10. x -= 3. x.", 7),
    ("var x = 4. x *= 3. x.", 12),
    ("var x = 10. x /= 4. x.", 2.5),
    ("var x = 10. x %= 3. x.", 1),
    ("var i = 5. i++. i.", 6),
    ("var i = 5. i--. i.", 4),
    ("var i = 5. ++i. i.", 6),
    ("var i = 5. --i. i.", 4),
    ("var s = 'a'. s += 'b'. s.", "ab"),
])
async def test_compound_assignment(src, expected):
    assert_ok(await run_sit(src), expected)


@pytest.mark.asyncio
async def test_assignment_requires_declaration():
    assert_error(await run_sit("y = 1."), "UndefinedVariableError: Undefined variable: y")


@pytest.mark.asyncio
async def test_undefined_variable_read():
    assert_error(await run_sit("nope + 1."), "Undefined variable: nope")


@pytest.mark.asyncio
async def test_constants_are_seeded():
    res = await run_sit("PI.")
    assert_ok(res)
    assert abs(res.value - 3.141592653589793) < 1e-12
    res = await run_sit("e.")
    assert abs(res.value - 2.718281828459045) < 1e-12


# --- Lists and sets ---

@pytest.mark.asyncio
async def test_append_and_pop_leave_original_unchanged():
    res = await run_sit("var L = [1, 2]. var M = append(L, 3). [pop(M), L, M].")
    assert_ok(res, (3, (1, 2), (1, 2, 3)))


@pytest.mark.asyncio
async def test_pop_does_not_remove():
    assert_ok(await run_sit("var L = [1, 2, 3]. pop(L). len(L)."), 3)


@pytest.mark.asyncio
async def test_set_literal_deduplicates():
    assert_ok(await run_sit("len({1, 2, 3, 2})."), 3)
    assert_ok(await run_sit("{1, 2, 3, 2} == {3, 2, 1}."), True)
    assert_ok(await run_sit("set([1, 1, 2]) == {1, 2}."), True)


@pytest.mark.asyncio
async def test_list_operators():
    assert_ok(await run_sit("[1] + [2, 3]."), (1, 2, 3))
    assert_ok(await run_sit("[0] * 3."), (0, 0, 0))
    assert_ok(await run_sit("list('ab')."), ('a', 'b'))
    assert_ok(await run_sit("list()."), ())


# --- Expression results ---

@pytest.mark.asyncio
async def test_execute_returns_last_expression_statement():
    assert_ok(await run_sit("var x = 1. x. var y = 2."), 1)


@pytest.mark.asyncio
async def test_program_without_expression_returns_none():
    res = await run_sit("var x = 1.")
    assert_ok(res)
    assert res.value is None


@pytest.mark.asyncio
async def test_session_scope_persists_between_runs():
    runner = ScriptRunner()
    assert_ok(await runner.handle_script("var x = 40."))
    assert_ok(await runner.handle_script("x + 2."), 42)
    runner.reset()
    assert_error(await runner.handle_script("x."), "Undefined variable")
    assert_ok(await runner.handle_script("PI > 3."), True)


@pytest.mark.asyncio
async def test_evaluator_runs_without_runner():
    evaluator = Evaluator()
    scope = Scope()
    result = await evaluator.execute(parse("var a = 2. a * 21."), scope)
    assert result == 42
    assert scope["a"] == 2


@pytest.mark.asyncio
async def test_print_emits_one_event_per_call():
    res = await run_sit("print('a', 1, 2.5, None, [1, 'x']). print().")
    assert_ok(res)
    assert printed(res) == ["a 1 2.5 None [1, 'x']", ""]
