from pathlib import Path
import pytest
import yaml
from scriptit.sit_runtime import ScriptRunner


def _load_programs():
    programs_path = Path(__file__).parent / "programs.yaml"
    with open(programs_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _as_sit_value(value):
    # YAML lists stand for ScriptIt lists, which evaluate to tuples.
    if isinstance(value, list):
        return tuple(_as_sit_value(v) for v in value)
    return value


PROGRAMS = _load_programs()


@pytest.mark.asyncio
@pytest.mark.parametrize("case", PROGRAMS, ids=[p["name"] for p in PROGRAMS])
async def test_program(case):
    runner = ScriptRunner()
    res = await runner.handle_script(case["source"])

    if "error" in case:
        assert res.status == 'error', f"expected error, got value {res.value!r}"
        assert case["error"] in res.error_message, res.error_message
        return

    assert res.status == 'success', res.error_message
    if "stdout" in case:
        printed = [e['message'] for e in res.side_effects if e.get('topics') == ['stdout']]
        assert printed == case["stdout"]
    if "value" in case:
        assert res.value == _as_sit_value(case["value"])
