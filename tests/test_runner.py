"""Table-driven test runner for the ScriptRust parser and interpreter."""

import signal
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from scriptrust import ScriptRustError, parse as scriptrust_parse, run_source
from scriptrust.ast import Program

RUN_TIMEOUT = 5
TESTS_DIR = Path(__file__).parent

TESTS = {
    "scriptrust_parse": {"dir": "parser", "run": "phase"},
    "scriptrust_run": {"dir": "run", "run": "phase"},
    "scriptrust_app": {"dir": "apps", "run": "scriptrust_app"},
}


# ---------------------------------------------------------------------------
# Timeout
# ---------------------------------------------------------------------------


def _timeout_handler(signum, frame):
    raise TimeoutError("scriptrust timed out")


signal.signal(signal.SIGALRM, _timeout_handler)


# ---------------------------------------------------------------------------
# Spec file parsing
# ---------------------------------------------------------------------------


def parse_spec_file(path: Path) -> list[tuple[str, str, str]]:
    """Parse a .tests file into (name, input, expected) tuples."""
    lines = path.read_text().split("\n")
    result: list[tuple[str, str, str]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            test_input = "\n".join(input_lines)
            expected = "\n".join(expected_lines).strip()
            result.append((test_name, test_input, expected))
        else:
            i += 1
    return result


def discover_specs(test_dir: Path) -> list[tuple[str, str, str]]:
    """Glob *.tests in test_dir, return (test_id, input, expected) tuples."""
    results = []
    for test_file in sorted(test_dir.glob("*.tests")):
        for name, input_code, expected in parse_spec_file(test_file):
            results.append((f"{test_file.stem}/{name}", input_code, expected))
    return results


def discover_scriptrust_apps(test_dir: Path) -> list[Path]:
    """Find all .rs programs that ship an expected .out file."""
    return sorted(p for p in test_dir.glob("*.rs") if p.with_suffix(".out").exists())


# ---------------------------------------------------------------------------
# Phase result + assertion checker
# ---------------------------------------------------------------------------


@dataclass
class PhaseResult:
    errors: list[str] = field(default_factory=list)
    data: dict | None = None
    stdout: str = ""


def resolve_dotpath(obj: object, path: str) -> object:
    """Resolve a dot-separated path against a nested dict/list structure."""
    current = obj
    for part in path.split("."):
        if part == "length":
            return len(current)
        if isinstance(current, list):
            current = current[int(part)]
        elif isinstance(current, dict):
            current = current[part]
        else:
            raise KeyError(
                f"cannot traverse {type(current).__name__} with key {part!r}"
            )
    return current


def to_comparable(value: object) -> str:
    """Convert a value to its string form for comparison."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def check_expected(expected: str, result: PhaseResult, phase: str) -> None:
    if expected == "ok":
        if result.errors:
            pytest.fail(f"Expected ok, got error: {result.errors[0]}")
        return
    if expected.startswith("error:"):
        expected_msg = expected[6:].strip()
        if not result.errors:
            pytest.fail(f"Expected error containing '{expected_msg}', got ok")
        found = any(expected_msg.lower() in e.lower() for e in result.errors)
        if expected_msg and not found:
            pytest.fail(
                f"Expected error containing '{expected_msg}', got: {result.errors}"
            )
        return
    if result.errors:
        pytest.fail(f"{phase} failed: {result.errors[0]}")
    if result.data is None:
        # Output assertions: expected is the exact stdout.
        assert result.stdout.rstrip("\n") == expected
        return
    for line in expected.split("\n"):
        line = line.strip()
        if not line:
            continue
        if "=" not in line:
            pytest.fail(f"Bad assertion (no '='): {line}")
        path, expected_val = line.split("=", 1)
        path = path.strip()
        expected_val = expected_val.strip()
        try:
            actual = resolve_dotpath(result.data, path)
        except (KeyError, IndexError, TypeError) as e:
            pytest.fail(f"Path '{path}' not found in result: {e}")
        actual_str = to_comparable(actual)
        if actual_str != expected_val:
            pytest.fail(
                f"Assertion failed: {path}\n"
                f"  expected: {expected_val!r}\n"
                f"  actual:   {actual_str!r}"
            )


# ---------------------------------------------------------------------------
# Phase runners
# ---------------------------------------------------------------------------


def _summarize(program: Program) -> dict:
    items = []
    for item in program.items:
        entry: dict = {"kind": type(item).__name__}
        for attr in ("name", "type_name"):
            if hasattr(item, attr):
                entry[attr] = getattr(item, attr)
        if hasattr(item, "fields"):
            entry["fields"] = [f.name for f in item.fields]
        if hasattr(item, "methods"):
            entry["methods"] = [
                {"name": m.name, "receiver": m.receiver, "ret": m.ret}
                for m in item.methods
            ]
        items.append(entry)
    return {"strict_moves": program.strict_moves, "items": items}


def run_scriptrust_parse(source: str) -> PhaseResult:
    try:
        signal.alarm(RUN_TIMEOUT)
        program = scriptrust_parse(source)
        return PhaseResult(data=_summarize(program))
    except ScriptRustError as e:
        return PhaseResult(errors=[str(e)])
    finally:
        signal.alarm(0)


def run_scriptrust_run(source: str) -> PhaseResult:
    try:
        signal.alarm(RUN_TIMEOUT)
        result = run_source(source)
        return PhaseResult(errors=[str(e) for e in result.errors], stdout=result.stdout)
    except ScriptRustError as e:
        return PhaseResult(errors=[str(e)])
    finally:
        signal.alarm(0)


RUNNERS = {
    "scriptrust_parse": run_scriptrust_parse,
    "scriptrust_run": run_scriptrust_run,
}


# ---------------------------------------------------------------------------
# Parametrization
# ---------------------------------------------------------------------------


def pytest_generate_tests(metafunc):
    for name, cfg in TESTS.items():
        test_dir = TESTS_DIR / cfg["dir"]
        run = cfg["run"]
        if run == "phase":
            fixture = f"{name}_input"
            if fixture in metafunc.fixturenames:
                specs = discover_specs(test_dir)
                params = [pytest.param(inp, exp, id=tid) for tid, inp, exp in specs]
                metafunc.parametrize(f"{fixture},{name}_expected", params)
        elif run == "scriptrust_app" and "scriptrust_app" in metafunc.fixturenames:
            apps = discover_scriptrust_apps(test_dir)
            params = [pytest.param(p, id=p.stem) for p in apps]
            metafunc.parametrize("scriptrust_app", params)


# ---------------------------------------------------------------------------
# Test functions
# ---------------------------------------------------------------------------


def test_scriptrust_parse(scriptrust_parse_input, scriptrust_parse_expected):
    check_expected(
        scriptrust_parse_expected,
        RUNNERS["scriptrust_parse"](scriptrust_parse_input),
        "scriptrust_parse",
    )


def test_scriptrust_run(scriptrust_run_input, scriptrust_run_expected):
    check_expected(
        scriptrust_run_expected,
        RUNNERS["scriptrust_run"](scriptrust_run_input),
        "scriptrust_run",
    )


def test_scriptrust_app(scriptrust_app: Path):
    """Run a corpus .rs program in-process and compare stdout with its .out file."""
    source = scriptrust_app.read_text()
    result = run_source(source)
    if result.errors:
        pytest.fail("\n".join(str(e) for e in result.errors))
    expected = scriptrust_app.with_suffix(".out").read_text()
    assert result.stdout == expected
