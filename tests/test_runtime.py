"""Interpreter tests through the public API."""

import logging

import pytest

from scriptrust import (
    Interpreter,
    ParseError,
    ScriptRuntimeError,
    parse,
    run,
    run_source,
)
from scriptrust.values import VStruct

COUNTER = """
struct Counter { count: f64 }
impl Counter {
    fn new() -> Self { }
    fn bump(&mut self) { self.count = self.count + 1; }
}
"""


def test_constructor_with_empty_body_zero_fills(run_lines):
    source = COUNTER + 'println!("{:?}", Counter::new());'
    assert run_lines(source) == ["Counter { count: 0 }"]


def test_let_aliases_struct_instances(run_lines):
    source = COUNTER + """
let a = Counter::new();
let b = a;
b.bump();
b.bump();
println!("{:?} {:?}", a.count, b.count);
"""
    assert run_lines(source) == ["2 2"]


def test_alias_passed_to_function_is_shared(run_lines):
    source = COUNTER + """
fn touch(c: Counter) { c.bump(); }
let a = Counter::new();
touch(a);
touch(a);
println!("{:?}", a.count);
"""
    assert run_lines(source) == ["2"]


def test_errors_do_not_stop_later_items():
    result = run_source(
        """
println!("{:?}", 1);
println!("{:?}", missing);
println!("{:?}", 3);
"""
    )
    assert not result.ok
    assert result.lines == ["1", "3"]
    assert len(result.errors) == 1
    err = result.errors[0]
    assert isinstance(err, ScriptRuntimeError)
    assert err.pos.line == 3


def test_stop_on_first_error():
    with pytest.raises(ScriptRuntimeError, match="unknown identifier 'missing'"):
        run_source("let x = missing;", continue_on_error=False)


def test_strict_moves_keyword_overrides_default():
    source = COUNTER + """
let a = Counter::new();
let b = a;
println!("{:?}", a.count);
"""
    assert run_source(source).ok
    strict = run_source(source, strict_moves=True)
    assert [e.msg for e in strict.errors] == ["use of moved value 'a'"]


def test_pragma_sets_program_flag():
    program = parse("// pragma strict-moves\nlet x = 1;")
    assert program.strict_moves
    assert not parse("let x = 1;\n// pragma strict-moves").strict_moves
    assert run(program, strict_moves=False).ok


def test_moved_flag_tracked_without_strict_mode():
    interp = Interpreter()
    interp.run_program(parse(COUNTER + "let a = Counter::new();\nlet b = a;"))
    assert interp.globals.is_moved("a")
    assert not interp.globals.is_moved("b")
    assert interp.globals.get("a") is interp.globals.get("b")
    assert isinstance(interp.globals.get("b"), VStruct)


def test_registration_errors_propagate():
    with pytest.raises(ScriptRuntimeError, match="duplicate struct 'A'"):
        run_source("struct A { }\nstruct A { }")


def test_parse_errors_propagate():
    with pytest.raises(ParseError) as exc:
        run_source("let x = ;")
    assert exc.value.expected == "expression"
    assert exc.value.found == ";"


def test_runtime_errors_are_logged(caplog):
    with caplog.at_level(logging.ERROR, logger="scriptrust"):
        run_source("let x = missing;")
    assert "unknown identifier 'missing'" in caplog.text


def test_print_joins_debug_renders(run_lines):
    assert run_lines('println!("{} and {}", "x", 2);') == ['"x" 2']


def test_circle_scenario(app_source, run_lines):
    lines = run_lines(app_source("classes"))
    assert lines[0] == '"Circle - Radius:" 5'
    assert lines[1] == '"Circle - Area:" 78.53975'
    assert lines[2] == '"Circle - Circumference:" 31.4159'


def test_rectangle_scenario(app_source, run_lines):
    lines = run_lines(app_source("classes"))
    assert lines[3:] == [
        '"Rectangle - Width:" 4 "Height:" 6',
        '"Rectangle - Area:" 24',
        '"Rectangle - Perimeter:" 14',
    ]


def test_ownership_scenario(app_source, run_lines):
    lines = run_lines(app_source("ownership"))
    assert lines[0] == '"Resource created:" "DB-Connection-1"'
    assert lines[-1] == '"Resource released:" "DB-Connection-1" "- refs:" -1'


def test_hello_scenario(app_source, run_lines):
    assert run_lines(app_source("hello"))[-1] == '"Hello, Developer!"'


def test_terminated_final_statement_yields_unit(run_lines):
    source = """
fn bare() -> f64 { 5 }
fn terminated() -> f64 { 5; }
println!("{:?}", bare());
println!("{:?}", terminated());
"""
    assert run_lines(source) == ["5", ""]


def test_panic_aborts_only_its_item():
    result = run_source('panic!("stop");\nprintln!("{:?}", "after");')
    assert [e.msg for e in result.errors] == ["panicked: stop"]
    assert result.lines == ['"after"']


def test_deep_nesting_is_a_parse_error():
    source = "let x = " + "(" * 500 + "1" + ")" * 500 + ";"
    with pytest.raises(ParseError, match="shallower nesting"):
        parse(source)
