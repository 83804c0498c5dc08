# tests/test_functions.py
import textwrap

from pseudoflow.functions import extract_functions, parse_header
from pseudoflow.model import Block


def _src(s: str) -> str:
    return textwrap.dedent(s)


def test_parse_header():
    assert parse_header("Function sum(a, b)::") == ("sum", ["a", "b"])
    assert parse_header("Procedure greet()::") == ("greet", [])
    assert parse_header("def walk(node)") == ("walk", ["node"])
    assert parse_header("Call sum(1, 2)::") is None


def test_factorial_sample_splits_main_and_function(samples_dir):
    res = extract_functions((samples_dir / "factorial.flow").read_text(encoding="utf-8"))
    assert "Function" not in res.main_flow
    assert "End function" not in res.main_flow
    assert "Call factorial(n)::" in res.main_flow

    assert len(res.functions) == 1
    fn = res.functions[0]
    assert fn.name == "factorial"
    assert fn.parameters == ["n"]
    assert fn.source_line == 0
    assert fn.body[0] == Block("Parameter: n", 0, "input")
    assert fn.recursion is not None and fn.recursion.is_recursive


def test_one_parameter_block_per_parameter():
    res = extract_functions(_src("""\
        Function sum(a, b)::
            Return a + b::
    """))
    fn = res.functions[0]
    assert [b.content for b in fn.body[:2]] == ["Parameter: a", "Parameter: b"]
    assert all(b.block_type == "input" for b in fn.body[:2])
    assert fn.body[2].block_type == "return"
    assert fn.recursion.is_recursive is False
    assert fn.recursion.call_points == []
    assert res.main_flow.strip() == ""


def test_body_is_classified_with_implicit_else():
    res = extract_functions(_src("""\
        Function clamp(x)::
            If x > 10::
                Return 10::
            End if::
            Return x::
    """))
    body = res.functions[0].body
    kinds = [b.block_type for b in body]
    assert kinds == ["input", "condition", "return", "implicit-else", "process", "return"]
    # the body is dedented: the first statement is at level 0
    assert body[1].indent_level == 0


def test_header_without_indented_body_leaves_main_flow_alone():
    res = extract_functions(_src("""\
        Function noop()::
        Start::
        End::
    """))
    assert res.functions[0].parameters == []
    assert res.functions[0].body == ()
    assert res.main_flow.splitlines() == ["Start::", "End::"]


def test_mutual_partners_are_detected():
    res = extract_functions(_src("""\
        Function isEven(n)::
            If n == 0::
                Return true::
            End if::
            Return isOdd(n-1)::

        Function isOdd(n)::
            If n == 0::
                Return false::
            End if::
            Return isEven(n-1)::
    """))
    names = [fn.name for fn in res.functions]
    assert names == ["isEven", "isOdd"]
    for fn in res.functions:
        assert fn.recursion.is_recursive
        assert fn.recursion.recursion_type == "mutual"
    assert res.functions[0].recursion.call_points[0].callee == "isOdd"
