# tests/test_comparatives.py
from pseudoflow.comparatives import evaluate, parse_comparative

def test_at_least_ge():
    assert parse_comparative("when score is at least 90") == ("score", ">=", 90)

def test_at_most_le():
    assert parse_comparative("tries are at most 3") == ("tries", "<=", 3)

def test_greater_than_gt():
    assert parse_comparative("age > 18") == ("age", ">", 18)

def test_fewer_than_lt():
    assert parse_comparative("count fewer than 5") == ("count", "<", 5)

def test_equals_200():
    assert parse_comparative("status equals 200") == ("status", "==", 200)

def test_is_not_ne():
    assert parse_comparative("unless status is not 200:") == ("status", "!=", 200)

def test_string_rhs():
    assert parse_comparative("env equal to 'prod'") == ("env", "==", "prod")

def test_condition_lines():
    assert parse_comparative("If grade >= 90") == ("grade", ">=", 90)
    assert parse_comparative("Else if n <= 1 then") == ("n", "<=", 1)
    assert parse_comparative("while (i > 0)") == ("i", ">", 0)

def test_pseudocode_spellings():
    assert parse_comparative("x = 3") == ("x", "==", 3)
    assert parse_comparative("a <> b") == ("a", "!=", "b")
    assert parse_comparative("delta < -1") == ("delta", "<", -1)

def test_null_and_dotted_names():
    assert parse_comparative("if node.left is null") == ("node.left", "==", None)

def test_not_a_comparative():
    assert parse_comparative("Output x") is None
    assert parse_comparative("") is None

def test_evaluate_against_env():
    comp = parse_comparative("grade >= 90")
    assert evaluate(comp, {"grade": 95}) is True
    assert evaluate(comp, {"grade": 80}) is False
    assert evaluate(comp, {}) is None

def test_evaluate_resolves_right_hand_names():
    assert evaluate(("a", "<", "b"), {"a": 1, "b": 2}) is True
    # unbound right side stays a string; int < str cannot be decided
    assert evaluate(("a", "<", "x"), {"a": 1}) is None
