# tests/test_lexer.py
import textwrap

from pseudoflow.lexer import classify_lines, detect_block_type, strip_terminator


def _src(s: str) -> str:
    return textwrap.dedent(s)


def test_grades_program_types_and_levels(grades_text):
    blocks = classify_lines(grades_text)
    assert [b.block_type for b in blocks] == ["start", "input", "condition", "output", "process", "end"]
    assert [b.indent_level for b in blocks] == [0, 0, 0, 1, 0, 0]
    assert blocks[3].content == 'Output "A"'
    # "End if" is an end marker, not the program end
    assert blocks[4].content == "End if"
    assert blocks[4].is_closing is True


def test_terminator_is_optional():
    assert strip_terminator("Output x::") == "Output x"
    assert strip_terminator("  Output x  ") == "Output x"
    assert [b.content for b in classify_lines("Start\nOutput x::\nEnd")] == ["Start", "Output x", "End"]


def test_detect_block_type_table():
    cases = {
        "Start": "start",
        "Begin": "start",
        "End": "end",
        "Stop": "end",
        "Function area(w, h)": "function-def",
        "Else if x > 1": "else-if",
        "Elif x > 1": "else-if",
        "If x > 1": "condition",
        "Else": "condition",
        "Switch color": "switch",
        "Case red": "case",
        "Default": "case",
        "While x < 3": "loop",
        "For i in 1..3": "loop",
        "Input name": "input",
        "Get x": "input",
        "Print x": "output",
        "Display total": "output",
        "Return x": "return",
        "Call foo(1)": "function",
        "// a note": "comment",
        "break": "connector",
        "x = 1": "process",
        "End if": "process",
    }
    for text, expected in cases.items():
        assert detect_block_type(text) == expected, text


def test_closing_flag():
    blocks = classify_lines("If a::\n    x::\nElse::\n    y::\nEnd if::\n")
    assert [b.is_closing for b in blocks] == [False, False, True, False, True]


def test_nested_else_lands_on_its_if_level():
    blocks = classify_lines(_src("""\
        If a::
            If b::
                Output 1::
            Else::
                Output 2::
            End if::
        Else::
            Output 3::
        End if::
    """))
    assert [b.indent_level for b in blocks] == [0, 1, 2, 1, 2, 1, 0, 1, 0]
    assert blocks[3].content == "Else" and blocks[3].block_type == "condition"
    assert blocks[6].content == "Else" and blocks[6].indent_level == 0


def test_else_if_shares_level_with_if():
    blocks = classify_lines(_src("""\
        If x > 0::
            Output "pos"::
        Else if x < 0::
            Output "neg"::
        End if::
    """))
    assert [(b.block_type, b.indent_level) for b in blocks] == [
        ("condition", 0), ("output", 1), ("else-if", 0), ("output", 1), ("process", 0),
    ]


def test_tabs_count_as_four_columns():
    blocks = classify_lines("If a::\n\tOutput 1::\n    Output 2::\n")
    assert [b.indent_level for b in blocks] == [0, 1, 1]


def test_blank_lines_are_skipped():
    blocks = classify_lines("Start::\n\n   \nEnd::\n")
    assert len(blocks) == 2


def test_parsing_is_pure_and_levels_never_negative():
    text = "        a\n b\nelse\n  c\ncase x\ndefault\n\t\t d\nend\n"
    first = classify_lines(text)
    second = classify_lines(text)
    assert first == second
    assert all(b.indent_level >= 0 for b in first)


def test_unknown_lines_become_process():
    blocks = classify_lines("Frobnicate the widget::")
    assert blocks[0].block_type == "process"


def test_case_lines_share_their_switch_level():
    top = classify_lines(_src("""\
        Switch c::
            Case 1::
                Output a::
            Case 2::
                Output b::
        End switch::
    """))
    assert [b.indent_level for b in top] == [0, 0, 1, 0, 1, 0]

    nested = classify_lines(_src("""\
        While x::
            Switch c::
                Case 1::
                    Output a::
                Case 2::
                    Output b::
            End switch::
        End while::
    """))
    assert [b.indent_level for b in nested] == [0, 1, 1, 2, 1, 2, 1, 0]
