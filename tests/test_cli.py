# tests/test_cli.py
import json
import textwrap

from pseudoflow.cli import _parse_inputs, main


def _write(tmp_path, name, text):
    p = tmp_path / name
    p.write_text(textwrap.dedent(text), encoding="utf-8")
    return p


def test_receipt_for_a_clean_compile(tmp_path, samples_dir, capsys):
    out = tmp_path / "receipt.json"
    rc = main([str(samples_dir / "grades.flow"), "--receipt-out", str(out)])
    assert rc == 0
    receipt = json.loads(out.read_text(encoding="utf-8"))
    assert receipt["status"] == "ok"
    assert receipt["engine"] == "pseudoflow"
    assert receipt["module"]["hash"].startswith("sha256:")
    assert receipt["summary"] == {"blocks": 7, "edges": 7, "functions": []}
    assert receipt["validation"]["isValid"] is True
    assert "log" not in receipt
    assert f"Wrote receipt: {out}" in capsys.readouterr().out


def test_simulate_adds_log_and_state(tmp_path, samples_dir):
    out = tmp_path / "receipt.json"
    rc = main([str(samples_dir / "grades.flow"), "--simulate", "--oracle", "compare",
               "--in", "grade=80", "--receipt-out", str(out)])
    assert rc == 0
    receipt = json.loads(out.read_text(encoding="utf-8"))
    assert receipt["inputs"] == {"grade": 80}
    assert receipt["state"]["isComplete"] is True
    assert receipt["state"]["executionPath"] == [0, 1, 2, 4, 5, 6]
    assert [e["action"] for e in receipt["log"]][-1] == "exit"


def test_validate_prints_diagnostics(tmp_path, capsys):
    src = _write(tmp_path, "open.flow", """\
        Start::
        If a::
            Output 1::
        End::
    """)
    assert main([str(src), "--validate"]) == 0
    out = capsys.readouterr().out
    assert "error: 1 unclosed conditional(s)" in out


def test_strict_fails_an_invalid_program(tmp_path):
    src = _write(tmp_path, "nostart.flow", "Output 1::\nEnd::\n")
    out = tmp_path / "receipt.json"
    assert main([str(src), "--strict", "--receipt-out", str(out)]) == 1
    receipt = json.loads(out.read_text(encoding="utf-8"))
    assert receipt["status"] == "invalid"
    assert "Missing START block" in receipt["validation"]["errors"]


def test_simulation_fault_writes_an_error_receipt(tmp_path, capsys):
    src = _write(tmp_path, "nostart.flow", "Output 1::\nEnd::\n")
    out = tmp_path / "receipt.json"
    assert main([str(src), "--simulate", "--receipt-out", str(out)]) == 1
    receipt = json.loads(out.read_text(encoding="utf-8"))
    assert receipt["status"] == "error"
    assert "START" in receipt["reason"]
    assert '"status": "error"' in capsys.readouterr().out


def test_emit_json_and_dot(tmp_path, samples_dir):
    doc_path = tmp_path / "graph.json"
    dot_path = tmp_path / "graph.dot"
    rc = main([str(samples_dir / "countdown.flow"),
               "--emit-json", str(doc_path), "--graph-dot", str(dot_path)])
    assert rc == 0
    doc = json.loads(doc_path.read_text(encoding="utf-8"))
    assert any(e["type"] == "loop-back" for e in doc["edges"])
    assert dot_path.read_text(encoding="utf-8").startswith('digraph "countdown" {')


def test_parse_inputs_types_values():
    assert _parse_inputs(["n=5,name='ann'", "ok=true", "x=2.5", "bad"]) == {
        "n": 5, "name": "ann", "ok": True, "x": 2.5,
    }
