# pseudoflow/cli.py
# CLI for compiling pseudocode into flow graphs and simulating them.

from __future__ import annotations

import argparse
import datetime as _dt
import hashlib
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from .engine import EngineOptions, ExecutionEngine
from .export import to_document, to_dot, validate_document
from .oracle import ComparisonOracle, DecisionOracle, FixedOracle, RandomOracle
from .pipeline import compile_pseudocode

log = logging.getLogger(__name__)


def _now_utc_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _load_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _parse_inputs(pairs: Optional[List[str]]) -> Dict[str, Any]:
    """KEY=VALUE (repeatable, or comma separated) -> typed dict."""
    inputs: Dict[str, Any] = {}
    for item in pairs or []:
        for kv in item.split(","):
            kv = kv.strip()
            if "=" not in kv:
                continue
            k, v = kv.split("=", 1)
            vl = v.strip()
            vv: Any
            if len(vl) >= 2 and ((vl[0] == vl[-1] == '"') or (vl[0] == vl[-1] == "'")):
                vv = vl[1:-1]
            elif vl.lower() in ("true", "false"):
                vv = vl.lower() == "true"
            else:
                try:
                    vv = int(vl)
                except ValueError:
                    try:
                        vv = float(vl)
                    except ValueError:
                        vv = vl
            inputs[k.strip()] = vv
    return inputs


def _make_oracle(kind: str, seed: Optional[int], inputs: Dict[str, Any]) -> DecisionOracle:
    if kind == "no":
        return FixedOracle("no")
    if kind == "random":
        return RandomOracle(seed)
    if kind == "compare":
        return ComparisonOracle(inputs, fallback=RandomOracle(seed) if seed is not None else DecisionOracle())
    return FixedOracle("yes")


def _print_blocks(title: str, blocks) -> None:
    print(title)
    for i, b in enumerate(blocks):
        flag = " *" if b.is_recursive_call else ""
        print(f"  {i:>3}  {'  ' * b.indent_level}[{b.block_type}] {b.content}{flag}")


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(
        prog="pseudoflow",
        description="Compile pseudocode into a flow graph; validate, export and simulate it.",
    )
    p.add_argument("file", nargs="?", help="Path to a pseudocode file.")
    p.add_argument("--print-blocks", action="store_true", help="Print the classified main-flow blocks.")
    p.add_argument("--print-graph", action="store_true", help="Print the graph document JSON.")
    p.add_argument("--print-functions", action="store_true", help="Print functions with recursion metadata.")
    p.add_argument("--validate", action="store_true", help="Print validation errors and warnings.")
    p.add_argument("--strict", action="store_true", help="Exit 1 when validation reports errors.")
    p.add_argument("--graph-dot", metavar="PATH", help="Write the main graph as Graphviz DOT to PATH.")
    p.add_argument("--emit-json", metavar="PATH", help="Write the graph document (schema-checked) to PATH.")
    p.add_argument("--simulate", action="store_true", help="Run the execution engine to completion.")
    p.add_argument("--oracle", choices=("yes", "no", "random", "compare"), default="yes",
                   help="How conditions are decided during simulation (default: yes).")
    p.add_argument("--seed", type=int, default=None, help="Seed for --oracle random.")
    p.add_argument("--in", dest="inputs", action="append", default=None,
                   help="Variable KEY=VALUE for --oracle compare (repeatable).")
    p.add_argument("--max-ticks", type=int, default=1000)
    p.add_argument("--speed", type=int, default=None, help="Tick interval in ms (clamped to 100..2000).")
    p.add_argument("--print-log", action="store_true", help="Print the execution log.")
    p.add_argument("--receipt-out", metavar="PATH", help="Write the run receipt to PATH (JSON).")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.file:
        p.error("pseudocode file required (e.g., samples/grades.flow)")

    path = Path(args.file)
    if not path.is_file():
        p.error(f"file not found: {path}")

    text = _load_text(path)
    h = hashlib.sha256(text.encode("utf-8")).hexdigest()
    base = {
        "engine": "pseudoflow",
        "module": {"path": str(path), "hash": f"sha256:{h}"},
        "run": {"timestamp": _now_utc_iso(), "uuid": str(uuid.uuid4())},
    }

    def write_receipt(obj: Dict[str, Any]) -> None:
        if args.receipt_out:
            Path(args.receipt_out).write_text(json.dumps(obj, indent=2, sort_keys=True), encoding="utf-8")
            print(f"Wrote receipt: {args.receipt_out}")

    engine: Optional[ExecutionEngine] = None
    try:
        program = compile_pseudocode(text)
        receipt: Dict[str, Any] = {
            **base,
            "status": "ok",
            "summary": {
                "blocks": len(program.main.blocks),
                "edges": len(program.main.edges),
                "functions": [fn.name for fn in program.functions],
            },
            "validation": program.validation.to_dict(),
        }

        if args.print_blocks:
            _print_blocks("main:", program.main.blocks)
        if args.print_functions:
            print(json.dumps([fn.to_dict() for fn in program.functions], indent=2, sort_keys=True))
        if args.validate:
            for e in program.validation.errors:
                print(f"error: {e}")
            for w in program.validation.warnings:
                print(f"warning: {w}")
            if program.validation.is_valid:
                print("valid")

        doc = to_document(program)
        if args.print_graph:
            print(json.dumps(doc, indent=2, sort_keys=True))
        if args.emit_json:
            validate_document(doc)
            Path(args.emit_json).write_text(json.dumps(doc, indent=2, sort_keys=True), encoding="utf-8")
            print(f"Wrote graph: {args.emit_json}")
        if args.graph_dot:
            Path(args.graph_dot).write_text(to_dot(program.main, name=path.stem), encoding="utf-8")
            print(f"Wrote DOT: {args.graph_dot}")

        if args.strict and not program.validation.is_valid:
            receipt["status"] = "invalid"
            write_receipt(receipt)
            return 1

        if args.simulate:
            inputs = _parse_inputs(args.inputs)
            options = EngineOptions(speed_ms=args.speed) if args.speed is not None else EngineOptions()
            engine = ExecutionEngine(program.main, oracle=_make_oracle(args.oracle, args.seed, inputs),
                                     options=options)
            final = engine.run_until_complete(max_ticks=args.max_ticks)
            receipt["oracle"] = args.oracle
            receipt["inputs"] = inputs
            receipt["log"] = [e.to_dict() for e in engine.execution_log]
            receipt["state"] = final.to_dict()
            if args.print_log:
                for e in engine.execution_log:
                    detail = f" ({e.details})" if e.details else ""
                    print(f"[{e.block_index}] {e.action}: {e.block_content}{detail}")

        write_receipt(receipt)
        return 0

    except Exception as e:
        log.debug("run failed", exc_info=True)
        err = {**base, "status": "error", "reason": str(e)}
        if engine is not None:
            err["log"] = [x.to_dict() for x in engine.execution_log]
            err["state"] = engine.state.to_dict()
        print(json.dumps(err, indent=2, sort_keys=True))
        write_receipt(err)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
