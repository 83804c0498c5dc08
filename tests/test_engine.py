# tests/test_engine.py
import asyncio
import textwrap

import pytest

from pseudoflow.engine import (
    EngineFault,
    EngineOptions,
    Event,
    ExecutionEngine,
    ExecutionState,
    transition,
)
from pseudoflow.lexer import classify_lines
from pseudoflow.cfg import build_graph
from pseudoflow.oracle import ComparisonOracle, DecisionOracle, FixedOracle, ScriptedOracle
from pseudoflow.pipeline import compile_file, compile_pseudocode
from pseudoflow.scheduler import AsyncioScheduler, ManualScheduler


def _engine(text, **kw):
    return ExecutionEngine(compile_pseudocode(textwrap.dedent(text)).main, **kw)


def _actions(engine):
    return [e.action for e in engine.execution_log]


def test_set_speed_is_clamped(grades_text):
    engine = _engine(grades_text)
    assert engine.set_speed(50) == 100
    assert engine.set_speed(5000) == 2000
    assert engine.set_speed(750) == 750
    assert engine.state.speed_ms == 750


def test_reset_discards_log_and_state(grades_text):
    engine = _engine(grades_text)
    for _ in range(3):
        engine.step()
    assert len(engine.execution_log) == 3
    engine.reset()
    assert engine.execution_log == []
    assert engine.state.current_block_index is None
    assert engine.state.phase == "not-started"


def test_start_without_start_block_is_a_fault():
    engine = ExecutionEngine(build_graph(classify_lines("Output 1::\nEnd::\n")))
    with pytest.raises(EngineFault):
        engine.start()
    with pytest.raises(EngineFault):
        engine.step()


def test_start_executes_the_start_block(grades_text):
    engine = _engine(grades_text)
    state = engine.start()
    assert state.phase == "running"
    assert state.current_block_index == 1
    assert state.execution_path == (0,)
    log = engine.execution_log
    assert len(log) == 1
    assert (log[0].block_index, log[0].action) == (0, "enter")


def test_step_from_not_started_begins_paused(grades_text):
    engine = _engine(grades_text)
    state = engine.step()
    assert state.is_paused
    assert state.current_block_index == 1
    assert engine.scheduler.pending == 0


def test_yes_and_no_paths(grades_text):
    yes = _engine(grades_text, oracle=FixedOracle("yes"))
    state = yes.run_until_complete()
    assert state.is_complete
    assert state.execution_path == (0, 1, 2, 3, 5, 6)
    assert _actions(yes) == ["enter", "enter", "branch", "enter", "enter", "exit"]
    assert yes.execution_log[2].details == "yes"

    no = _engine(grades_text, oracle=FixedOracle("no"))
    assert no.run_until_complete().execution_path == (0, 1, 2, 4, 5, 6)


def test_comparison_oracle_reads_variables(grades_text):
    hi = _engine(grades_text, oracle=ComparisonOracle({"grade": 95}))
    assert 3 in hi.run_until_complete().visited_blocks
    lo = _engine(grades_text, oracle=ComparisonOracle({"grade": 80}))
    assert 3 not in lo.run_until_complete().visited_blocks


def test_acyclic_call_free_graph_completes_within_block_count(grades_text):
    engine = _engine(grades_text, oracle=FixedOracle("no"))
    steps = 0
    while not engine.state.is_complete:
        engine.step()
        steps += 1
    assert steps <= len(engine.graph.blocks)


def test_loop_runs_a_bounded_number_of_iterations(samples_dir):
    engine = ExecutionEngine(compile_file(samples_dir / "countdown.flow").main)
    state = engine.run_until_complete()
    assert state.is_complete
    assert state.execution_path.count(2) == 4
    assert state.execution_path.count(3) == 3
    assert state.loop_counters == {}
    details = [e.details for e in engine.execution_log if e.action == "loop"]
    assert details == ["iteration 1", "iteration 2", "iteration 3", "loop complete"]
    # the loop exits past its body
    assert state.execution_path[-3:] == (5, 6, 7)


def test_loop_bound_is_configurable(samples_dir):
    engine = ExecutionEngine(compile_file(samples_dir / "countdown.flow").main,
                             options=EngineOptions(loop_iterations=1))
    assert engine.run_until_complete().execution_path.count(3) == 1


def test_call_pushes_and_end_pops_a_frame(samples_dir):
    engine = ExecutionEngine(compile_file(samples_dir / "factorial.flow").main)
    seen_depths = []
    engine.subscribe(on_state=lambda s: seen_depths.append(len(s.call_stack)))
    state = engine.run_until_complete()
    assert state.is_complete
    assert state.call_stack == ()
    assert max(seen_depths) == 1
    calls = [e for e in engine.execution_log if e.action == "call"]
    assert [c.details for c in calls] == ["factorial"]
    assert "return" in _actions(engine)
    assert state.execution_path == (0, 1, 2, 3, 4, 3, 4)


def test_switch_case_selection():
    engine = _engine("""\
        Start::
        Switch color::
            Case red::
                Output "stop"::
            Case green::
                Output "go"::
        End switch::
        End::
    """, oracle=FixedOracle("yes", case=1))
    state = engine.run_until_complete()
    assert 4 in state.visited_blocks and 2 not in state.visited_blocks
    branch = [e for e in engine.execution_log if e.action == "branch"][0]
    assert branch.details == "Case green"


def test_scripted_oracle_replays_answers():
    engine = _engine("""\
        Start::
        If a::
            Output 1::
        End if::
        If b::
            Output 2::
        End if::
        End::
    """, oracle=ScriptedOracle(["no", "yes"]))
    state = engine.run_until_complete()
    outputs = [engine.graph.blocks[i].content for i in state.execution_path
               if engine.graph.blocks[i].block_type == "output"]
    assert outputs == ["Output 2"]


def test_timer_driven_run_with_pause_and_resume(grades_text):
    sched = ManualScheduler()
    engine = _engine(grades_text, scheduler=sched)
    engine.start()
    assert len(engine.execution_log) == 1

    sched.advance(499)
    assert len(engine.execution_log) == 1
    sched.advance(1)
    assert len(engine.execution_log) == 2

    engine.pause()
    sched.advance(5000)
    assert len(engine.execution_log) == 2
    assert engine.state.is_paused

    engine.resume()
    sched.advance(500)
    assert len(engine.execution_log) == 3

    sched.advance(10_000)
    assert engine.state.is_complete
    assert sched.pending == 0


def test_speed_change_applies_to_the_next_tick(grades_text):
    sched = ManualScheduler()
    engine = _engine(grades_text, scheduler=sched)
    engine.start()
    engine.set_speed(1000)
    sched.advance(500)              # already scheduled at the old speed
    assert len(engine.execution_log) == 2
    sched.advance(999)
    assert len(engine.execution_log) == 2
    sched.advance(1)
    assert len(engine.execution_log) == 3


def test_start_while_running_is_ignored(grades_text):
    sched = ManualScheduler()
    engine = _engine(grades_text, scheduler=sched)
    engine.start()
    sched.advance(500)
    before = engine.state
    assert engine.start() is before
    assert sched.pending == 1


def test_subscribers_and_unsubscribe(grades_text):
    engine = _engine(grades_text)
    states, entries = [], []
    unsubscribe = engine.subscribe(on_state=states.append, on_log=entries.append)
    engine.step()
    engine.step()
    assert len(states) == 2 and len(entries) == 2
    unsubscribe()
    engine.step()
    assert len(states) == 2 and len(entries) == 2


def test_transition_is_pure(grades_text):
    graph = compile_pseudocode(grades_text).main
    opts = EngineOptions()
    s0 = ExecutionState()
    s1, out1 = transition(graph, s0, Event("start"), oracle=DecisionOracle(), options=opts)
    s2, out2 = transition(graph, s1, Event("tick"), oracle=DecisionOracle(), options=opts)
    assert s0 == ExecutionState()
    assert s1.current_block_index == 1 and s2.current_block_index == 2
    assert [e.block_index for e in out1 + out2] == [0, 1]
    again, _ = transition(graph, s1, Event("tick"), oracle=DecisionOracle(), options=opts)
    assert again == s2


def test_run_until_complete_gives_up(grades_text):
    engine = _engine(grades_text)
    with pytest.raises(EngineFault):
        engine.run_until_complete(max_ticks=2)


def test_asyncio_scheduler_drives_the_engine(grades_text):
    async def run():
        engine = _engine(grades_text, scheduler=AsyncioScheduler(),
                         options=EngineOptions(speed_ms=1, min_speed_ms=1))
        engine.start()
        for _ in range(500):
            if engine.state.is_complete:
                break
            await asyncio.sleep(0.01)
        return engine

    engine = asyncio.run(run())
    assert engine.state.is_complete
    assert engine.execution_log[-1].action == "exit"


def test_loop_body_ending_in_a_call_keeps_looping():
    engine = _engine("""\
        Start::
        While i > 0::
            Call tick(i)::
        End while::
        End::
    """)
    state = engine.run_until_complete()
    assert state.is_complete
    assert state.loop_counters == {}
    assert state.execution_path.count(2) == 3
    details = [e.details for e in engine.execution_log if e.action == "loop"]
    assert details == ["iteration 1", "iteration 2", "iteration 3", "loop complete"]
    assert _actions(engine).count("call") == 3
    assert _actions(engine).count("return") == 3


def test_nested_loops_sharing_their_last_block():
    engine = _engine("""\
        Start::
        While a::
            While b::
                Output x::
        End::
    """)
    state = engine.run_until_complete()
    assert state.is_complete
    assert state.execution_path.count(3) == 9
    assert state.loop_counters == {}
    assert state.execution_path[-2:] == (1, 4)


def test_nested_loops_with_outer_body_after_inner():
    engine = _engine("""\
        Start::
        For i in 1..2::
            For j in 1..2::
                Output j::
            Increment i::
        End::
    """)
    state = engine.run_until_complete()
    assert state.execution_path.count(3) == 9
    assert state.execution_path.count(4) == 3
    assert state.loop_counters == {}


def test_unmarked_if_at_the_end_of_a_loop_body_stays_in_the_loop():
    text = """\
        Start::
        While i > 0::
            Output i::
            If i > 5::
                Output "big"::
        End::
    """
    yes = _engine(text, oracle=FixedOracle("yes"))
    state = yes.run_until_complete()
    assert state.execution_path.count(4) == 3
    assert state.execution_path[-2:] == (1, 6)
    assert state.loop_counters == {}

    no = _engine(text, oracle=FixedOracle("no"))
    state = no.run_until_complete()
    assert state.execution_path.count(5) == 3
    assert 4 not in state.visited_blocks
    assert state.loop_counters == {}
