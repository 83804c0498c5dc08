# pseudoflow/engine.py
# Steppable simulation over a FlowGraph.
#
#   transition(graph, state, event, ...) -> (state, log entries)   pure
#   ExecutionEngine                                               owns the one
#       mutable state cell, the scheduler handle, the log and the subscribers
#
# Phases: not-started -> running <-> paused -> completed; reset goes back to
# not-started from anywhere. Branch outcomes come from a DecisionOracle.
#
# Calls are bookkeeping only: a call pushes a frame and execution continues
# with the next block; the next end/return pops the frame and jumps back to
# the block after the call.

from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .model import Block, Connection, FlowGraph
from .names import callee_of
from .oracle import DecisionOracle
from .scheduler import ManualScheduler, Scheduler, TimerHandle
from .structure import is_open_condition, scan_loop

log = logging.getLogger(__name__)

# ---- Config ----

EVENTS = ("start", "tick", "pause", "resume", "reset", "set-speed")


class EngineFault(RuntimeError):
    pass


@dataclass(frozen=True)
class EngineOptions:
    speed_ms: int = 500
    loop_iterations: int = 3
    min_speed_ms: int = 100
    max_speed_ms: int = 2000

    def clamp_speed(self, ms: float) -> int:
        return int(max(self.min_speed_ms, min(self.max_speed_ms, ms)))

# ----------------------------
# State and log
# ----------------------------

@dataclass(frozen=True)
class CallStackFrame:
    function_name: str
    return_block_index: Optional[int]
    local_context: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "functionName": self.function_name,
            "returnBlockIndex": self.return_block_index,
            "localContext": dict(self.local_context),
        }


@dataclass(frozen=True)
class ExecutionLogEntry:
    timestamp: float
    block_index: int
    block_content: str
    block_type: str
    action: str
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "blockIndex": self.block_index,
            "blockContent": self.block_content,
            "blockType": self.block_type,
            "action": self.action,
            "details": self.details,
        }


@dataclass(frozen=True)
class ExecutionState:
    current_block_index: Optional[int] = None
    visited_blocks: FrozenSet[int] = frozenset()
    execution_path: Tuple[int, ...] = ()
    call_stack: Tuple[CallStackFrame, ...] = ()
    loop_counters: Mapping[int, int] = field(default_factory=dict)
    phase: str = "not-started"
    speed_ms: int = 500

    @property
    def is_paused(self) -> bool:
        return self.phase == "paused"

    @property
    def is_complete(self) -> bool:
        return self.phase == "completed"

    @property
    def is_running(self) -> bool:
        return self.phase == "running"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentBlockIndex": self.current_block_index,
            "visitedBlocks": sorted(self.visited_blocks),
            "executionPath": list(self.execution_path),
            "callStack": [f.to_dict() for f in self.call_stack],
            "loopCounters": {str(k): v for k, v in sorted(self.loop_counters.items())},
            "isPaused": self.is_paused,
            "isComplete": self.is_complete,
            "phase": self.phase,
            "speedMs": self.speed_ms,
        }


@dataclass(frozen=True)
class Event:
    kind: str
    value: Optional[float] = None    # set-speed: requested milliseconds
    paused: bool = False             # start: begin in the paused phase

# ----------------------------
# Pure transition
# ----------------------------

def _forward_edges(graph: FlowGraph, index: int) -> List[Connection]:
    return [e for e in graph.outgoing(index) if e.type != "loop-back"]


def _entry(now: float, index: int, block: Block, action: str, details: Optional[str] = None) -> ExecutionLogEntry:
    return ExecutionLogEntry(now, index, block.content, block.block_type, action, details)


def _visit(state: ExecutionState, index: int) -> ExecutionState:
    return replace(
        state,
        visited_blocks=state.visited_blocks | {index},
        execution_path=state.execution_path + (index,),
    )


def _move(state: ExecutionState, target: Optional[int]) -> ExecutionState:
    if target is None:
        return replace(state, phase="completed")
    return replace(state, current_block_index=target)


def _first_target(edges: List[Connection]) -> Optional[int]:
    return edges[0].to_index if edges else None


def _live_loop_back(graph: FlowGraph, state: ExecutionState, index: int) -> Optional[int]:
    """Target of the innermost still-counting loop this block jumps back to, if any."""
    live = [e for e in graph.outgoing(index)
            if e.type == "loop-back" and e.to_index in state.loop_counters]
    if not live:
        return None
    return max(live, key=lambda e: e.depth or 0).to_index


def _exit_loop(graph: FlowGraph, state: ExecutionState, index: int) -> Tuple[ExecutionState, Optional[int]]:
    bounds = scan_loop(graph.blocks, index)
    stop = bounds.close if bounds.close is not None else len(graph.blocks)
    # the loop and every loop nested in its body start over next time
    counters = {k: v for k, v in state.loop_counters.items() if not (index <= k < stop)}
    state = replace(state, loop_counters=counters)
    # leave from the body end; an empty body leaves from the loop block itself
    exit_from = bounds.end if bounds.end is not None else index
    back = _live_loop_back(graph, state, exit_from)
    if back is not None:
        return state, back
    return state, _first_target(_forward_edges(graph, exit_from))


def _exec_block(graph: FlowGraph, state: ExecutionState, index: int, *,
                oracle: DecisionOracle, options: EngineOptions, now: float
                ) -> Tuple[ExecutionState, ExecutionLogEntry]:
    block = graph.blocks[index]
    btype = block.block_type
    state = _visit(state, index)

    if btype in ("end", "return"):
        if state.call_stack:
            frame = state.call_stack[-1]
            state = replace(state, call_stack=state.call_stack[:-1])
            entry = _entry(now, index, block, "return", f"return from {frame.function_name}")
            return _move(state, frame.return_block_index), entry
        return replace(state, phase="completed"), _entry(now, index, block, "exit")

    if btype == "loop":
        count = state.loop_counters.get(index, 0)
        if count < options.loop_iterations:
            state = replace(state, loop_counters={**state.loop_counters, index: count + 1})
            body = _first_target(_forward_edges(graph, index))
            target = body if scan_loop(graph.blocks, index).end is not None else index
            return _move(state, target), _entry(now, index, block, "loop", f"iteration {count + 1}")
        state, target = _exit_loop(graph, state, index)
        return _move(state, target), _entry(now, index, block, "loop", "loop complete")

    if is_open_condition(block) or btype == "else-if":
        edges = _forward_edges(graph, index)
        answer = oracle.decide(index, block)
        chosen = next((e for e in edges if e.type == answer), edges[0] if edges else None)
        target = chosen.to_index if chosen is not None else None
        entry = _entry(now, index, block, "branch", chosen.type if chosen is not None else answer)

    elif btype == "switch" and any(e.type == "case" for e in graph.outgoing(index)):
        cases = [e for e in graph.outgoing(index) if e.type == "case"]
        k = oracle.select_case(index, block, [e.label or "" for e in cases])
        chosen = cases[k] if 0 <= k < len(cases) else cases[0]
        target = chosen.to_index
        entry = _entry(now, index, block, "branch", chosen.label)

    elif btype == "function":
        callee = callee_of(block.content) or block.content
        target = _first_target(_forward_edges(graph, index))
        state = replace(state, call_stack=state.call_stack + (CallStackFrame(callee, target),))
        entry = _entry(now, index, block, "call", callee)

    else:
        target = _first_target(_forward_edges(graph, index))
        entry = _entry(now, index, block, "enter")

    # a loop-back into a still-counting loop wins over the forward edge
    back = _live_loop_back(graph, state, index)
    return _move(state, back if back is not None else target), entry


def transition(graph: FlowGraph, state: ExecutionState, event: Event, *,
               oracle: DecisionOracle, options: EngineOptions, now: float = 0.0
               ) -> Tuple[ExecutionState, List[ExecutionLogEntry]]:
    """
    One event in, the next state and the log entries it produced out.
    Raises EngineFault for a start without a START block.
    """
    kind = event.kind
    if kind not in EVENTS:
        raise EngineFault(f"unknown event {kind!r}")

    if kind == "reset":
        return ExecutionState(speed_ms=state.speed_ms), []

    if kind == "set-speed":
        requested = event.value if event.value is not None else state.speed_ms
        return replace(state, speed_ms=options.clamp_speed(requested)), []

    if kind == "pause":
        return (replace(state, phase="paused"), []) if state.is_running else (state, [])

    if kind == "resume":
        return (replace(state, phase="running"), []) if state.is_paused else (state, [])

    if kind == "start":
        if state.is_running:
            return state, []
        start = graph.find("start")
        if start is None:
            raise EngineFault("cannot start: the program has no START block")
        fresh = ExecutionState(
            current_block_index=start,
            phase="paused" if event.paused else "running",
            speed_ms=state.speed_ms,
        )
        block = graph.blocks[start]
        fresh = _visit(fresh, start)
        fresh = _move(fresh, _first_target(_forward_edges(graph, start)))
        return fresh, [_entry(now, start, block, "enter")]

    if kind == "tick":
        if state.phase in ("not-started", "completed"):
            return state, []
        index = state.current_block_index
        if index is None or not (0 <= index < len(graph.blocks)):
            return replace(state, phase="completed"), []
        new_state, entry = _exec_block(graph, state, index, oracle=oracle, options=options, now=now)
        return new_state, [entry]

    return state, []

# ----------------------------
# Engine (the mutable shell)
# ----------------------------

StateListener = Callable[[ExecutionState], None]
LogListener = Callable[[ExecutionLogEntry], None]


class ExecutionEngine:
    def __init__(self, graph: FlowGraph, *, oracle: Optional[DecisionOracle] = None,
                 scheduler: Optional[Scheduler] = None, options: Optional[EngineOptions] = None):
        self.graph = graph
        self.oracle = oracle or DecisionOracle()
        self.scheduler = scheduler or ManualScheduler()
        self.options = options or EngineOptions()
        self._state = ExecutionState(speed_ms=self.options.clamp_speed(self.options.speed_ms))
        self._log: List[ExecutionLogEntry] = []
        self._handle: Optional[TimerHandle] = None
        self._state_listeners: List[StateListener] = []
        self._log_listeners: List[LogListener] = []

    # ---- read side ----

    @property
    def state(self) -> ExecutionState:
        return self._state

    @property
    def execution_log(self) -> List[ExecutionLogEntry]:
        return list(self._log)

    @property
    def speed_ms(self) -> int:
        return self._state.speed_ms

    def subscribe(self, on_state: Optional[StateListener] = None,
                  on_log: Optional[LogListener] = None) -> Callable[[], None]:
        if on_state is not None:
            self._state_listeners.append(on_state)
        if on_log is not None:
            self._log_listeners.append(on_log)

        def unsubscribe() -> None:
            if on_state is not None and on_state in self._state_listeners:
                self._state_listeners.remove(on_state)
            if on_log is not None and on_log in self._log_listeners:
                self._log_listeners.remove(on_log)
        return unsubscribe

    # ---- internals ----

    def _dispatch(self, event: Event) -> ExecutionState:
        new_state, entries = transition(
            self.graph, self._state, event,
            oracle=self.oracle, options=self.options, now=self.scheduler.now(),
        )
        self._state = new_state
        for entry in entries:
            self._log.append(entry)
            log.debug("block %d [%s] %s %s", entry.block_index, entry.block_type, entry.action, entry.details or "")
            for fn in list(self._log_listeners):
                try:
                    fn(entry)
                except Exception:
                    log.exception("log subscriber raised")
        for fn in list(self._state_listeners):
            try:
                fn(new_state)
            except Exception:
                log.exception("state subscriber raised")
        return new_state

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        self._cancel_pending()
        if self._state.is_running:
            self._handle = self.scheduler.call_later(self._state.speed_ms, self._on_timer)

    def _on_timer(self) -> None:
        self._handle = None
        if not self._state.is_running:
            return
        self._dispatch(Event("tick"))
        self._schedule()

    # ---- playback surface ----

    def start(self) -> ExecutionState:
        if self._state.is_running:
            return self._state
        self._cancel_pending()
        self._log.clear()
        self._dispatch(Event("start"))
        self._schedule()
        return self._state

    def pause(self) -> ExecutionState:
        self._cancel_pending()
        return self._dispatch(Event("pause"))

    def resume(self) -> ExecutionState:
        if not self._state.is_paused:
            return self._state
        self._dispatch(Event("resume"))
        self._schedule()
        return self._state

    def step(self) -> ExecutionState:
        """Exactly one tick whatever the phase; from not-started this is the start itself (paused)."""
        if self._state.phase == "not-started":
            self._log.clear()
            return self._dispatch(Event("start", paused=True))
        if self._state.is_complete:
            return self._state
        self._dispatch(Event("tick"))
        if self._state.is_running:
            self._schedule()
        return self._state

    def reset(self) -> ExecutionState:
        self._cancel_pending()
        self._log.clear()
        return self._dispatch(Event("reset"))

    def set_speed(self, ms: float) -> int:
        self._dispatch(Event("set-speed", value=ms))
        return self._state.speed_ms

    def run_until_complete(self, max_ticks: int = 1000) -> ExecutionState:
        """Steps synchronously until completed; EngineFault past `max_ticks`."""
        ticks = 0
        while not self._state.is_complete:
            if ticks >= max_ticks:
                raise EngineFault(f"execution did not complete within {max_ticks} ticks")
            self.step()
            ticks += 1
        return self._state
