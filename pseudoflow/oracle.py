# pseudoflow/oracle.py
# Decision oracles: who picks yes/no at a condition and which case a switch takes.
# The engine never evaluates expressions itself.

from __future__ import annotations
import random
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .comparatives import evaluate, parse_comparative
from .model import Block

YES = "yes"
NO = "no"


class DecisionOracle:
    """Base oracle: always 'yes', first case."""

    def decide(self, index: int, block: Block) -> str:
        return YES

    def select_case(self, index: int, block: Block, labels: Sequence[str]) -> int:
        return 0


class FixedOracle(DecisionOracle):
    def __init__(self, answer: str = YES, case: int = 0):
        if answer not in (YES, NO):
            raise ValueError(f"answer must be 'yes' or 'no', got {answer!r}")
        self.answer = answer
        self.case = case

    def decide(self, index: int, block: Block) -> str:
        return self.answer

    def select_case(self, index: int, block: Block, labels: Sequence[str]) -> int:
        return min(self.case, max(0, len(labels) - 1))


class ScriptedOracle(DecisionOracle):
    """Replays answers in order; falls back to `then` once the script runs out."""

    def __init__(self, answers: Iterable[str], then: Optional[DecisionOracle] = None):
        self.answers: List[str] = list(answers)
        self.then = then or FixedOracle(NO)
        self.asked = 0

    def decide(self, index: int, block: Block) -> str:
        self.asked += 1
        if self.answers:
            return self.answers.pop(0)
        return self.then.decide(index, block)

    def select_case(self, index: int, block: Block, labels: Sequence[str]) -> int:
        return self.then.select_case(index, block, labels)


class RandomOracle(DecisionOracle):
    def __init__(self, seed: Optional[int] = None):
        self.rng = random.Random(seed)

    def decide(self, index: int, block: Block) -> str:
        return YES if self.rng.random() < 0.5 else NO

    def select_case(self, index: int, block: Block, labels: Sequence[str]) -> int:
        return self.rng.randrange(len(labels)) if labels else 0


class ComparisonOracle(DecisionOracle):
    """
    Evaluates simple comparisons ("grade >= 90", "n is at most 1") against
    `env`; anything it cannot decide goes to `fallback`.
    Switch cases are matched by comparing "Case <value>" to the switched variable.
    """

    def __init__(self, env: Mapping[str, Any], fallback: Optional[DecisionOracle] = None):
        self.env: Dict[str, Any] = dict(env)
        self.fallback = fallback or DecisionOracle()

    def decide(self, index: int, block: Block) -> str:
        comp = parse_comparative(block.content)
        verdict = evaluate(comp, self.env) if comp else None
        if verdict is None:
            return self.fallback.decide(index, block)
        return YES if verdict else NO

    def select_case(self, index: int, block: Block, labels: Sequence[str]) -> int:
        subject = block.content.split(None, 1)[1].strip() if " " in block.content.strip() else ""
        if subject in self.env:
            want = str(self.env[subject]).strip("'\"").lower()
            for k, label in enumerate(labels):
                parts = label.split(None, 1)
                if len(parts) == 2 and parts[1].strip().strip("'\"").lower() == want:
                    return k
            for k, label in enumerate(labels):
                if label.strip().lower().startswith("default"):
                    return k
        return self.fallback.select_case(index, block, labels)
