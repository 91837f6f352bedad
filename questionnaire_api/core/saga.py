# questionnaire_api/core/saga.py
"""
Ordered (action, undo) steps for multi-step writes over storage without
multi-statement transactions.

Each step's action runs in order; when one raises, the undo callbacks of the
steps that already completed run in reverse order and the original exception
is re-raised. Undo failures are logged and never mask the original error.
Results of finished steps are readable from `saga.results` by later actions.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from questionnaire_api.core.logging import get_logger

log = get_logger("saga")


@dataclass
class SagaStep:
    name: str
    action: Callable[[], Any]
    undo: Optional[Callable[[Any], None]] = None


@dataclass
class Saga:
    label: str
    steps: List[SagaStep] = field(default_factory=list)
    results: dict[str, Any] = field(default_factory=dict)

    def step(
        self,
        name: str,
        action: Callable[[], Any],
        undo: Optional[Callable[[Any], None]] = None,
    ) -> "Saga":
        self.steps.append(SagaStep(name=name, action=action, undo=undo))
        return self

    def run(self) -> dict[str, Any]:
        """Runs every step; returns each action's result keyed by step name."""
        self.results = {}
        done: list[tuple[SagaStep, Any]] = []
        for s in self.steps:
            try:
                result = s.action()
            except Exception:
                log.warning("%s: step %r failed, compensating %d step(s)", self.label, s.name, len(done))
                self._compensate(done)
                raise
            self.results[s.name] = result
            done.append((s, result))
        return self.results

    def _compensate(self, done: list[tuple[SagaStep, Any]]) -> None:
        for s, result in reversed(done):
            if s.undo is None:
                continue
            try:
                s.undo(result)
            except Exception:
                log.exception("%s: undo of step %r failed", self.label, s.name)
