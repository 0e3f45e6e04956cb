# backend/booking_workflow/services/sequencer.py
from __future__ import annotations

from enum import Enum
from typing import List, Sequence, Tuple

from ..core.errors import StepTransitionError


class WorkflowStep(str, Enum):
    CLIENT_INFO = "client-info"
    FLIGHTS = "flights"
    HOTELS = "hotels"
    CONFIRMATION = "confirmation"


STEPS: Tuple[WorkflowStep, ...] = (
    WorkflowStep.CLIENT_INFO,
    WorkflowStep.FLIGHTS,
    WorkflowStep.HOTELS,
    WorkflowStep.CONFIRMATION,
)


class StepSequencer:
    """
    Forward/back state machine over the booking steps.

    Indices are clamped: advance() on the last step and retreat() on the first
    are no-ops. Forward moves go one step at a time; go_to() may only jump back
    to a visited step behind the current one. `visited` keeps first-visit order
    and survives back jumps; reset() forgets it.
    """

    def __init__(self, steps: Sequence[WorkflowStep] = STEPS) -> None:
        if not steps:
            raise ValueError("a sequencer needs at least one step")
        self.steps: Tuple[WorkflowStep, ...] = tuple(steps)
        self._index = 0
        self._visited: List[WorkflowStep] = [self.steps[0]]
        self.progress_percent = self._progress()

    @property
    def index(self) -> int:
        return self._index

    @property
    def current_step(self) -> WorkflowStep:
        return self.steps[self._index]

    @property
    def visited(self) -> Tuple[WorkflowStep, ...]:
        return tuple(self._visited)

    @property
    def is_first(self) -> bool:
        return self._index == 0

    @property
    def is_last(self) -> bool:
        return self._index == len(self.steps) - 1

    def advance(self) -> WorkflowStep:
        if not self.is_last:
            self._move(self._index + 1)
        return self.current_step

    def retreat(self) -> WorkflowStep:
        if not self.is_first:
            self._move(self._index - 1)
        return self.current_step

    def go_to(self, step: WorkflowStep) -> WorkflowStep:
        step = WorkflowStep(step)
        target = self.steps.index(step)
        if target > self._index or step not in self._visited:
            raise StepTransitionError(
                f"cannot jump to '{self.steps[target].value}' before passing through the steps in between"
            )
        self._move(target)
        return self.current_step

    def reset(self) -> None:
        self._move(0)
        self._visited = [self.steps[0]]

    def _move(self, index: int) -> None:
        self._index = max(0, min(index, len(self.steps) - 1))
        if self.current_step not in self._visited:
            self._visited.append(self.current_step)
        self.progress_percent = self._progress()

    def _progress(self) -> float:
        return (self._index + 1) / len(self.steps) * 100
