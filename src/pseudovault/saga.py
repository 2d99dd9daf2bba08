"""
Sequential saga: ordered steps, each with an optional compensating action.

On the first failing step the compensations of the steps that already
completed run in reverse order, then the original exception is re-raised.
A failing compensation is reported to the probe and the remaining
compensations still run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from .observability import UserServiceProbe

Action = Callable[[], Awaitable[Any]]
Compensation = Callable[[Any], Awaitable[Any]]


@dataclass
class SagaStep:
    """
    One step of a saga.

    compensate receives the action's result (e.g. the inserted row id).
    """

    name: str
    action: Action
    compensate: Optional[Compensation] = None
    result: Any = None
    done: bool = False


@dataclass
class Saga:
    """Ordered list of steps executed by run()."""

    name: str
    probe: UserServiceProbe
    steps: List[SagaStep] = field(default_factory=list)

    def add_step(
        self, name: str, action: Action, compensate: Optional[Compensation] = None
    ) -> SagaStep:
        """Append a step and return it so later steps can read its result."""
        step = SagaStep(name=name, action=action, compensate=compensate)
        self.steps.append(step)
        return step

    @property
    def completed(self) -> List[str]:
        """Names of the steps whose action finished."""
        return [s.name for s in self.steps if s.done]

    async def run(self) -> List[Any]:
        """
        Execute all steps in order.

        Returns:
            The result of each step, in order

        Raises:
            The first step failure, after compensation
        """
        for step in self.steps:
            try:
                step.result = await step.action()
            except BaseException:
                await self._compensate()
                raise
            step.done = True
        return [s.result for s in self.steps]

    async def _compensate(self) -> None:
        for step in reversed(self.steps):
            if not step.done or step.compensate is None:
                continue
            try:
                await step.compensate(step.result)
            except Exception as e:
                self.probe.compensation_failed(self.name, step.name, e)
