"""Step runner that turns raised failures into tagged step results."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from .errors import ProvisioningError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class StepResult(Generic[T]):
    name: str
    value: Optional[T] = None
    error: Optional[ProvisioningError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or re-raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class WorkflowRunner:
    def __init__(self) -> None:
        self._log = logger
        self.history: list[StepResult] = []

    def run_step(self, name: str, action: Callable[[], T]) -> StepResult[T]:
        self._log.info("Running workflow step '%s'", name)
        try:
            result: StepResult[T] = StepResult(name=name, value=action())
        except ProvisioningError as exc:
            self._log.error("Workflow step '%s' failed: %s", name, exc)
            result = StepResult(name=name, error=exc)
        self.history.append(result)
        return result
