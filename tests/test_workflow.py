from __future__ import annotations

import pytest

from mca_provisioning.errors import NotFoundError
from mca_provisioning.workflow import WorkflowRunner


def test_run_step_captures_value() -> None:
    runner = WorkflowRunner()

    result = runner.run_step("one", lambda: 42)

    assert result.ok
    assert result.unwrap() == 42
    assert [step.name for step in runner.history] == ["one"]


def test_run_step_tags_provisioning_errors() -> None:
    runner = WorkflowRunner()
    error = NotFoundError("Dept-C", ["Dept-A"])

    def failing() -> None:
        raise error

    result = runner.run_step("resolve", failing)

    assert not result.ok
    assert result.error is error
    with pytest.raises(NotFoundError):
        result.unwrap()


def test_run_step_propagates_unexpected_exceptions() -> None:
    runner = WorkflowRunner()

    def broken() -> None:
        raise KeyError("properties")

    with pytest.raises(KeyError):
        runner.run_step("broken", broken)
