"""Pytest item executing a single scenario."""

from asyncio import run
from typing import TYPE_CHECKING

import pytest

from pytest_cuke.errors import CukeError, StepPending

if TYPE_CHECKING:
    from typing import Any

    from _pytest._code.code import ExceptionInfo, TerminalRepr

    from pytest_cuke.plan import ScenarioNode
    from pytest_cuke.runtime import TestRecord


class ScenarioItem(pytest.Item):
    """Pytest item backed by a recorded scenario test.

    Per-test hooks recorded on enclosing suites run around the scenario
    body. Scenarios declared in the `skip` mode run their body for
    reporting only and are then reported as skipped.
    """

    __test__ = False

    def __init__(self, *,
                 record: 'TestRecord',
                 scenario: 'ScenarioNode | None' = None,
                 **kwargs: 'Any') -> None:
        """Initialize a pytest item for a scenario.

        Args:
            record: Recorded test.
            scenario: Plan node of the scenario, if known.
            **kwargs: Keyword pytest.Item arguments.
        """
        super().__init__(**kwargs)

        self.record = record
        self.scenario = scenario

    async def run_record(self) -> None:
        """Run the recorded body with per-test hooks of enclosing suites."""
        suites = self.record.parent.suites
        try:
            for suite in suites:
                for body in suite.before_each:
                    await body()

            await self.record.body()

        finally:
            for suite in reversed(suites):
                for body in reversed(suite.after_each):
                    await body()

    def runtest(self) -> None:
        """Execute the scenario."""
        try:
            run(self.run_record())

        except StepPending as signal:
            pytest.skip(f'Pending: {signal.reason}')

        if self.record.mode == 'skip':
            pytest.skip(self.record.reason or 'Skipped')

    def repr_failure(self, excinfo: 'ExceptionInfo[BaseException]',
                     style: 'Any' = None) -> 'str | TerminalRepr':
        """Render library errors without a Python traceback."""
        if isinstance(excinfo.value, CukeError):
            return f'{excinfo.value}'

        return super().repr_failure(excinfo, style=style)

    def reportinfo(self) -> tuple['Any', int | None, str]:
        """Report the scenario location."""
        line = None
        if self.scenario is not None and self.scenario.line is not None:
            line = self.scenario.line - 1

        return self.path, line, f'Scenario: {self.name}'
