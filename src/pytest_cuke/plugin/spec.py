"""Pytest integration for Gherkin feature files.

This module defines the pytest collectors for feature files. Each
collected file is:
- parsed with the shared `DocumentParser`;
- compiled into a test plan against the configured scope registry;
- declared through the `ExecutionAdapter` on a `RecordingRunner`.

The recorded suites become nested `SuiteCollector` nodes whose pytest
setup and teardown run the once-per-suite hooks; recorded tests become
`ScenarioItem` instances.
"""

from asyncio import run
from typing import TYPE_CHECKING

import pytest

from pytest_cuke.runtime import ExecutionAdapter, RecordingRunner, SuiteRecord

from .case import ScenarioItem

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

    from pytest_cuke.runtime import TestRecord


def collect_records(parent: 'FeatureFile | SuiteCollector',
                    records: 'Iterable[SuiteRecord | TestRecord]',
                    adapter: ExecutionAdapter) -> 'Iterable[SuiteCollector | ScenarioItem]':
    """Convert recorded declarations into pytest nodes.

    Args:
        parent: Parent pytest collector.
        records: Recorded suites and tests.
        adapter: Adapter the records were declared by.

    Yields:
        Collectors for suites and items for tests.
    """
    for record in records:
        if isinstance(record, SuiteRecord):
            yield SuiteCollector.from_parent(
                parent,
                name=record.title,
                record=record,
                adapter=adapter,
            )
        else:
            yield ScenarioItem.from_parent(
                parent,
                name=record.title,
                record=record,
                scenario=adapter.scenarios.get(record.path),
            )


class FeatureFile(pytest.File):
    """Pytest file collector for `.feature` files."""

    __test__ = False

    def collect(self) -> 'Iterable[SuiteCollector | ScenarioItem]':
        """Collect suites and scenarios of a feature file.

        Returns:
            Iterable of pytest collectors and items.

        Raises:
            SpecSyntaxError: If the file is not valid Gherkin.
            ScopeConfigurationError: If the registry still has open scopes.
        """
        config = self.config
        settings = config.cuke_settings  # type: ignore[attr-defined]

        document = config.cuke_parser.parse_file(self.path)  # type: ignore[attr-defined]

        registry = config.cuke_registry  # type: ignore[attr-defined]
        registry.freeze()

        plan = settings.make_builder(registry).build(document)

        runner = RecordingRunner()
        self.adapter = ExecutionAdapter(
            runner,
            world_factory=settings.make_world_factory(),
            dispatcher=config.cuke_dispatcher,  # type: ignore[attr-defined]
        )
        self.adapter.register(plan)

        yield from collect_records(self, runner.root.children, self.adapter)


class SuiteCollector(pytest.Collector):
    """Pytest collector for a recorded suite.

    Pytest runs collector setup before the first item of the suite and
    teardown after the last one, which maps onto the once-per-suite
    hooks of the record.
    """

    __test__ = False

    def __init__(self, *,
                 record: SuiteRecord,
                 adapter: ExecutionAdapter,
                 **kwargs: 'Any') -> None:
        """Initialize a suite collector.

        Args:
            record: Recorded suite.
            adapter: Adapter the suite was declared by.
            **kwargs: Keyword pytest.Collector arguments.
        """
        super().__init__(**kwargs)

        self.record = record
        self.adapter = adapter

    def collect(self) -> 'Iterable[SuiteCollector | ScenarioItem]':
        """Collect nested suites and scenarios."""
        yield from collect_records(self, self.record.children, self.adapter)

    def setup(self) -> None:
        """Run once-per-suite setup hooks."""
        for body in self.record.before_all:
            run(body())

    def teardown(self) -> None:
        """Run once-per-suite teardown hooks."""
        for body in self.record.after_all:
            run(body())

    def reportinfo(self) -> tuple['Any', int | None, str]:
        """Report the suite location."""
        return self.path, None, self.name
