"""Host runner bindings.

A host runner is the test framework that actually schedules suites,
tests and their hooks. The execution adapter talks to it through the
small imperative vocabulary of `HostRunner`, the same one popular
JavaScript-style runners expose: `suite`, `test`, `before_all`,
`after_all`, `before_each` and `after_each`.

`RecordingRunner` records those calls into a tree and can execute it
in-process. The pytest plugin builds its collection tree from the same
records.
"""

from abc import ABC, abstractmethod
from asyncio import run
from typing import TYPE_CHECKING, Any

from pytest_cuke.errors import StepPending

from .results import ExecutionStatus

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

    from pytest_cuke.names import Mode

    type AsyncBody = Callable[[], Awaitable[Any]]

#: Separator of suite and test titles in a test path.
PATH_SEPARATOR = '::'


class HostRunner(ABC):
    """Imperative vocabulary of a host test runner."""

    @abstractmethod
    def suite(self, title: str, body: 'Callable[[], None]', *,
              mode: 'Mode' = 'default') -> None:
        """Declare a suite; the body declares its content synchronously."""

    @abstractmethod
    def test(self, title: str, body: 'AsyncBody', *,
             timeout: float | None = None,
             mode: 'Mode' = 'default',
             reason: str | None = None) -> None:
        """Declare a test in the current suite."""

    @abstractmethod
    def before_all(self, body: 'AsyncBody') -> None:
        """Declare a hook running once before the tests of the current suite."""

    @abstractmethod
    def after_all(self, body: 'AsyncBody') -> None:
        """Declare a hook running once after the tests of the current suite."""

    @abstractmethod
    def before_each(self, body: 'AsyncBody') -> None:
        """Declare a hook running before every test of the current suite."""

    @abstractmethod
    def after_each(self, body: 'AsyncBody') -> None:
        """Declare a hook running after every test of the current suite."""

    def current_test_name(self) -> str | None:
        """Return the path of the test being executed, if known."""
        return None


class TestRecord:
    """Recorded test declaration."""

    __test__ = False

    def __init__(self, title: str, body: 'AsyncBody', *,
                 parent: 'SuiteRecord',
                 timeout: float | None = None,
                 mode: 'Mode' = 'default',
                 reason: str | None = None) -> None:
        """Initialize a test record."""
        self.title = title
        self.body = body
        self.parent = parent
        self.timeout = timeout
        self.mode = mode
        self.reason = reason

        self.status: ExecutionStatus | None = None
        self.error: BaseException | None = None

    def __repr__(self) -> str:
        """String representation."""
        return f'TestRecord({self.path!r})'

    @property
    def path(self) -> str:
        """Return the full test path."""
        return PATH_SEPARATOR.join((*self.parent.titles, self.title))


class SuiteRecord:
    """Recorded suite declaration."""

    def __init__(self, title: str, *,
                 parent: 'SuiteRecord | None' = None,
                 mode: 'Mode' = 'default') -> None:
        """Initialize a suite record."""
        self.title = title
        self.parent = parent
        self.mode = mode

        self.children: list[SuiteRecord | TestRecord] = []
        self.errors: list[BaseException] = []

        self.before_all: list[AsyncBody] = []
        self.after_all: list[AsyncBody] = []
        self.before_each: list[AsyncBody] = []
        self.after_each: list[AsyncBody] = []

    def __repr__(self) -> str:
        """String representation."""
        return f'SuiteRecord({self.title!r}, children={len(self.children)})'

    @property
    def titles(self) -> tuple[str, ...]:
        """Return titles from the outermost named suite to this one."""
        if self.parent is None:
            return ()

        return (*self.parent.titles, self.title)

    @property
    def suites(self) -> tuple['SuiteRecord', ...]:
        """Return this suite and its ancestors, outermost first."""
        if self.parent is None:
            return (self,)

        return (*self.parent.suites, self)

    def tests(self) -> 'Iterator[TestRecord]':
        """Iterate over tests in declaration order."""
        for child in self.children:
            if isinstance(child, TestRecord):
                yield child
            else:
                yield from child.tests()


class RecordingRunner(HostRunner):
    """Host runner recording declarations into a tree.

    Recorded trees can be executed with `run`. Tests declared with the
    `skip` mode still run their body, for reporting only, and end as
    skipped. The `only` mode is recorded but has no effect on `run`.
    """

    def __init__(self) -> None:
        """Initialize a runner with an anonymous root suite."""
        self.root = SuiteRecord('')

        self._stack: list[SuiteRecord] = [self.root]
        self._current: TestRecord | None = None

    @property
    def current(self) -> SuiteRecord:
        """Return the suite being declared."""
        return self._stack[-1]

    def suite(self, title: str, body: 'Callable[[], None]', *,
              mode: 'Mode' = 'default') -> None:
        """Record a suite and declare its content."""
        record = SuiteRecord(title, parent=self.current, mode=mode)
        self.current.children.append(record)

        self._stack.append(record)
        try:
            body()
        finally:
            self._stack.pop()

    def test(self, title: str, body: 'AsyncBody', *,
             timeout: float | None = None,
             mode: 'Mode' = 'default',
             reason: str | None = None) -> None:
        """Record a test."""
        self.current.children.append(TestRecord(
            title,
            body,
            parent=self.current,
            timeout=timeout,
            mode=mode,
            reason=reason,
        ))

    def before_all(self, body: 'AsyncBody') -> None:
        """Record a once-per-suite setup hook."""
        self.current.before_all.append(body)

    def after_all(self, body: 'AsyncBody') -> None:
        """Record a once-per-suite teardown hook."""
        self.current.after_all.append(body)

    def before_each(self, body: 'AsyncBody') -> None:
        """Record a per-test setup hook."""
        self.current.before_each.append(body)

    def after_each(self, body: 'AsyncBody') -> None:
        """Record a per-test teardown hook."""
        self.current.after_each.append(body)

    def current_test_name(self) -> str | None:
        """Return the path of the running test."""
        if self._current is None:
            return None

        return self._current.path

    def tests(self) -> list[TestRecord]:
        """Return all recorded tests in declaration order."""
        return list(self.root.tests())

    def find(self, path: str) -> TestRecord | None:
        """Find a recorded test by path."""
        for record in self.root.tests():
            if record.path == path:
                return record

        return None

    def run(self) -> dict[str, ExecutionStatus]:
        """Execute the recorded tree in-process.

        Returns:
            Final status of every test keyed by its path.
        """
        run(self.run_suite(self.root))

        return {
            record.path: record.status or ExecutionStatus.PENDING
            for record in self.root.tests()
        }

    async def run_suite(self, suite: SuiteRecord) -> None:
        """Execute one suite with its once-per-suite hooks."""
        failure: BaseException | None = None
        try:
            for body in suite.before_all:
                await body()

        except Exception as error:  # noqa: BLE001
            failure = error

        if failure is None:
            for child in suite.children:
                if isinstance(child, SuiteRecord):
                    await self.run_suite(child)
                else:
                    await self.run_test(child)
        else:
            for record in suite.tests():
                record.status = ExecutionStatus.FAILED
                record.error = failure

        for body in suite.after_all:
            try:
                await body()
            except Exception as error:  # noqa: BLE001
                suite.errors.append(error)

    async def run_test(self, record: TestRecord) -> None:
        """Execute one test with per-test hooks of all enclosing suites."""
        self._current = record
        suites = record.parent.suites
        try:
            for suite in suites:
                for body in suite.before_each:
                    await body()

            await record.body()

        except StepPending as signal:
            record.status = ExecutionStatus.PENDING
            record.error = signal

        except Exception as error:  # noqa: BLE001
            record.status = ExecutionStatus.FAILED
            record.error = error

        else:
            record.status = (
                ExecutionStatus.SKIPPED
                if record.mode == 'skip'
                else ExecutionStatus.PASSED
            )

        finally:
            for suite in reversed(suites):
                for body in reversed(suite.after_each):
                    await body()
            self._current = None
