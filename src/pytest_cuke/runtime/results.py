"""Execution results.

Results are mutable status records created lazily, one per plan node
and per run. A result moves from `pending` to `running` and is then
completed exactly once with a terminal status.
"""

from collections import Counter
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from pytest_cuke.errors import ResultStateError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from pytest_cuke.plan.nodes import PlanNode

    type ChangeCallback = Callable[[ExecutionResult, ExecutionStatus], None]


class ExecutionStatus(StrEnum):
    """Status of a plan node execution."""

    PENDING = 'pending'
    RUNNING = 'running'
    PASSED = 'passed'
    FAILED = 'failed'
    SKIPPED = 'skipped'


class ExecutionResult:
    """Status record of one plan node in one run."""

    def __init__(self, node: 'PlanNode', *,
                 on_change: 'ChangeCallback | None' = None) -> None:
        """Initialize a pending result.

        Args:
            node: Plan node the result belongs to.
            on_change: Callback invoked with the result and its previous
                status after every status change.
        """
        self.node = node
        self.on_change = on_change

        self.status = ExecutionStatus.PENDING
        self.completed = False

        self.error: BaseException | None = None
        self.reason: str | None = None

        self.started_at: datetime | None = None
        self.finished_at: datetime | None = None

    def __repr__(self) -> str:
        """String representation."""
        return f'ExecutionResult({self.node.id!r}, {self.status.value!r})'

    @property
    def duration(self) -> float | None:
        """Return the run duration in seconds, if finished."""
        if self.started_at is None or self.finished_at is None:
            return None

        return (self.finished_at - self.started_at).total_seconds()

    def _set_status(self, status: ExecutionStatus) -> None:
        """Change the status and notify the callback."""
        previous, self.status = self.status, status
        if self.on_change is not None and previous != status:
            self.on_change(self, previous)

    def start(self) -> None:
        """Mark the node as running.

        Raises:
            ResultStateError: If the result is already completed.
        """
        if self.completed:
            raise ResultStateError(f'Result of {self.node.id!r} is already completed')

        self.started_at = datetime.now(UTC)
        self._set_status(ExecutionStatus.RUNNING)

    def complete(self, status: ExecutionStatus, *,
                 error: BaseException | None = None,
                 reason: str | None = None) -> None:
        """Set the terminal status.

        Args:
            status: Terminal status; `running` is not terminal.
            error: Failure cause for failed nodes.
            reason: Human-readable reason for pending or skipped nodes.

        Raises:
            ResultStateError: If the result is already completed
                or the status is not terminal.
        """
        if self.completed:
            raise ResultStateError(
                f'Result of {self.node.id!r} is already completed as {self.status.value!r}',
            )

        if status == ExecutionStatus.RUNNING:
            raise ResultStateError(f'Status {status.value!r} is not terminal')

        self.completed = True
        self.error = error
        self.reason = reason
        self.finished_at = datetime.now(UTC)

        self._set_status(status)


class ResultStore:
    """Lazily populated results of one run."""

    def __init__(self, on_change: 'ChangeCallback | None' = None) -> None:
        """Initialize an empty store.

        Args:
            on_change: Callback attached to every created result.
        """
        self.on_change = on_change
        self._results: dict[str, ExecutionResult] = {}

    def __contains__(self, node: 'PlanNode') -> bool:
        """Check whether a result exists for a node."""
        return node.id in self._results

    def __iter__(self) -> 'Iterator[ExecutionResult]':
        """Iterate over results in creation order."""
        return iter(self._results.values())

    def __len__(self) -> int:
        """Return number of results."""
        return len(self._results)

    def get(self, node: 'PlanNode') -> ExecutionResult:
        """Return the result of a node, creating it on first access."""
        if (result := self._results.get(node.id)) is None:
            result = self._results[node.id] = ExecutionResult(
                node,
                on_change=self.on_change,
            )

        return result

    def summary(self) -> dict[str, int]:
        """Count completed scenario results by status."""
        counter = Counter(
            result.status.value
            for result in self._results.values()
            if result.completed and getattr(result.node, 'kind', None) == 'scenario'
        )

        return dict(counter)
