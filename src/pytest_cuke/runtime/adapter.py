"""Execution adapter.

The adapter is the only component aware of the host runner vocabulary.
It walks a test plan and declares:

- one suite per feature, rule, scenario outline and examples group;
- once-per-suite hooks running the group `setup` and `teardown` hooks
  at most once, and only if a scenario below the suite is ready;
- one test per scenario.

A ready scenario test builds a fresh world, runs the `before` hooks, the
background and scenario steps (each wrapped by `before_step` and
`after_step` hooks), and always the `after` hooks. The first error is
re-raised once the `after` hooks have run.

Timeouts are cooperative. The scenario coroutine runs inside
`asyncio.wait_for`, so awaiting callbacks are cancelled on expiry, but a
synchronous callback cannot be interrupted: its overrun is detected only
when it returns.
"""

from asyncio import get_running_loop, wait_for
from inspect import isawaitable
from typing import TYPE_CHECKING, Any

from pytest_cuke.errors import (
    CukeError,
    ScenarioTimeoutError,
    StepPending,
    StepRuntimeError,
)
from pytest_cuke.events import EventDispatcher
from pytest_cuke.plan.nodes import GroupNode, ScenarioNode
from pytest_cuke.world import World

from .hosts import PATH_SEPARATOR
from .results import ExecutionStatus, ResultStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from pytest_cuke.plan.nodes import PlanNode, StepBinding, TestPlan
    from pytest_cuke.scopes.registry import HookDefinition

    from .hosts import HostRunner
    from .results import ExecutionResult

#: Terminal status of scenarios which are not ready.
STATE_STATUSES = {
    'pending': ExecutionStatus.PENDING,
    'skipped': ExecutionStatus.SKIPPED,
    'broken': ExecutionStatus.FAILED,
}


class GroupRun:
    """Once-per-suite lifecycle of a group node."""

    def __init__(self, adapter: 'ExecutionAdapter', node: GroupNode) -> None:
        """Initialize the group lifecycle.

        Args:
            adapter: Adapter owning the run.
            node: Feature, rule, outline or examples node.
        """
        self.adapter = adapter
        self.node = node

        self.started = False
        self.finished = False
        self.prepared = False

        self.error: Exception | None = None

    async def setup(self) -> None:
        """Emit the started event and run setup hooks once.

        A failing setup hook fails every ready scenario below the group
        without running it; the error is re-raised to the runner.
        """
        if self.started:
            return

        self.started = True

        node = self.node
        self.adapter.dispatcher.dispatch(f'{node.kind}.started', node, tags=node.tags)  # type: ignore[attr-defined]
        self.adapter.results.get(node).start()

        if not node.runnable:
            return

        self.prepared = True
        try:
            for hook in getattr(node, 'setup', ()):
                await self.adapter.run_group_hook(hook, node)

        except Exception as exc:
            self.error = exc
            for scenario in node.scenarios():
                if scenario.state == 'ready':
                    self.adapter.abort_scenario(scenario, exc)
            raise

    async def teardown(self) -> None:
        """Run teardown hooks in reverse order and emit the completed event."""
        if self.finished or not self.started:
            return

        self.finished = True

        node = self.node
        error: BaseException | None = None
        if self.prepared:
            for hook in reversed(getattr(node, 'teardown', ())):
                try:
                    await self.adapter.run_group_hook(hook, node)
                except Exception as exc:  # noqa: BLE001
                    error = error or exc

        result = self.adapter.results.get(node)
        result.complete(self.adapter.group_status(node), error=self.error or error)

        self.adapter.dispatcher.dispatch(
            f'{node.kind}.completed',  # type: ignore[attr-defined]
            node,
            tags=node.tags,
            metadata={'status': result.status.value},
        )

        if error is not None:
            raise error


class ExecutionAdapter:
    """Translator of a test plan into host runner declarations."""

    def __init__(self, runner: 'HostRunner', *,
                 world_factory: 'Callable[[], Any]' = World,
                 dispatcher: EventDispatcher | None = None) -> None:
        """Initialize the adapter.

        Args:
            runner: Host runner receiving declarations.
            world_factory: Factory of per-scenario context objects.
            dispatcher: Event dispatcher, a new empty one by default.
        """
        self.runner = runner
        self.world_factory = world_factory
        self.dispatcher = dispatcher or EventDispatcher()

        self.results = ResultStore(on_change=self.emit_status)

        self.scenarios: dict[str, ScenarioNode] = {}
        self._path: list[str] = []

    def register(self, plan: 'TestPlan') -> None:
        """Declare suites and tests for every feature of a plan."""
        for feature in plan.features:
            self.register_group(feature)

    def register_group(self, node: GroupNode) -> None:
        """Declare a suite for a group node and its children."""
        lifecycle = GroupRun(self, node)

        def body() -> None:
            self.runner.before_all(lifecycle.setup)
            for child in node.children:
                if isinstance(child, ScenarioNode):
                    self.register_scenario(child)
                elif isinstance(child, GroupNode):
                    self.register_group(child)
            self.runner.after_all(lifecycle.teardown)

        self._path.append(node.title)
        try:
            self.runner.suite(node.title, body, mode=node.mode)
        finally:
            self._path.pop()

    def register_scenario(self, node: ScenarioNode) -> None:
        """Declare a test for a scenario."""
        self.scenarios[PATH_SEPARATOR.join((*self._path, node.title))] = node

        if node.state == 'ready':
            self.runner.test(
                node.title,
                self.make_body(node),
                timeout=node.timeout,
                mode=node.mode,
            )
            return

        self.runner.test(
            node.title,
            self.make_report(node),
            mode='default' if node.state == 'broken' else 'skip',
            reason=node.reason,
        )

    def current_scenario(self) -> ScenarioNode | None:
        """Map the runner's current test back to its scenario."""
        if (name := self.runner.current_test_name()) is None:
            return None

        return self.scenarios.get(name)

    def group_status(self, node: 'PlanNode') -> ExecutionStatus:
        """Aggregate scenario results below a node."""
        statuses = {
            self.results.get(scenario).status
            for scenario in node.scenarios()
            if scenario in self.results
        }

        if ExecutionStatus.FAILED in statuses:
            return ExecutionStatus.FAILED

        if ExecutionStatus.PASSED in statuses:
            return ExecutionStatus.PASSED

        if ExecutionStatus.PENDING in statuses:
            return ExecutionStatus.PENDING

        return ExecutionStatus.SKIPPED

    def emit_status(self, result: 'ExecutionResult', previous: ExecutionStatus) -> None:
        """Emit a status change event for a result."""
        self.dispatcher.dispatch(
            'status.changed',
            result.node,
            tags=result.node.tags,
            metadata={
                'status': result.status.value,
                'previous': previous.value,
            },
        )

    def make_report(self, node: ScenarioNode) -> 'Callable[[], Any]':
        """Build a test body reporting a scenario without running it."""
        async def report() -> None:
            self.dispatcher.dispatch('scenario.started', node, tags=node.tags)

            result = self.results.get(node)
            result.complete(
                STATE_STATUSES[node.state],
                error=node.error,
                reason=node.reason,
            )

            if node.error is not None:
                self.dispatcher.dispatch(
                    'error',
                    node,
                    tags=node.tags,
                    metadata={'error': node.error, 'phase': 'resolution'},
                )

            self.dispatcher.dispatch(
                'scenario.completed',
                node,
                tags=node.tags,
                metadata={'status': result.status.value, 'reason': node.reason},
            )

            if node.error is not None:
                raise node.error

        return report

    def make_body(self, node: ScenarioNode) -> 'Callable[[], Any]':
        """Build a test body running a ready scenario."""
        async def body() -> None:
            self.dispatcher.dispatch('scenario.started', node, tags=node.tags)

            result = self.results.get(node)
            result.start()

            try:
                if node.timeout is None:
                    await self.run_scenario(node, deadline=None)
                else:
                    deadline = get_running_loop().time() + node.timeout
                    await wait_for(
                        self.run_scenario(node, deadline=deadline),
                        timeout=node.timeout,
                    )

            except StepPending as signal:
                result.complete(ExecutionStatus.PENDING, reason=signal.reason)
                self.complete_scenario(node, result)
                raise

            except TimeoutError as base:
                error = self.timeout_error(node)
                self.fail_scenario(node, result, error)
                raise error from base

            except Exception as error:
                self.fail_scenario(node, result, error)
                raise

            else:
                result.complete(ExecutionStatus.PASSED)
                self.complete_scenario(node, result)

        return body

    def abort_scenario(self, node: ScenarioNode, error: BaseException) -> None:
        """Fail a scenario that cannot run because its group setup failed."""
        self.dispatcher.dispatch('scenario.started', node, tags=node.tags)
        self.fail_scenario(node, self.results.get(node), error, phase='setup')

    def fail_scenario(self, node: ScenarioNode, result: 'ExecutionResult',
                      error: BaseException, *,
                      phase: str = 'execution') -> None:
        """Record a scenario failure and emit its events."""
        result.complete(ExecutionStatus.FAILED, error=error)

        self.dispatcher.dispatch(
            'error',
            node,
            tags=node.tags,
            metadata={'error': error, 'phase': phase},
        )
        self.complete_scenario(node, result)

    def complete_scenario(self, node: ScenarioNode, result: 'ExecutionResult') -> None:
        """Emit the scenario completed event."""
        self.dispatcher.dispatch(
            'scenario.completed',
            node,
            tags=node.tags,
            metadata={'status': result.status.value, 'reason': result.reason},
        )

    async def run_scenario(self, node: ScenarioNode, *,
                           deadline: float | None) -> None:
        """Run hooks and steps of one scenario with a fresh world.

        `after` hooks always run; the first error is re-raised.
        """
        world = self.world_factory()
        error: Exception | None = None

        try:
            for hook in node.hooks.before:
                await self.run_hook(hook, node, world, deadline=deadline)

            await self.run_steps(node, world, deadline=deadline)

        except Exception as exc:  # noqa: BLE001
            error = exc

        for hook in node.hooks.after:
            try:
                await self.run_hook(hook, node, world, deadline=deadline)
            except Exception as exc:  # noqa: BLE001
                error = error or exc

        if error is not None:
            raise error

    async def run_steps(self, node: ScenarioNode, world: Any, *,  # noqa: ANN401
                        deadline: float | None) -> None:
        """Run background and scenario steps in order."""
        in_background = False
        for binding in node.steps:
            if binding.background and not in_background:
                in_background = True
                self.dispatcher.dispatch('background.started', node, tags=node.tags)

            if in_background and not binding.background:
                in_background = False
                self.dispatcher.dispatch('background.completed', node, tags=node.tags)

            await self.run_step(binding, node, world, deadline=deadline)

        if in_background:
            self.dispatcher.dispatch('background.completed', node, tags=node.tags)

    async def run_step(self, binding: 'StepBinding', node: ScenarioNode,
                       world: Any, *,  # noqa: ANN401
                       deadline: float | None) -> None:
        """Run one step wrapped by step hooks."""
        step = binding.step
        metadata = {
            'scenario': node.title,
            'keyword': step.keyword.strip(),
            'background': binding.background,
        }

        self.dispatcher.dispatch(
            'step.started',
            binding,
            tags=node.tags,
            table=step.table,
            docstring=step.docstring,
            metadata=metadata,
        )

        error: Exception | None = None
        try:
            for hook in node.hooks.before_step:
                await self.run_hook(hook, node, world, deadline=deadline)

            arguments = [*binding.arguments]
            if (payload := binding.payload) is not None:
                arguments.append(payload)
            arguments.append(world)

            try:
                await self.invoke(binding.definition.callback, *arguments, deadline=deadline)

            except (AssertionError, StepPending, CukeError):
                raise

            except Exception as exc:
                raise StepRuntimeError.from_callback(
                    exc,
                    phase='step',
                    scenario=node.title,
                    filename=node.uri,
                    line_num=step.location.line if step.location else None,
                    step_text=step.literal,
                ) from exc

        except Exception as exc:  # noqa: BLE001
            error = exc

        for hook in node.hooks.after_step:
            try:
                await self.run_hook(hook, node, world, deadline=deadline)
            except Exception as exc:  # noqa: BLE001
                error = error or exc

        self.dispatcher.dispatch(
            'step.completed',
            binding,
            tags=node.tags,
            table=step.table,
            docstring=step.docstring,
            metadata={
                **metadata,
                'status': self.outcome(error).value,
            },
        )

        if error is not None:
            raise error

    async def run_hook(self, hook: 'HookDefinition', node: ScenarioNode,
                       world: Any, *,  # noqa: ANN401
                       deadline: float | None) -> None:
        """Run one per-scenario hook."""
        await self.call_hook(
            hook,
            node,
            world,
            scenario=node.title,
            deadline=deadline,
        )

    async def run_group_hook(self, hook: 'HookDefinition', node: GroupNode) -> None:
        """Run one once-per-group hook."""
        await self.call_hook(hook, node, scenario=None, deadline=None)

    async def call_hook(self, hook: 'HookDefinition', node: 'PlanNode',
                        *arguments: Any,  # noqa: ANN401
                        scenario: str | None,
                        deadline: float | None) -> None:
        """Run a hook callback with events and error wrapping."""
        metadata = {'kind': hook.kind, 'node': node.title}
        self.dispatcher.dispatch('hook.started', hook, tags=node.tags, metadata=metadata)

        error: Exception | None = None
        try:
            await self.invoke(hook.callback, *arguments, deadline=deadline)

        except (AssertionError, StepPending, CukeError) as exc:
            error = exc

        except Exception as exc:  # noqa: BLE001
            error = StepRuntimeError.from_callback(
                exc,
                phase=f'{hook.kind} hook',
                scenario=scenario,
                filename=node.uri,
            )
            error.__cause__ = exc

        self.dispatcher.dispatch(
            'hook.completed',
            hook,
            tags=node.tags,
            metadata={**metadata, 'status': self.outcome(error).value},
        )

        if error is not None:
            raise error

    async def invoke(self, callback: 'Callable[..., Any]', *arguments: Any,  # noqa: ANN401
                     deadline: float | None) -> Any:  # noqa: ANN401
        """Call a callback, awaiting awaitable results.

        Raises:
            ScenarioTimeoutError: If the deadline passed while the
                callback was running.
        """
        result = callback(*arguments)
        if isawaitable(result):
            result = await result

        if deadline is not None and get_running_loop().time() > deadline:
            raise ScenarioTimeoutError(
                f'Scenario timed out in {getattr(callback, '__qualname__', callback)!s}',
            )

        return result

    @staticmethod
    def outcome(error: BaseException | None) -> ExecutionStatus:
        """Map a phase error to a status."""
        if error is None:
            return ExecutionStatus.PASSED

        if isinstance(error, StepPending):
            return ExecutionStatus.PENDING

        return ExecutionStatus.FAILED

    @staticmethod
    def timeout_error(node: ScenarioNode) -> ScenarioTimeoutError:
        """Build the error of a scenario exceeding its timeout."""
        return ScenarioTimeoutError(
            f'Scenario {node.title!r} exceeded timeout of {node.timeout}s',
            context={
                'filename': node.uri,
                'line_num': node.line,
                'scenario': node.title,
            },
        )
