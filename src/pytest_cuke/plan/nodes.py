"""Immutable test plan.

A test plan is the result of compiling parsed Gherkin documents against a
frozen scope registry. Group nodes (features, rules, outlines and
examples groups) mirror the document structure; leaves are scenarios
with their resolved step bindings and hook chains.
"""

from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field

from pytest_cuke.errors import ResolutionError  # noqa: TC001
from pytest_cuke.models import SchemaModel
from pytest_cuke.names import Mode  # noqa: TC001
from pytest_cuke.scopes.registry import HookDefinition, StepDefinition  # noqa: TC001
from pytest_cuke.spec.nodes import Examples, Feature, Rule, Scenario, ScenarioOutline, Step  # noqa: TC001

if TYPE_CHECKING:
    from collections.abc import Iterator

#: Resolution outcome of a scenario.
type ScenarioState = Literal['ready', 'pending', 'skipped', 'broken']


class StepBinding(SchemaModel):
    """Step resolved to exactly one definition."""

    step: Step

    definition: StepDefinition

    arguments: tuple[Any, ...] = Field(
        default=(),
        title='Arguments',
        description='Values extracted from the step text by the pattern.',
    )

    background: bool = Field(
        default=False,
        title='Background step',
        description='Whether the step comes from a feature or rule background.',
    )

    @property
    def payload(self) -> Any:  # noqa: ANN401
        """Return the step data table or doc string, if any."""
        return self.step.payload


class HookChain(SchemaModel):
    """Per-scenario hooks in execution order."""

    before: tuple[HookDefinition, ...] = ()
    before_step: tuple[HookDefinition, ...] = ()
    after_step: tuple[HookDefinition, ...] = ()
    after: tuple[HookDefinition, ...] = ()


class PlanNode(SchemaModel):
    """Base plan node."""

    id: str = Field(
        title='Identifier',
        description='Identifier unique within the plan.',
    )

    title: str = Field(
        title='Title',
        description='Display title, unique among siblings.',
    )

    tags: tuple[str, ...] = Field(
        default=(),
        title='Effective tags',
        description='Tags collected along the scope chain and the document.',
    )

    mode: Mode = Field(
        default='default',
        title='Mode',
        description='Mode declared at the level of this node.',
    )

    uri: str | None = None

    def scenarios(self) -> 'Iterator[ScenarioNode]':
        """Iterate over scenarios at or below this node."""
        yield from ()

    @property
    def runnable(self) -> bool:
        """Whether any scenario at or below this node is ready."""
        return any(scenario.state == 'ready' for scenario in self.scenarios())


class ScenarioNode(PlanNode):
    """Executable scenario."""

    kind: Literal['scenario'] = 'scenario'

    scenario: Scenario

    steps: tuple[StepBinding, ...] = ()
    hooks: HookChain = HookChain()

    state: ScenarioState = 'ready'

    reason: str | None = Field(
        default=None,
        title='Reason',
        description='Why the scenario is not ready.',
    )

    error: ResolutionError | None = None

    timeout: float | None = Field(
        default=None,
        gt=0,
        title='Timeout',
        description='Limit for the whole scenario run, in seconds.',
    )

    example_index: int | None = Field(
        default=None,
        title='Example index',
        description='Position of the examples row for expanded outline scenarios.',
    )

    @property
    def line(self) -> int | None:
        """Return the source line of the scenario."""
        location = self.scenario.location
        return location.line if location else None

    def scenarios(self) -> 'Iterator[ScenarioNode]':
        """Yield the scenario itself."""
        yield self


class GroupNode(PlanNode):
    """Plan node with ordered children."""

    children: tuple[PlanNode, ...] = ()

    def scenarios(self) -> 'Iterator[ScenarioNode]':
        """Iterate over scenarios below this node in document order."""
        for child in self.children:
            yield from child.scenarios()


class ExamplesNode(GroupNode):
    """Examples group holding expanded scenarios."""

    kind: Literal['examples'] = 'examples'

    examples: Examples
    children: tuple[ScenarioNode, ...] = ()


class ScenarioOutlineNode(GroupNode):
    """Scenario outline holding its examples groups."""

    kind: Literal['scenario_outline'] = 'scenario_outline'

    scenario_outline: ScenarioOutline
    children: tuple[ExamplesNode, ...] = ()


class RuleNode(GroupNode):
    """Rule grouping scenarios of a feature."""

    kind: Literal['rule'] = 'rule'

    rule: Rule
    children: tuple[ScenarioNode | ScenarioOutlineNode, ...] = ()

    setup: tuple[HookDefinition, ...] = ()
    teardown: tuple[HookDefinition, ...] = ()


class FeatureNode(GroupNode):
    """Feature compiled from one document."""

    kind: Literal['feature'] = 'feature'

    feature: Feature
    children: tuple[ScenarioNode | ScenarioOutlineNode | RuleNode, ...] = ()

    setup: tuple[HookDefinition, ...] = ()
    teardown: tuple[HookDefinition, ...] = ()


class TestPlan(SchemaModel):
    """Compiled test plan."""

    __test__ = False

    features: tuple[FeatureNode, ...] = ()

    def scenarios(self) -> 'Iterator[ScenarioNode]':
        """Iterate over all scenarios in document order."""
        for feature in self.features:
            yield from feature.scenarios()

    def find(self, node_id: str) -> PlanNode | None:
        """Find a node by identifier."""
        stack: list[PlanNode] = list(self.features)
        while stack:
            node = stack.pop()
            if node.id == node_id:
                return node
            if isinstance(node, GroupNode):
                stack.extend(node.children)

        return None
