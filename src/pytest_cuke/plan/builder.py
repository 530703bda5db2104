"""Test plan builder.

The builder compiles parsed Gherkin documents against a frozen scope
registry. For every concrete scenario it:

1. expands outlines into one scenario per examples row;
2. collects the chain of matching scopes, from root to the innermost
   scope declared for the scenario;
3. merges step definitions along the chain into a pattern table where
   inner declarations shadow outer ones;
4. binds every background and scenario step to exactly one definition;
5. assembles the hook chain in onion order;
6. resolves the scenario state from tag filters and execution modes.

Resolution failures are recorded on the scenario, which becomes
`broken`; plan building always continues with the next scenario.
"""

from collections import Counter
from typing import TYPE_CHECKING

from pytest_cuke.errors import (
    AmbiguousStepError,
    ResolutionError,
    ScopeConfigurationError,
    UndefinedStepError,
)
from pytest_cuke.names import merge_modes, mode_from_tags
from pytest_cuke.spec.nodes import Rule, ScenarioOutline
from pytest_cuke.tags import compile_tag_expression, match_tags

from .nodes import (
    ExamplesNode,
    FeatureNode,
    GroupNode,
    HookChain,
    PlanNode,
    RuleNode,
    ScenarioNode,
    ScenarioOutlineNode,
    StepBinding,
    TestPlan,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from pytest_cuke.names import HookKind, Mode, ScopeKind
    from pytest_cuke.scopes.registry import HookDefinition, ScopeNode, ScopeRegistry, StepDefinition
    from pytest_cuke.spec.nodes import Background, Document, Feature, Scenario, Step

    from .nodes import ScenarioState


def unique_tags(*groups: 'Iterable[str]') -> tuple[str, ...]:
    """Concatenate tag groups dropping repeated tags."""
    return tuple(dict.fromkeys(tag for group in groups for tag in group))


def unique_titles[T: PlanNode](nodes: 'Iterable[T]') -> tuple[T, ...]:
    """Make sibling titles unique by numbering repeated ones."""
    nodes = tuple(nodes)
    counts = Counter(node.title for node in nodes)
    seen: Counter[str] = Counter()

    result = []
    for node in nodes:
        if counts[node.title] > 1:
            seen[node.title] += 1
            node = node.model_copy(update={'title': f'{node.title} ({seen[node.title]})'})  # noqa: PLW2901
        result.append(node)

    return tuple(result)


def has_only(node: PlanNode) -> bool:
    """Check whether a node or any of its descendants is marked `only`."""
    if node.mode == 'only':
        return True

    if isinstance(node, GroupNode):
        return any(has_only(child) for child in node.children)

    return False


def exclude[T: PlanNode](node: T, reason: str) -> T:
    """Mark all scenarios at or below a node as `skipped`.

    Pending scenarios keep their state.
    """
    if isinstance(node, ScenarioNode):
        if node.state == 'pending':
            return node
        return node.model_copy(update={
            'state': 'skipped',
            'reason': reason,
            'error': None,
        })

    if isinstance(node, GroupNode):
        return node.model_copy(update={
            'children': tuple(exclude(child, reason) for child in node.children),
        })

    return node


def restrict[T: PlanNode](nodes: 'Sequence[T]') -> tuple[T, ...]:
    """Apply `only` restriction among siblings, recursively.

    When any sibling (or one of its descendants) is marked `only`,
    siblings without such a mark are excluded.
    """
    focused = any(has_only(node) for node in nodes)

    result = []
    for node in nodes:
        if focused and not has_only(node):
            result.append(exclude(node, 'Excluded by @only'))
            continue

        if isinstance(node, GroupNode):
            node = node.model_copy(update={'children': restrict(node.children)})  # noqa: PLW2901
        result.append(node)

    return tuple(result)


class PlanBuilder:
    """Compiler of Gherkin documents into a test plan."""

    def __init__(self, registry: 'ScopeRegistry', *,
                 tag_filter: str | None = None,
                 default_timeout: float | None = None) -> None:
        """Initialize the builder.

        Args:
            registry: Scope registry; must be frozen before `build`.
            tag_filter: Optional tag expression selecting scenarios.
            default_timeout: Scenario timeout used when no scope sets one.

        Raises:
            ConfigurationError: If the tag filter is malformed.
        """
        if tag_filter:
            compile_tag_expression(tag_filter)

        self.registry = registry
        self.tag_filter = tag_filter
        self.default_timeout = default_timeout

    def build(self, *documents: 'Document') -> TestPlan:
        """Compile documents into a test plan.

        Args:
            *documents: Parsed documents in execution order.
                Documents without a feature are ignored.

        Returns:
            Immutable test plan.

        Raises:
            ScopeConfigurationError: If the registry is not frozen.
        """
        if not self.registry.frozen:
            raise ScopeConfigurationError('Cannot build a test plan from an unfrozen registry')

        features = [
            self.build_feature(
                document.feature,
                uri=document.uri,
                key=document.uri or f'<document {index}>',
            )
            for index, document in enumerate(documents)
            if document.feature
        ]

        return TestPlan(features=restrict(features))

    def build_feature(self, feature: 'Feature', *,
                      uri: str | None = None,
                      key: str | None = None) -> FeatureNode:
        """Compile one feature.

        Node identifiers are prefixed with `key`, the source URI by default.
        """
        key = key or uri or feature.name
        scope = self.registry.root.find_child('feature', feature.name)
        scopes = self.extend((self.registry.root,), scope)

        backgrounds: tuple[Background, ...] = ()
        if feature.background:
            backgrounds = (feature.background,)
            scopes = self.extend(scopes, self.find_scope(scope, 'background', feature.background.name))

        children: list[ScenarioNode | ScenarioOutlineNode | RuleNode] = []
        for child in feature.children:
            if isinstance(child, Rule):
                children.append(self.build_rule(
                    child,
                    uri=uri,
                    key=key,
                    scopes=scopes,
                    parent=scope,
                    tags=feature.tags,
                    backgrounds=backgrounds,
                ))
            else:
                children.append(self.build_child(
                    child,
                    uri=uri,
                    key=key,
                    scopes=scopes,
                    parent=scope,
                    tags=feature.tags,
                    backgrounds=backgrounds,
                ))

        return FeatureNode(
            id=key,
            title=feature.name or feature.keyword,
            tags=unique_tags(*(node.tags for node in scopes), feature.tags),
            mode=self.own_mode(scope, feature.tags),
            uri=uri,
            feature=feature,
            children=unique_titles(children),
            setup=self.group_hooks(scope, 'setup'),
            teardown=self.group_hooks(scope, 'teardown'),
        )

    def build_rule(self, rule: Rule, *,
                   uri: str | None,
                   key: str,
                   scopes: tuple['ScopeNode', ...],
                   parent: 'ScopeNode | None',
                   tags: tuple[str, ...],
                   backgrounds: tuple['Background', ...]) -> RuleNode:
        """Compile one rule of a feature."""
        scope = self.find_scope(parent, 'rule', rule.name)
        scopes = self.extend(scopes, scope)
        tags = unique_tags(tags, rule.tags)

        if rule.background:
            backgrounds = (*backgrounds, rule.background)
            scopes = self.extend(scopes, self.find_scope(scope, 'background', rule.background.name))

        children = [
            self.build_child(
                child,
                uri=uri,
                key=key,
                scopes=scopes,
                parent=scope,
                tags=tags,
                backgrounds=backgrounds,
            )
            for child in rule.children
        ]

        return RuleNode(
            id=f'{key}#{rule.id}',
            title=rule.name or rule.keyword,
            tags=unique_tags(*(node.tags for node in scopes), tags),
            mode=self.own_mode(scope, rule.tags),
            uri=uri,
            rule=rule,
            children=unique_titles(children),
            setup=self.group_hooks(scope, 'setup'),
            teardown=self.group_hooks(scope, 'teardown'),
        )

    def build_child(self, child: 'Scenario | ScenarioOutline', *,
                    uri: str | None,
                    key: str,
                    scopes: tuple['ScopeNode', ...],
                    parent: 'ScopeNode | None',
                    tags: tuple[str, ...],
                    backgrounds: tuple['Background', ...]) -> ScenarioNode | ScenarioOutlineNode:
        """Compile a scenario or an outline."""
        if isinstance(child, ScenarioOutline):
            return self.build_outline(
                child,
                uri=uri,
                key=key,
                scopes=scopes,
                parent=parent,
                tags=tags,
                backgrounds=backgrounds,
            )

        scope = self.find_scope(parent, 'scenario', child.name)

        return self.build_scenario(
            child,
            uri=uri,
            key=key,
            scopes=self.extend(scopes, scope),
            tags=unique_tags(tags, child.tags),
            backgrounds=backgrounds,
            mode=self.own_mode(scope, child.tags),
        )

    def build_outline(self, outline: ScenarioOutline, *,
                      uri: str | None,
                      key: str,
                      scopes: tuple['ScopeNode', ...],
                      parent: 'ScopeNode | None',
                      tags: tuple[str, ...],
                      backgrounds: tuple['Background', ...]) -> ScenarioOutlineNode:
        """Compile an outline, expanding every examples group."""
        scope = self.find_scope(parent, 'scenario_outline', outline.name)
        scopes = self.extend(scopes, scope)

        groups = []
        for examples in outline.examples:
            scenarios = [
                self.build_scenario(
                    scenario,
                    uri=uri,
                    key=key,
                    scopes=scopes,
                    tags=unique_tags(tags, scenario.tags),
                    backgrounds=backgrounds,
                    example_index=index,
                )
                for index, scenario in enumerate(outline.expand(examples))
            ]
            groups.append(ExamplesNode(
                id=f'{key}#{examples.id}',
                title=examples.name or examples.keyword or 'Examples',
                tags=unique_tags(*(node.tags for node in scopes), tags, outline.tags, examples.tags),
                mode=mode_from_tags(examples.tags),
                uri=uri,
                examples=examples,
                children=unique_titles(scenarios),
            ))

        return ScenarioOutlineNode(
            id=f'{key}#{outline.id}',
            title=outline.name or outline.keyword,
            tags=unique_tags(*(node.tags for node in scopes), tags, outline.tags),
            mode=self.own_mode(scope, outline.tags),
            uri=uri,
            scenario_outline=outline,
            children=unique_titles(groups),
        )

    def build_scenario(self, scenario: 'Scenario', *,
                       uri: str | None,
                       key: str,
                       scopes: tuple['ScopeNode', ...],
                       tags: tuple[str, ...],
                       backgrounds: tuple['Background', ...],
                       mode: 'Mode' = 'default',
                       example_index: int | None = None) -> ScenarioNode:
        """Compile one concrete scenario."""
        title = scenario.name or scenario.keyword
        tags = unique_tags(*(node.tags for node in scopes), tags)

        state: ScenarioState = 'ready'
        reason: str | None = None
        if not match_tags(self.tag_filter, tags):
            state, reason = 'pending', f'Excluded by tag filter {self.tag_filter!r}'
        elif any(node.mode == 'skip' for node in scopes) or mode_from_tags(tags) == 'skip':
            state, reason = 'pending', 'Skipped by @skip'

        error: ResolutionError | None = None
        steps: tuple[StepBinding, ...] = ()
        try:
            steps = self.bind_steps(
                scenario,
                title=title,
                uri=uri,
                table=self.merge_steps(scopes),
                backgrounds=backgrounds,
            )
        except ResolutionError as exc:
            if state == 'ready':
                state, reason, error = 'broken', exc.message, exc

        return ScenarioNode(
            id=f'{key}#{scenario.id}',
            title=title,
            tags=tags,
            mode=mode,
            uri=uri,
            scenario=scenario,
            steps=steps,
            hooks=HookChain(
                before=self.chain_hooks(scopes, 'before', tags),
                before_step=self.chain_hooks(scopes, 'before_step', tags),
                after_step=self.chain_hooks(scopes, 'after_step', tags, reverse=True),
                after=self.chain_hooks(scopes, 'after', tags, reverse=True),
            ),
            state=state,
            reason=reason,
            error=error,
            timeout=self.resolve_timeout(scopes),
            example_index=example_index,
        )

    @staticmethod
    def merge_steps(scopes: 'Iterable[ScopeNode]') -> dict[str, 'StepDefinition']:
        """Merge step definitions along a scope chain.

        Inner scopes overwrite entries with the same pattern key and
        append entries unique to them.
        """
        table: dict[str, StepDefinition] = {}
        for scope in scopes:
            table.update(scope.steps)

        return table

    def bind_steps(self, scenario: 'Scenario', *,
                   title: str,
                   uri: str | None,
                   table: dict[str, 'StepDefinition'],
                   backgrounds: tuple['Background', ...]) -> tuple[StepBinding, ...]:
        """Bind background and scenario steps to definitions.

        Raises:
            UndefinedStepError: If no definition matches a step.
            AmbiguousStepError: If several definitions match a step.
        """
        steps: list[tuple[Step, bool]] = [
            (step, True)
            for background in backgrounds
            for step in background.steps
        ]
        steps.extend((step, False) for step in scenario.steps)

        bindings = []
        for step_num, (step, background) in enumerate(steps):
            definition, arguments = self.match_step(
                step,
                table,
                title=title,
                uri=uri,
                step_num=step_num,
            )
            bindings.append(StepBinding(
                step=step,
                definition=definition,
                arguments=arguments,
                background=background,
            ))

        return tuple(bindings)

    @staticmethod
    def match_step(step: 'Step', table: dict[str, 'StepDefinition'], *,
                   title: str,
                   uri: str | None,
                   step_num: int) -> tuple['StepDefinition', tuple]:
        """Find the single definition matching a step."""
        matches = [
            (definition, arguments)
            for definition in table.values()
            if (arguments := definition.match(step.text)) is not None
        ]

        if len(matches) == 1:
            return matches[0]

        location = {
            'scenario': title,
            'filename': uri,
            'line_num': step.location.line if step.location else None,
            'column_num': step.location.column if step.location else None,
            'step_num': step_num,
        }

        if not matches:
            raise UndefinedStepError.for_step(
                f'Undefined step {step.literal!r}',
                text=step.literal,
                **location,
            )

        patterns = [definition.key for definition, _ in matches]
        raise AmbiguousStepError.for_step(
            f'Ambiguous step {step.literal!r} matches {len(patterns)} patterns',
            text=step.literal,
            patterns=patterns,
            **location,
        )

    @staticmethod
    def chain_hooks(scopes: 'Iterable[ScopeNode]', kind: 'HookKind',
                    tags: tuple[str, ...], *,
                    reverse: bool = False) -> tuple['HookDefinition', ...]:
        """Collect per-scenario hooks along a scope chain.

        Hooks are ordered outer to inner in registration order; with
        `reverse` the whole sequence runs inner to outer.
        """
        hooks = [
            hook
            for scope in scopes
            for hook in scope.hooks[kind]
            if hook.matches(tags)
        ]
        if reverse:
            hooks.reverse()

        return tuple(hooks)

    @staticmethod
    def group_hooks(scope: 'ScopeNode | None', kind: 'HookKind') -> tuple['HookDefinition', ...]:
        """Collect once-per-group hooks declared at a scope."""
        if scope is None:
            return ()

        return tuple(scope.hooks[kind])

    def resolve_timeout(self, scopes: 'Sequence[ScopeNode]') -> float | None:
        """Return the innermost scope timeout or the default one."""
        for scope in reversed(scopes):
            if scope.timeout is not None:
                return scope.timeout

        return self.default_timeout

    @staticmethod
    def own_mode(scope: 'ScopeNode | None', tags: 'Iterable[str]') -> 'Mode':
        """Return the mode declared at one level by a scope and document tags."""
        return merge_modes(
            scope.mode if scope else 'default',
            mode_from_tags(tags),
        )

    @staticmethod
    def find_scope(parent: 'ScopeNode | None', kind: 'ScopeKind',
                   name: str) -> 'ScopeNode | None':
        """Find a child scope, tolerating a missing parent."""
        if parent is None:
            return None

        return parent.find_child(kind, name)

    @staticmethod
    def extend(scopes: tuple['ScopeNode', ...],
               scope: 'ScopeNode | None') -> tuple['ScopeNode', ...]:
        """Append a scope to a chain when it exists."""
        if scope is None:
            return scopes

        return (*scopes, scope)
