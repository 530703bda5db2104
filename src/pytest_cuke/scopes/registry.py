"""Scope registry.

The registry records step and hook declarations made by user code
together with the scope they were declared in. Scopes form a tree rooted
at a global scope:

    root
    └── feature
        ├── background
        ├── scenario / scenario_outline
        └── rule
            ├── background
            └── scenario / scenario_outline

Declarations are made between `open_scope` and `close_scope` calls (or
inside the `scope` context manager) and attach to the innermost open
scope. The registry is frozen explicitly before a test plan is built
from it; any mutation afterwards is a configuration error.
"""

from collections.abc import Callable  # noqa: TC003
from contextlib import contextmanager
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pydantic import Field

from pytest_cuke.errors import ScopeConfigurationError
from pytest_cuke.models import SchemaModel
from pytest_cuke.names import (
    GROUP_HOOK_KINDS,
    HOOK_KINDS,
    SCOPE_PARENTS,
    HookKind,
    Mode,
    ScopeKind,
    merge_modes,
    mode_from_tags,
)
from pytest_cuke.tags import compile_tag_expression

from .patterns import StepPattern, TypeConverter, compile_pattern

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping
    from re import Pattern

#: Scope kinds which may be declared only once per parent.
TERMINAL_SCOPE_KINDS = ('scenario', 'scenario_outline')

#: Scope kinds allowed to host group hooks.
GROUP_SCOPE_KINDS = ('feature', 'rule')


class StepDefinition(SchemaModel):
    """Step binding declared at a scope."""

    pattern: StepPattern = Field(
        title='Pattern',
        description='Compiled step pattern.',
    )

    callback: Callable[..., Any] = Field(
        title='Callback',
        description='Function or coroutine function implementing the step.',
    )

    keyword: str = Field(
        default='Step',
        title='Keyword',
        description='Declaring keyword: Given, When, Then or Step. Informational only.',
    )

    scope_id: str = Field(
        title='Scope',
        description='Identifier of the declaring scope.',
    )

    @property
    def key(self) -> str:
        """Return the pattern key."""
        return self.pattern.key

    def match(self, text: str) -> tuple[Any, ...] | None:
        """Match a step text against the pattern."""
        return self.pattern.match(text)


class HookDefinition(SchemaModel):
    """Hook declared at a scope."""

    kind: HookKind

    callback: Callable[..., Any]

    tags: str | None = Field(
        default=None,
        title='Tag expression',
        description='Limits the hook to scenarios whose effective tags match.',
    )

    scope_id: str

    def matches(self, tags: 'Iterable[str]') -> bool:
        """Check whether the hook applies to a scenario with given tags."""
        if not self.tags:
            return True

        return compile_tag_expression(self.tags).evaluate(list(tags))


class ScopeNode:
    """Declaration context of steps and hooks.

    Nodes are mutable while the registry is open. Freezing the registry
    turns their containers into read-only views.
    """

    def __init__(self, kind: ScopeKind, name: str = '', *,
                 tags: 'Iterable[str]' = (),
                 mode: Mode | None = None,
                 timeout: float | None = None,
                 parent: 'ScopeNode | None' = None) -> None:
        """Initialize a scope node.

        Args:
            kind: Declaration context kind.
            name: Name matched against Gherkin element titles.
            tags: Tags added to every scenario within the scope.
            mode: Explicit execution mode; derived from tags if omitted.
            timeout: Scenario timeout in seconds for the whole subtree.
            parent: Enclosing scope, `None` for the root.
        """
        self.kind = kind
        self.name = name
        self.parent = parent

        self.id = 'root' if parent is None else f'{parent.id}/{kind}:{name}'

        self.tags: tuple[str, ...] = tuple(tags)
        self.mode: Mode = mode or mode_from_tags(self.tags)
        self.timeout = timeout

        self.steps: Mapping[str, StepDefinition] = {}
        self.hooks: Mapping[str, list[HookDefinition] | tuple[HookDefinition, ...]] = {
            hook_kind: [] for hook_kind in HOOK_KINDS
        }
        self.children: list[ScopeNode] | tuple[ScopeNode, ...] = []

    def __repr__(self) -> str:
        """String representation."""
        return f'ScopeNode({self.id!r}, mode={self.mode!r})'

    def find_child(self, kind: ScopeKind, name: str) -> 'ScopeNode | None':
        """Find a direct child scope by kind and name."""
        for child in self.children:
            if child.kind == kind and child.name == name:
                return child

        return None

    def walk(self) -> 'Iterator[ScopeNode]':
        """Iterate over the node and all of its descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def freeze(self) -> None:
        """Turn the node containers into read-only views."""
        self.steps = MappingProxyType(dict(self.steps))
        self.hooks = MappingProxyType({
            kind: tuple(hooks)
            for kind, hooks in self.hooks.items()
        })
        self.children = tuple(self.children)


class ScopeRegistry:
    """Registry of scoped step and hook declarations.

    Example:
        >>> registry = ScopeRegistry()
        >>> @registry.given('a counter at {value:d}')
        ... def counter(value, world):
        ...     world.counter = value
        >>> with registry.scope('feature', 'Counter'):
        ...     @registry.before
        ...     def reset(world):
        ...         world.calls = []
        >>> registry.freeze()
    """

    def __init__(self) -> None:
        """Initialize an empty registry with an open root scope."""
        self.root = ScopeNode('root')
        self.types: dict[str, TypeConverter] = {}

        self._stack: list[ScopeNode] = [self.root]
        self._frozen = False

    @property
    def current(self) -> ScopeNode:
        """Return the innermost open scope."""
        return self._stack[-1]

    @property
    def frozen(self) -> bool:
        """Return whether registration has ended."""
        return self._frozen

    def _ensure_open(self, action: str) -> None:
        """Reject mutations of a frozen registry."""
        if self._frozen:
            raise ScopeConfigurationError(f'Cannot {action}: registry is frozen')

    def open_scope(self, kind: ScopeKind, name: str = '', *,
                   tags: 'Iterable[str]' = (),
                   mode: Mode | None = None,
                   timeout: float | None = None) -> ScopeNode:
        """Open a scope nested in the current one.

        Feature, rule and background scopes may be opened several times
        under the same parent: declarations accumulate on a single node.
        Scenario and outline scopes are unique per parent.

        Args:
            kind: Scope kind.
            name: Title of the matching Gherkin element.
            tags: Tags added to scenarios within the scope.
            mode: Explicit execution mode.
            timeout: Scenario timeout in seconds for the subtree.

        Returns:
            The opened scope node.

        Raises:
            ScopeConfigurationError: If the kind cannot be nested in the
                current scope, a terminal scope is declared twice, or the
                registry is frozen.
        """
        self._ensure_open(f'open {kind} scope {name!r}')

        parent = self.current
        if parent.kind not in SCOPE_PARENTS.get(kind, ()):
            raise ScopeConfigurationError(
                f'Scope {kind!r} cannot be declared inside {parent.kind!r} scope',
            )

        if timeout is not None and timeout <= 0:
            raise ScopeConfigurationError(
                f'Timeout of {kind} scope {name!r} must be positive, got {timeout!r}',
            )

        if node := parent.find_child(kind, name):
            if kind in TERMINAL_SCOPE_KINDS:
                raise ScopeConfigurationError(
                    f'Duplicate {kind} scope {name!r} in {parent.id!r}',
                )

            node.tags = (*node.tags, *(tag for tag in tags if tag not in node.tags))
            node.mode = merge_modes(node.mode, mode or mode_from_tags(tags))
            if timeout is not None:
                node.timeout = timeout

        else:
            node = ScopeNode(
                kind,
                name,
                tags=tags,
                mode=mode,
                timeout=timeout,
                parent=parent,
            )
            parent.children.append(node)

        self._stack.append(node)

        return node

    def close_scope(self) -> ScopeNode:
        """Close the innermost open scope.

        Returns:
            The closed scope node.

        Raises:
            ScopeConfigurationError: If no scope is open.
        """
        self._ensure_open('close scope')

        if len(self._stack) == 1:
            raise ScopeConfigurationError('No open scope to close')

        return self._stack.pop()

    @contextmanager
    def scope(self, kind: ScopeKind, name: str = '', *,
              tags: 'Iterable[str]' = (),
              mode: Mode | None = None,
              timeout: float | None = None) -> 'Iterator[ScopeNode]':
        """Open a scope for the duration of a `with` block."""
        node = self.open_scope(
            kind,
            name,
            tags=tags,
            mode=mode,
            timeout=timeout,
        )
        try:
            yield node
        finally:
            self.close_scope()

    def register_type(self, name: str, converter: TypeConverter) -> None:
        """Register a custom field type for `parse` patterns.

        The type is available to patterns registered after this call.

        Args:
            name: Type name used in patterns, e.g. `Color` in `{color:Color}`.
            converter: Function converting the matched text.
        """
        self._ensure_open(f'register type {name!r}')
        self.types[name] = converter

    def register_step(self, pattern: 'str | Pattern[str] | StepPattern',
                      callback: 'Callable[..., Any]', *,
                      keyword: str = 'Step') -> StepDefinition:
        """Attach a step definition to the current scope.

        A pattern already declared at the same scope is replaced.

        Args:
            pattern: `parse` expression or compiled regular expression.
            callback: Step implementation.
            keyword: Declaring keyword, informational only.

        Returns:
            The registered step definition.
        """
        self._ensure_open('register step')

        scope = self.current
        definition = StepDefinition(
            pattern=compile_pattern(pattern, types=self.types),
            callback=callback,
            keyword=keyword,
            scope_id=scope.id,
        )
        scope.steps[definition.key] = definition  # type: ignore[index]

        return definition

    def register_hook(self, kind: HookKind, callback: 'Callable[..., Any]', *,
                      tags: str | None = None) -> HookDefinition:
        """Append a hook to the current scope.

        Args:
            kind: Hook kind.
            callback: Hook implementation.
            tags: Optional tag expression limiting the hook.

        Returns:
            The registered hook definition.

        Raises:
            ScopeConfigurationError: If the kind is unknown or the group
                hook is declared outside a feature or rule scope.
            ConfigurationError: If the tag expression is malformed.
        """
        self._ensure_open(f'register {kind} hook')

        if kind not in HOOK_KINDS:
            raise ScopeConfigurationError(f'Unknown hook kind {kind!r}')

        scope = self.current
        if kind in GROUP_HOOK_KINDS and scope.kind not in GROUP_SCOPE_KINDS:
            raise ScopeConfigurationError(
                f'Hook {kind!r} is allowed in feature or rule scope only, '
                f'not in {scope.kind!r}',
            )

        if tags:
            compile_tag_expression(tags)

        hook = HookDefinition(
            kind=kind,
            callback=callback,
            tags=tags,
            scope_id=scope.id,
        )
        scope.hooks[kind].append(hook)  # type: ignore[union-attr]

        return hook

    def freeze(self) -> None:
        """End registration.

        Freezing twice has no effect.

        Raises:
            ScopeConfigurationError: If scopes are still open.
        """
        if self._frozen:
            return

        if len(self._stack) > 1:
            raise ScopeConfigurationError(
                f'Cannot freeze registry with open scope {self.current.id!r}',
            )

        for node in self.root.walk():
            node.freeze()

        self._frozen = True

    def walk(self) -> 'Iterator[ScopeNode]':
        """Iterate over all scopes, depth first."""
        return self.root.walk()

    def _step_decorator(self, pattern: 'str | Pattern[str] | StepPattern',
                        keyword: str) -> 'Callable[[Callable[..., Any]], Callable[..., Any]]':
        """Build a step registering decorator."""
        def decorator(callback: 'Callable[..., Any]') -> 'Callable[..., Any]':
            self.register_step(pattern, callback, keyword=keyword)
            return callback

        return decorator

    def given(self, pattern: 'str | Pattern[str] | StepPattern') -> 'Callable[[Callable[..., Any]], Callable[..., Any]]':
        """Register a `Given` step with a decorator."""
        return self._step_decorator(pattern, 'Given')

    def when(self, pattern: 'str | Pattern[str] | StepPattern') -> 'Callable[[Callable[..., Any]], Callable[..., Any]]':
        """Register a `When` step with a decorator."""
        return self._step_decorator(pattern, 'When')

    def then(self, pattern: 'str | Pattern[str] | StepPattern') -> 'Callable[[Callable[..., Any]], Callable[..., Any]]':
        """Register a `Then` step with a decorator."""
        return self._step_decorator(pattern, 'Then')

    def step(self, pattern: 'str | Pattern[str] | StepPattern') -> 'Callable[[Callable[..., Any]], Callable[..., Any]]':
        """Register a keyword-agnostic step with a decorator."""
        return self._step_decorator(pattern, 'Step')

    def _hook_decorator(self, kind: HookKind,
                        callback: 'Callable[..., Any] | None',
                        tags: str | None) -> Any:  # noqa: ANN401
        """Register a hook, used bare or with arguments."""
        if callback is not None:
            self.register_hook(kind, callback, tags=tags)
            return callback

        def decorator(func: 'Callable[..., Any]') -> 'Callable[..., Any]':
            self.register_hook(kind, func, tags=tags)
            return func

        return decorator

    def setup(self, callback: 'Callable[..., Any] | None' = None) -> Any:  # noqa: ANN401
        """Register a once-per-group setup hook."""
        return self._hook_decorator('setup', callback, None)

    def teardown(self, callback: 'Callable[..., Any] | None' = None) -> Any:  # noqa: ANN401
        """Register a once-per-group teardown hook."""
        return self._hook_decorator('teardown', callback, None)

    def before(self, callback: 'Callable[..., Any] | None' = None, *,
               tags: str | None = None) -> Any:  # noqa: ANN401
        """Register a per-scenario hook running before the steps."""
        return self._hook_decorator('before', callback, tags)

    def after(self, callback: 'Callable[..., Any] | None' = None, *,
              tags: str | None = None) -> Any:  # noqa: ANN401
        """Register a per-scenario hook running after the steps."""
        return self._hook_decorator('after', callback, tags)

    def before_step(self, callback: 'Callable[..., Any] | None' = None, *,
                    tags: str | None = None) -> Any:  # noqa: ANN401
        """Register a hook running before every step."""
        return self._hook_decorator('before_step', callback, tags)

    def after_step(self, callback: 'Callable[..., Any] | None' = None, *,
                   tags: str | None = None) -> Any:  # noqa: ANN401
        """Register a hook running after every step."""
        return self._hook_decorator('after_step', callback, tags)
