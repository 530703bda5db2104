"""Names, tags and vocabulary primitives.

This module defines the base patterns and strongly-typed aliases shared
by the document tree, the scope registry and the plan builder: tag
literals, outline placeholders, scope kinds, execution modes and hook
kinds.
"""

from re import compile as regexp
from typing import TYPE_CHECKING, Annotated, Literal, get_args

from pydantic import Field

if TYPE_CHECKING:
    from collections.abc import Iterable

#: Compiled pattern for a single Gherkin tag literal.
TAG_PATTERN = regexp(r'^@[^\s@]+$')

#: Compiled pattern for a `<placeholder>` token in outline steps.
PLACEHOLDER_PATTERN = regexp(r'<(?P<name>[^<>]+)>')

#: Reserved tag switching a scope or node into the `skip` mode.
SKIP_TAG = '@skip'

#: Reserved tag switching a scope or node into the `only` mode.
ONLY_TAG = '@only'

#: Declaration context of a scope node.
type ScopeKind = Literal['root', 'feature', 'rule', 'background', 'scenario', 'scenario_outline']

#: Execution mode recorded per scope or per document node.
type Mode = Literal['default', 'skip', 'only']

#: Hook buckets recorded per scope.
type HookKind = Literal['setup', 'before', 'before_step', 'after_step', 'after', 'teardown']

SCOPE_KINDS: tuple[str, ...] = get_args(ScopeKind.__value__)
MODES: tuple[str, ...] = get_args(Mode.__value__)
HOOK_KINDS: tuple[str, ...] = get_args(HookKind.__value__)

#: Hook kinds running once per group instead of once per scenario.
GROUP_HOOK_KINDS = ('setup', 'teardown')

#: Scope kinds accepted as a parent for every non-root scope kind.
SCOPE_PARENTS: dict[str, tuple[str, ...]] = {
    'feature': ('root',),
    'rule': ('feature',),
    'background': ('feature', 'rule'),
    'scenario': ('feature', 'rule'),
    'scenario_outline': ('feature', 'rule'),
}

Tag = Annotated[
    str, Field(
        pattern=TAG_PATTERN.pattern,
        title='Tag literal',
        description=(
            'Gherkin tag attached to a feature, rule, scenario, outline '
            'or examples group. Tags start with `@` and contain no spaces.'
        ),
        examples=[
            '@smoke',
            '@skip',
        ],
    ),
]


def mode_from_tags(tags: 'Iterable[str]') -> Mode:
    """Derive an execution mode from reserved tags.

    `@skip` takes precedence over `@only`.

    Args:
        tags: Tag literals of a single element.

    Returns:
        The execution mode expressed by the tags.
    """
    literals = set(tags)
    if SKIP_TAG in literals:
        return 'skip'

    if ONLY_TAG in literals:
        return 'only'

    return 'default'


def merge_modes(*modes: Mode) -> Mode:
    """Combine modes declared for the same level.

    Args:
        *modes: Modes coming from a scope and from document tags.

    Returns:
        `skip` if any mode skips, else `only` if any mode is `only`.
    """
    if 'skip' in modes:
        return 'skip'

    if 'only' in modes:
        return 'only'

    return 'default'
