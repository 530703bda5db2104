"""Tag expression support.

Tag expressions use the Cucumber grammar: `@tag` literals combined with
`and`, `or`, `not` and parentheses, e.g. `@smoke and not @slow`.
Expressions are compiled once and cached.
"""

from functools import cache
from typing import TYPE_CHECKING

from cucumber_tag_expressions import parse
from cucumber_tag_expressions.parser import TagExpressionError

from pytest_cuke.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cucumber_tag_expressions.model import Expression


@cache
def compile_tag_expression(expression: str) -> 'Expression':
    """Compile a tag expression.

    Args:
        expression: Tag expression source.

    Returns:
        Compiled expression with an `evaluate` method.

    Raises:
        ConfigurationError: If the expression is malformed.
    """
    try:
        return parse(expression)

    except TagExpressionError as base:
        raise ConfigurationError(f'Invalid tag expression {expression!r}: {base}') from base


def match_tags(expression: str | None, tags: 'Iterable[str]') -> bool:
    """Evaluate a tag expression against a set of tags.

    An empty or missing expression matches everything.

    Args:
        expression: Tag expression source.
        tags: Effective tags of a scenario.

    Returns:
        Whether the tags satisfy the expression.
    """
    if not expression:
        return True

    return compile_tag_expression(expression).evaluate(list(tags))
