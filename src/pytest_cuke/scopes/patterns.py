"""Step text patterns.

Two kinds of patterns are supported:
- `parse` expressions such as `I have {count:d} apples`, the default;
- compiled regular expressions, matched against the whole step text.

Both expose a stable `key` used by the scope registry to detect
re-declarations of the same pattern and a `match` method returning the
extracted arguments in the order they appear in the step text.
"""

from abc import ABC, abstractmethod
from re import Pattern
from typing import TYPE_CHECKING, Any

from parse import compile as parse_compile

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from parse import Parser

#: Custom `parse` field converter.
type TypeConverter = Callable[[str], Any]


class StepPattern(ABC):
    """Base step pattern."""

    def __init__(self, source: str) -> None:
        """Initialize the pattern.

        Args:
            source: Pattern as written by the step author.
        """
        self.source = source

    @property
    @abstractmethod
    def key(self) -> str:
        """Identity of the pattern within one scope."""

    @abstractmethod
    def match(self, text: str) -> tuple[Any, ...] | None:
        """Match a step text against the pattern.

        Args:
            text: Step text without the keyword.

        Returns:
            Extracted arguments, or `None` if the text does not match.
        """

    def __repr__(self) -> str:
        """String representation."""
        return f'{type(self).__name__}({self.key!r})'


class ParsePattern(StepPattern):
    """Step pattern backed by a `parse` expression."""

    def __init__(self, source: str, *,
                 types: 'Mapping[str, TypeConverter] | None' = None) -> None:
        """Compile a `parse` expression.

        Args:
            source: Format-like expression, e.g. `a counter at {value:d}`.
            types: Custom field types available to the expression.
        """
        super().__init__(source)

        self.parser: Parser = parse_compile(
            source,
            extra_types=dict(types or {}),
            case_sensitive=True,
        )

    @property
    def key(self) -> str:
        """Return the expression itself."""
        return self.source

    def match(self, text: str) -> tuple[Any, ...] | None:
        """Match the whole step text.

        Named and anonymous fields are returned positionally, in the
        order of their position in the text.
        """
        result = self.parser.parse(text)
        if result is None:
            return None

        fields = [
            (result.spans[index][0], value)
            for index, value in enumerate(result.fixed)
        ]
        fields.extend(
            (result.spans[name][0], value)
            for name, value in result.named.items()
        )

        return tuple(value for _, value in sorted(fields, key=lambda item: item[0]))


class RegexPattern(StepPattern):
    """Step pattern backed by a compiled regular expression."""

    def __init__(self, pattern: Pattern[str]) -> None:
        """Wrap a compiled regular expression.

        Args:
            pattern: Compiled expression matched with `fullmatch`.
        """
        super().__init__(pattern.pattern)

        self.pattern = pattern

    @property
    def key(self) -> str:
        """Return the expression wrapped in slashes."""
        return f'/{self.source}/'

    def match(self, text: str) -> tuple[Any, ...] | None:
        """Match the whole step text and return its groups."""
        if (result := self.pattern.fullmatch(text)) is None:
            return None

        return result.groups()


def compile_pattern(expression: 'str | Pattern[str] | StepPattern', *,
                    types: 'Mapping[str, TypeConverter] | None' = None) -> StepPattern:
    """Build a step pattern from an author-supplied expression.

    Args:
        expression: `parse` expression, compiled regular expression,
            or a ready pattern returned as is.
        types: Custom `parse` field types.

    Returns:
        Step pattern instance.

    Raises:
        TypeError: If the expression type is not supported.
    """
    if isinstance(expression, StepPattern):
        return expression

    if isinstance(expression, Pattern):
        return RegexPattern(expression)

    if isinstance(expression, str):
        return ParsePattern(expression, types=types)

    raise TypeError(f'Unsupported step pattern {expression!r}')
