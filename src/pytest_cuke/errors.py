"""Core exception hierarchy.

This module defines base error and warning types used across the library
to report configuration mistakes made while declaring scopes, document
syntax errors, step resolution failures, and runtime execution errors in
a structured and extensible way.

Errors fall into three tiers:
- configuration errors, fatal at registration time;
- resolution errors, scoped to a single scenario;
- execution errors, aborting the remaining phases of one scenario run.
"""

from datetime import date, datetime, timedelta
from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump

if TYPE_CHECKING:
    from collections.abc import Iterable
    from importlib.metadata import EntryPoint
    from typing import Self

SNIPPET_ELLIPSIS = f' ...{linesep}'
SNIPPET_SEPARATOR = f' ---{linesep}'
SNIPPET_INDENT = 2

FORMAT_REPLACER = '<runtime object>'
FORMAT_FILENAME = '<unicode string>'
FORMAT_INDENT = 4

MAPPINGS = (dict,)
SCALARS = (date, datetime, timedelta, str, bytes, int, float, bool)
SEQUENCES = (list, tuple, set)


class ErrorContext(TypedDict, total=False):
    """Container describing contextual information for error formatting.

    This structure aggregates optional metadata that may be available
    at different stages of parsing, plan building, or execution.

    All fields are optional; the formatter adapts output based on
    provided values.
    """

    #: Name of the source file where the error occurred.
    filename: str | None

    #: Line number in the source file (1-based).
    line_num: int | None
    #: Column number in the source file (1-based).
    column_num: int | None

    #: Title of the scenario being resolved or executed.
    scenario: str | None
    #: Number of the step where the error occurred (0-based).
    step_num: int | None
    #: Literal step text, keyword included.
    step_text: str | None

    #: Underlying exception that triggered formatting.
    error: Exception | None

    #: Runtime values available at the moment of failure.
    context: dict[str, Any] | None
    #: Element associated with the error.
    element: Any


class ErrorFormatter:
    """Utility class for formatting library errors.

    This formatter is responsible for producing human-readable
    error messages with optional source location and YAML-based
    contextual snippets.
    """

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location and data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        message += linesep
        message += cls.get_location_string(context, indent=FORMAT_INDENT)
        message += cls.get_snippet_string(context, indent=FORMAT_INDENT * 2)

        return message

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format source and execution location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string including filename, line,
            column, scenario and step when available.
        """
        indent = cls._ensure_indent(indent)

        filename = context.get('filename')
        if not filename:
            filename = FORMAT_FILENAME

        message = f'{indent}in "{filename}"'
        if (line_num := context.get('line_num')) is not None:
            message += f', line {line_num}'
            if (column_num := context.get('column_num')) is not None:
                message += f', column {column_num}'
        message += linesep

        if scenario := context.get('scenario'):
            message += f'{indent}in scenario "{scenario}"{linesep}'

        if (step_text := context.get('step_text')) is not None:
            message += f'{indent}on step'
            if (step_num := context.get('step_num')) is not None:
                message += f' {step_num + 1}'
            message += f': "{step_text}"{linesep}'

        return message

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the error context.

        Args:
            context: Error context containing element or runtime data.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet string, or an empty string
            if no snippet data is available.
        """
        indent = cls._ensure_indent(indent)

        if element := context.get('element'):
            return cls._make_snippet(element, context, indent)

        return ''

    @classmethod
    def _make_snippet(cls, element: dict[str, Any],
                      context: ErrorContext, indent: str) -> str:
        """Build a YAML-based snippet for an element.

        Args:
            element: Element associated with the error.
            context: Error context containing optional runtime values.
            indent: String indentation prefix.

        Returns:
            A formatted snippet string including context and element data.
        """
        snippet = f'{indent}{SNIPPET_ELLIPSIS}'

        if values := context.get('context'):
            snippet += cls._make_yaml({'context': {**values}}, indent)
            snippet += linesep
            snippet += f'{indent}{SNIPPET_SEPARATOR}'

        snippet += cls._make_yaml(element, indent)
        snippet += linesep

        return snippet

    @classmethod
    def _filter_unsafe(cls, value: Any) -> Any:  # noqa: ANN401
        """Recursively sanitize values for safe YAML serialization.

        Non-scalar and non-container objects are replaced with
        a placeholder to prevent leaking opaque runtime data.

        Args:
            value: Arbitrary value to sanitize.

        Returns:
            A YAML-safe representation of the value.
        """
        if value is None or isinstance(value, SCALARS):
            return value

        if isinstance(value, MAPPINGS):
            return {
                key: cls._filter_unsafe(item)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [
                cls._filter_unsafe(item)
                for item in value
            ]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Serialize a value to a YAML-formatted string.

        Args:
            value: Arbitrary value to serialize.
            indent: Optional indentation prefix.

        Returns:
            A YAML-formatted string representation of the value.
        """
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
            allow_unicode=True,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string.

        Empty or whitespace-only lines are omitted.

        Args:
            value: Original multi-line string.
            indent: Indentation prefix.

        Returns:
            Indented string.
        """
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation input.

        Args:
            indent: Indentation as string or number of spaces.

        Returns:
            A string consisting of spaces or the provided string.
        """
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class SubscriberWarning(UserWarning):
    """Warning emitted for non-fatal event subscriber issues.

    This warning is used when a subscriber cannot be loaded, or raises
    while handling an event, and the failure must not interrupt the run.
    """


class CukeError(Exception, ErrorFormatter):
    """Base exception for all pytest-cuke errors.

    All custom exceptions raised by the library inherit from this class
    to allow unified error handling by callers.
    """

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional location values.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return self.format(self.message, self.context)


class SubscriberError(CukeError):
    """Error raised for fatal subscriber loading failures.

    Raised when a subscriber entry point is invalid or fails to load
    while strict mode is enabled.
    """

    def __init__(self, message: str, *,
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Initialize a subscriber error.

        Args:
            message: Human-readable error description.
            entrypoint: Optional entry point associated with the error.
        """
        self.entrypoint = entrypoint

        super().__init__(message)


class ConfigurationError(CukeError):
    """Error raised for invalid runtime configuration.

    Configuration errors are fatal: the run stops before any plan is built.
    """


class ScopeConfigurationError(ConfigurationError):
    """Error raised for malformed scope declarations.

    Covers unbalanced scope nesting, illegal scope kinds, duplicated
    terminal scopes, hooks declared at a scope where they are meaningless,
    and mutations of a frozen registry.
    """


class SpecSyntaxError(CukeError):
    """Error raised when a Gherkin document cannot be parsed."""

    @classmethod
    def from_gherkin_error(cls, error: Exception, *,
                           filename: str | None = None) -> 'Self':
        """Create a syntax error from a Gherkin parser failure.

        Composite parser failures are flattened; the location of the
        first reported problem is used for the error context.

        Args:
            error: Exception raised by the Gherkin parser.
            filename: Name of the parsed source.

        Returns:
            SpecSyntaxError representing the parsing failure.
        """
        errors = getattr(error, 'errors', None) or [error]
        location = getattr(errors[0], 'location', None) or {}

        error_context = ErrorContext(
            filename=filename,
            line_num=location.get('line'),
            column_num=location.get('column'),
            error=error,
        )

        message = 'Invalid Gherkin'
        for item in errors:
            message += f'{linesep}{' ' * FORMAT_INDENT}{item}'

        return cls(message, context=error_context)


class ResolutionError(CukeError):
    """Error raised when a step cannot be bound to exactly one definition.

    Resolution errors are scoped to a single scenario: the scenario is
    marked broken and plan building continues.
    """

    #: Colliding step patterns, set for ambiguous matches.
    patterns: tuple[str, ...] = ()

    @classmethod
    def for_step(cls, message: str, *,  # noqa: PLR0913
                 text: str,
                 scenario: str,
                 filename: str | None = None,
                 line_num: int | None = None,
                 column_num: int | None = None,
                 step_num: int | None = None,
                 patterns: 'Iterable[str]' = ()) -> 'Self':
        """Create a resolution error for one step of a scenario.

        Args:
            message: Human-readable error message.
            text: Literal step text, keyword included.
            scenario: Scenario title.
            filename: Feature file name.
            line_num: Step line in the feature file.
            column_num: Step column in the feature file.
            step_num: Step position within the scenario.
            patterns: Colliding step patterns, if any.

        Returns:
            An initialized error with location context.
        """
        element: dict[str, Any] = {
            'scenario': scenario,
            'step': text,
        }
        if patterns := list(patterns):
            element['patterns'] = patterns

        error_context = ErrorContext(
            filename=filename,
            line_num=line_num,
            column_num=column_num,
            scenario=scenario,
            step_num=step_num,
            step_text=text,
            element=element,
        )

        error = cls(message, context=error_context)
        error.patterns = tuple(patterns)

        return error


class UndefinedStepError(ResolutionError):
    """Error raised when no step definition matches a step."""


class AmbiguousStepError(ResolutionError):
    """Error raised when more than one step definition matches a step."""


class StepRuntimeError(CukeError):
    """Error raised when a step or hook callback fails.

    Wraps non-assertion failures of user callbacks with the location
    of the failing step or hook.
    """

    @classmethod
    def from_callback(cls, error: Exception, *,
                      phase: str,
                      scenario: str | None = None,
                      filename: str | None = None,
                      line_num: int | None = None,
                      step_text: str | None = None) -> 'Self':
        """Create a runtime error from an exception raised by a callback.

        Args:
            error: Exception raised by the callback.
            phase: Failing phase (`step` or a hook kind).
            scenario: Scenario title, if any.
            filename: Feature file name.
            line_num: Line of the failing step or element.
            step_text: Literal step text for step failures.

        Returns:
            StepRuntimeError describing the failure.
        """
        error_context = ErrorContext(
            filename=filename,
            line_num=line_num,
            scenario=scenario,
            step_text=step_text,
            error=error,
        )

        message = f'Runtime error in {phase}'
        message += f'{linesep}{' ' * FORMAT_INDENT}{error!r}'

        return cls(message, context=error_context)


class ScenarioTimeoutError(CukeError):
    """Error raised when a scenario exceeds its timeout.

    Cancellation is cooperative: an in-flight synchronous callback
    cannot be aborted, the timeout is detected when it returns.
    """


class ResultStateError(CukeError):
    """Error raised when an execution result is completed twice."""


class StepPending(Exception):  # noqa: N818
    """Signal raised by a step to mark its scenario as pending.

    This is not a failure: the scenario ends with the `pending`
    status and its remaining steps are not executed.
    """

    def __init__(self, reason: str = 'Step is pending') -> None:
        """Initialize the pending signal.

        Args:
            reason: Human-readable reason reported by the runner.
        """
        self.reason = reason

        super().__init__(reason)
