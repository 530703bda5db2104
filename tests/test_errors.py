"""Tests for error formatting."""

from os import linesep

from pytest_cuke.errors import (
    AmbiguousStepError,
    CukeError,
    ErrorContext,
    StepPending,
    StepRuntimeError,
)


def test_plain_message() -> None:
    """Errors without context render their message only."""
    assert f'{CukeError('Something went wrong')}' == 'Something went wrong'


def test_location_string() -> None:
    """Location, scenario and step are rendered when known."""
    error = CukeError('Failure', context=ErrorContext(
        filename='counter.feature',
        line_num=4,
        column_num=5,
        scenario='Increment',
        step_num=1,
        step_text='When I add 2',
    ))

    assert f'{error}'.splitlines() == [
        'Failure',
        '    in "counter.feature", line 4, column 5',
        '    in scenario "Increment"',
        '    on step 2: "When I add 2"',
    ]


def test_unknown_filename() -> None:
    """A placeholder is used when the source has no name."""
    error = CukeError('Failure', context=ErrorContext(line_num=1))

    assert f'{error}' == f'Failure{linesep}    in "<unicode string>", line 1{linesep}'


def test_resolution_snippet() -> None:
    """Resolution errors include a YAML snippet of the step."""
    error = AmbiguousStepError.for_step(
        "Ambiguous step 'Given a counter at 1' matches 2 patterns",
        text='Given a counter at 1',
        scenario='Increment',
        filename='counter.feature',
        line_num=3,
        step_num=0,
        patterns=['a counter at {value:d}', 'a counter at {value}'],
    )

    assert error.patterns == ('a counter at {value:d}', 'a counter at {value}')
    assert f'{error}'.splitlines() == [
        "Ambiguous step 'Given a counter at 1' matches 2 patterns",
        '    in "counter.feature", line 3',
        '    in scenario "Increment"',
        '    on step 1: "Given a counter at 1"',
        '         ...',
        '        scenario: Increment',
        '        step: Given a counter at 1',
        '        patterns:',
        "        - a counter at {value:d}",
        "        - a counter at {value}",
    ]


def test_snippet_hides_runtime_objects() -> None:
    """Opaque runtime values are replaced in snippets."""
    error = CukeError('Failure', context=ErrorContext(
        element={'step': 'Given a step', 'callback': object()},
        context={'count': 1},
    ))

    lines = f'{error}'.splitlines()

    assert '        callback: <runtime object>' in lines
    assert '        context:' in lines
    assert '          count: 1' in lines


def test_runtime_error() -> None:
    """Callback failures keep the original exception in the context."""
    base = ValueError('boom')
    error = StepRuntimeError.from_callback(
        base,
        phase='step',
        scenario='Increment',
        filename='counter.feature',
        line_num=4,
        step_text='When I add 2',
    )

    assert error.message == f"Runtime error in step{linesep}    ValueError('boom')"
    assert error.context is not None
    assert error.context['error'] is base
    assert 'in scenario "Increment"' in f'{error}'


def test_step_pending() -> None:
    """Pending signals carry a reason."""
    assert StepPending().reason == 'Step is pending'
    assert f'{StepPending('later')}' == 'later'
