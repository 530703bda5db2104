"""Tests for the pytest plugin."""

import pytest

STEPS = '''
from pytest_cuke import ScopeRegistry, StepPending

registry = ScopeRegistry()
calls = []


@registry.given('a counter at {value:d}')
def counter(value, world):
    world.counter = value


@registry.when('I add {value:d}')
def add(value, world):
    world.counter += value


@registry.then('the counter is {value:d}')
def check(value, world):
    assert world.counter == value


@registry.then('it is not implemented')
def pending(world):
    raise StepPending('later')


@registry.then('setup ran once')
def setup_once(world):
    assert calls == ['setup']


with registry.scope('feature', 'Hooks'):
    @registry.setup
    def connect():
        calls.append('setup')
'''

COUNTER_FEATURE = '''
Feature: Counter
  @smoke
  Scenario: Increment
    Given a counter at 1
    When I add 2
    Then the counter is 3

  Scenario: Wrong
    Given a counter at 1
    Then the counter is 5

  @skip
  Scenario: Skipped
    Given a counter at 1

  Scenario: Pending
    Given a counter at 1
    Then it is not implemented

  Scenario: Undefined
    Given an undefined step
'''

HOOKS_FEATURE = '''
Feature: Hooks
  Scenario: First
    Then setup ran once

  Scenario: Second
    Then setup ran once

  Scenario: Third
    Then setup ran once
'''


@pytest.fixture
def project(pytester: pytest.Pytester) -> pytest.Pytester:
    """Provide a project with a step registry configured in the ini file."""
    pytester.syspathinsert()
    pytester.makepyfile(steps=STEPS)
    pytester.makeini('[pytest]\ncuke_registry = steps:registry\n')
    return pytester


def test_run_features(project: pytest.Pytester) -> None:
    """Scenarios are collected and reported with their outcomes."""
    project.makefile('.feature', counter=COUNTER_FEATURE)

    result = project.runpytest('-rs')

    result.assert_outcomes(passed=1, failed=2, skipped=2)
    result.stdout.fnmatch_lines([
        "*Undefined step 'Given an undefined step'*",
    ])
    result.stdout.fnmatch_lines([
        '*Pending: later*',
    ])
    result.stdout.fnmatch_lines([
        '*Skipped by @skip*',
    ])


def test_collect_only(project: pytest.Pytester) -> None:
    """Features and scenarios become nested collection nodes."""
    project.makefile('.feature', counter=COUNTER_FEATURE)

    result = project.runpytest('--collect-only')

    result.stdout.fnmatch_lines([
        '*<FeatureFile counter.feature>',
        '*<SuiteCollector Counter>',
        '*<ScenarioItem Increment>',
        '*<ScenarioItem Wrong>',
    ])


def test_tag_filter_option(project: pytest.Pytester) -> None:
    """Scenarios outside the tag filter are skipped."""
    project.makefile('.feature', counter=COUNTER_FEATURE)

    result = project.runpytest('--cuke-tags=@smoke')

    result.assert_outcomes(passed=1, skipped=4)


def test_setup_hooks_once(project: pytest.Pytester) -> None:
    """Group setup hooks run once for the whole feature."""
    project.makefile('.feature', hooks=HOOKS_FEATURE)

    result = project.runpytest()

    result.assert_outcomes(passed=3)


def test_registry_from_environment(pytester: pytest.Pytester,
                                   monkeypatch: pytest.MonkeyPatch) -> None:
    """The registry may be configured through the environment."""
    pytester.syspathinsert()
    pytester.makepyfile(steps=STEPS)
    pytester.makefile('.feature', hooks=HOOKS_FEATURE)
    monkeypatch.setenv('CUKE_REGISTRY', 'steps:registry')

    result = pytester.runpytest()

    result.assert_outcomes(passed=3)


def test_without_registry(pytester: pytest.Pytester) -> None:
    """Without a registry every scenario is broken."""
    pytester.makefile('.feature', hooks=HOOKS_FEATURE)

    result = pytester.runpytest()

    result.assert_outcomes(failed=3)


def test_syntax_error(project: pytest.Pytester) -> None:
    """Invalid Gherkin is a collection error."""
    project.makefile('.feature', broken='Given a lonely step\n')

    result = project.runpytest()

    result.assert_outcomes(errors=1)
    result.stdout.fnmatch_lines([
        '*Invalid Gherkin*',
    ])
