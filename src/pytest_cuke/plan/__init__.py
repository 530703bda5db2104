"""Test plan compiled from documents and a scope registry."""

from .builder import PlanBuilder
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

__all__ = (
    'ExamplesNode',
    'FeatureNode',
    'GroupNode',
    'HookChain',
    'PlanBuilder',
    'PlanNode',
    'RuleNode',
    'ScenarioNode',
    'ScenarioOutlineNode',
    'StepBinding',
    'TestPlan',
)
