"""Scope tree of step and hook declarations."""

from .patterns import ParsePattern, RegexPattern, StepPattern, compile_pattern
from .registry import HookDefinition, ScopeNode, ScopeRegistry, StepDefinition

__all__ = (
    'HookDefinition',
    'ParsePattern',
    'RegexPattern',
    'ScopeNode',
    'ScopeRegistry',
    'StepDefinition',
    'StepPattern',
    'compile_pattern',
)
