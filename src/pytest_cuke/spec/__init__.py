"""Gherkin document tree and parser.

This package converts Gherkin sources into immutable document models.
The grammar itself is provided by the `gherkin-official` library; this
package only adapts its AST to the models used by the plan builder.
"""

from .nodes import (
    Background,
    DataTable,
    DocString,
    Document,
    Examples,
    ExamplesRow,
    Feature,
    Location,
    Rule,
    Scenario,
    ScenarioOutline,
    Step,
)
from .parser import DocumentParser

__all__ = (
    'Background',
    'DataTable',
    'DocString',
    'Document',
    'DocumentParser',
    'Examples',
    'ExamplesRow',
    'Feature',
    'Location',
    'Rule',
    'Scenario',
    'ScenarioOutline',
    'Step',
)
