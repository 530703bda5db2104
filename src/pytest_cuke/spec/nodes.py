"""Immutable Gherkin document tree.

This module defines the models produced by the document parser: features,
rules, backgrounds, scenarios, scenario outlines with their examples,
and steps with optional data table or doc string payloads.

Every node is frozen once created. Outline expansion produces new
concrete `Scenario` models rather than mutating the outline.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Literal

from pydantic import Field

from pytest_cuke.models import DescribedMixin, SchemaModel, TaggedMixin
from pytest_cuke.names import PLACEHOLDER_PATTERN

if TYPE_CHECKING:
    from collections.abc import Iterator


def interpolate(text: str, values: Mapping[str, str]) -> str:
    """Substitute `<placeholder>` tokens with example values.

    Placeholders without a matching column are left verbatim.

    Args:
        text: Text containing placeholder tokens.
        values: Example row values keyed by column header.

    Returns:
        Text with every known placeholder replaced.
    """
    return PLACEHOLDER_PATTERN.sub(
        lambda match: values.get(match['name'], match[0]),
        text,
    )


class Location(SchemaModel):
    """Position of an element in its source document."""

    line: int = Field(
        ge=1,
        title='Line',
        description='1-based line number.',
    )

    column: int | None = Field(
        default=None,
        ge=1,
        title='Column',
        description='1-based column number, if known.',
    )


class DataTable(SchemaModel):
    """Data table attached to a step.

    Rows are stored as plain strings, exactly as written in the document.
    """

    kind: Literal['data_table'] = 'data_table'

    rows: tuple[tuple[str, ...], ...] = Field(
        default=(),
        title='Rows',
        description='Table cells, row by row.',
    )

    @property
    def header(self) -> tuple[str, ...]:
        """Return the first row of the table."""
        return self.rows[0] if self.rows else ()

    def records(self) -> list[dict[str, str]]:
        """Return the table body as a list of records keyed by the header."""
        return [
            dict(zip(self.header, row, strict=True))
            for row in self.rows[1:]
        ]

    def transpose(self) -> 'DataTable':
        """Return a table with rows and columns swapped."""
        return DataTable(rows=tuple(zip(*self.rows, strict=True)))

    def interpolate(self, values: Mapping[str, str]) -> 'DataTable':
        """Return a copy with placeholders substituted in every cell."""
        return DataTable(rows=tuple(
            tuple(interpolate(cell, values) for cell in row)
            for row in self.rows
        ))


class DocString(SchemaModel):
    """Doc string attached to a step."""

    kind: Literal['doc_string'] = 'doc_string'

    content: str = Field(
        default='',
        title='Content',
        description='Doc string content without delimiters.',
    )

    media_type: str | None = Field(
        default=None,
        title='Media type',
        description='Optional content type written after the opening delimiter.',
    )

    def interpolate(self, values: Mapping[str, str]) -> 'DocString':
        """Return a copy with placeholders substituted in the content."""
        return self.model_copy(update={'content': interpolate(self.content, values)})


class Step(SchemaModel):
    """Single Gherkin step."""

    kind: Literal['step'] = 'step'

    id: str = Field(
        title='Identifier',
        description='Identifier unique within the document.',
    )

    keyword: str = Field(
        title='Keyword',
        description='Step keyword as written, e.g. `Given `.',
    )

    keyword_type: str = Field(
        default='Unknown',
        title='Keyword type',
        description='Gherkin keyword class: Context, Action, Outcome, Conjunction or Unknown.',
    )

    text: str = Field(
        title='Text',
        description='Step text without the keyword.',
    )

    location: Location | None = None

    table: DataTable | None = None
    docstring: DocString | None = None

    @property
    def literal(self) -> str:
        """Return the step as written, keyword included."""
        return f'{self.keyword.strip()} {self.text}'

    @property
    def payload(self) -> DataTable | DocString | None:
        """Return the attached data table or doc string, if any."""
        return self.table or self.docstring

    def interpolate(self, values: Mapping[str, str]) -> 'Step':
        """Return a copy with placeholders substituted in text and payload."""
        return self.model_copy(update={
            'text': interpolate(self.text, values),
            'table': self.table.interpolate(values) if self.table else None,
            'docstring': self.docstring.interpolate(values) if self.docstring else None,
        })


class Background(DescribedMixin):
    """Background steps prepended to every scenario of a feature or rule."""

    kind: Literal['background'] = 'background'

    id: str
    location: Location | None = None
    steps: tuple[Step, ...] = ()


class ExamplesRow(SchemaModel):
    """Single row of an examples table."""

    id: str
    location: Location | None = None
    values: tuple[str, ...] = ()


class Examples(TaggedMixin, DescribedMixin):
    """Examples group of a scenario outline."""

    kind: Literal['examples'] = 'examples'

    id: str
    location: Location | None = None

    header: tuple[str, ...] = Field(
        default=(),
        title='Header',
        description='Column names used as placeholder names.',
    )

    rows: tuple[ExamplesRow, ...] = ()

    def values(self, row: ExamplesRow) -> dict[str, str]:
        """Map a row onto the header columns."""
        return dict(zip(self.header, row.values, strict=False))


class Scenario(TaggedMixin, DescribedMixin):
    """Concrete scenario, written directly or expanded from an outline."""

    kind: Literal['scenario'] = 'scenario'

    id: str
    location: Location | None = None
    steps: tuple[Step, ...] = ()


class ScenarioOutline(TaggedMixin, DescribedMixin):
    """Scenario template expanded once per examples row."""

    kind: Literal['scenario_outline'] = 'scenario_outline'

    id: str
    location: Location | None = None
    steps: tuple[Step, ...] = ()
    examples: tuple[Examples, ...] = ()

    def expand(self, examples: Examples) -> tuple[Scenario, ...]:
        """Expand one examples group into concrete scenarios.

        Each row yields a scenario whose name, step text, data tables
        and doc strings have their placeholders substituted with the
        row values. Tags of the outline and of the examples group are
        combined.

        Args:
            examples: Examples group belonging to this outline.

        Returns:
            Concrete scenarios, one per row, in row order.
        """
        scenarios = []
        for row in examples.rows:
            values = examples.values(row)
            scenarios.append(Scenario(
                id=row.id,
                keyword=self.keyword,
                name=interpolate(self.name, values),
                description=self.description,
                tags=(*self.tags, *examples.tags),
                location=row.location,
                steps=tuple(step.interpolate(values) for step in self.steps),
            ))

        return tuple(scenarios)


class Rule(TaggedMixin, DescribedMixin):
    """Business rule grouping scenarios inside a feature."""

    kind: Literal['rule'] = 'rule'

    id: str
    location: Location | None = None
    background: Background | None = None
    children: tuple[Scenario | ScenarioOutline, ...] = ()


class Feature(TaggedMixin, DescribedMixin):
    """Root element of a Gherkin document."""

    kind: Literal['feature'] = 'feature'

    language: str = 'en'
    location: Location | None = None
    background: Background | None = None
    children: tuple[Scenario | ScenarioOutline | Rule, ...] = ()

    def walk(self) -> 'Iterator[Scenario | ScenarioOutline]':
        """Iterate over all scenarios and outlines, rules flattened."""
        for child in self.children:
            if isinstance(child, Rule):
                yield from child.children
            else:
                yield child


class Document(SchemaModel):
    """Parsed Gherkin source."""

    kind: Literal['document'] = 'document'

    uri: str | None = Field(
        default=None,
        title='Source URI',
        description='Path or name of the parsed source, used in diagnostics.',
    )

    feature: Feature | None = None
