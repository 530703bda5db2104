"""Gherkin parser integration.

This module wraps the `gherkin-official` parser and converts the AST it
produces (plain dictionaries) into the immutable document models defined
in `pytest_cuke.spec.nodes`.

The parser is the only component aware of the AST layout; the rest of
the library works with validated models.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any

from gherkin.errors import ParserError
from gherkin.parser import Parser
from gherkin.token_matcher import TokenMatcher
from gherkin.token_scanner import TokenScanner

from pytest_cuke.errors import SpecSyntaxError

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

if TYPE_CHECKING:
    from io import TextIOBase

#: Raw AST mapping produced by the Gherkin parser.
type RawNode = dict[str, Any]


class DocumentParser:
    """Gherkin source parser producing immutable document trees.

    The parser is stateless between calls and may be shared by all
    collectors of a test session.
    """

    def __init__(self, language: str = 'en') -> None:
        """Initialize the document parser.

        Args:
            language: Default Gherkin dialect, overridden per document
                by a `# language:` header.
        """
        self.language = language

    def parse(self, content: 'TextIOBase | str', *,
              uri: str | None = None) -> Document:
        """Parse Gherkin source into a document tree.

        Args:
            content: Gherkin source as a string or file-like object.
            uri: Name of the source used in diagnostics.

        Returns:
            The parsed document. Its `feature` is `None` for empty sources.

        Raises:
            SpecSyntaxError: If the source is not valid Gherkin.
        """
        if not isinstance(content, str):
            content = content.read()

        try:
            matcher = TokenMatcher(self.language)
            ast = Parser().parse(TokenScanner(content), matcher)

        except ParserError as base:
            raise SpecSyntaxError.from_gherkin_error(base, filename=uri) from base

        feature = ast.get('feature')

        return Document(
            uri=uri,
            feature=self.convert_feature(feature) if feature else None,
        )

    def parse_file(self, path: Path | str) -> Document:
        """Read and parse a `.feature` file.

        Args:
            path: Path to the feature file.

        Returns:
            The parsed document with the path as URI.

        Raises:
            SpecSyntaxError: If the file is not valid Gherkin.
        """
        path = Path(path)
        with path.open('rt', encoding='utf-8') as content:
            return self.parse(content, uri=f'{path}')

    @classmethod
    def convert_feature(cls, node: RawNode) -> Feature:
        """Convert a feature AST node."""
        background = None
        children: list[Scenario | ScenarioOutline | Rule] = []

        for child in node.get('children', ()):
            if 'background' in child:
                background = cls.convert_background(child['background'])
            elif 'scenario' in child:
                children.append(cls.convert_scenario(child['scenario']))
            elif 'rule' in child:
                children.append(cls.convert_rule(child['rule']))

        return Feature(
            keyword=node.get('keyword', ''),
            name=node.get('name', ''),
            description=cls.convert_description(node),
            tags=cls.convert_tags(node),
            language=node.get('language', 'en'),
            location=cls.convert_location(node),
            background=background,
            children=tuple(children),
        )

    @classmethod
    def convert_rule(cls, node: RawNode) -> Rule:
        """Convert a rule AST node."""
        background = None
        children: list[Scenario | ScenarioOutline] = []

        for child in node.get('children', ()):
            if 'background' in child:
                background = cls.convert_background(child['background'])
            elif 'scenario' in child:
                children.append(cls.convert_scenario(child['scenario']))

        return Rule(
            id=node.get('id', ''),
            keyword=node.get('keyword', ''),
            name=node.get('name', ''),
            description=cls.convert_description(node),
            tags=cls.convert_tags(node),
            location=cls.convert_location(node),
            background=background,
            children=tuple(children),
        )

    @classmethod
    def convert_background(cls, node: RawNode) -> Background:
        """Convert a background AST node."""
        return Background(
            id=node.get('id', ''),
            keyword=node.get('keyword', ''),
            name=node.get('name', ''),
            description=cls.convert_description(node),
            location=cls.convert_location(node),
            steps=tuple(cls.convert_step(step) for step in node.get('steps', ())),
        )

    @classmethod
    def convert_scenario(cls, node: RawNode) -> Scenario | ScenarioOutline:
        """Convert a scenario AST node.

        Scenarios with examples are outlines, whatever keyword is used.
        """
        fields = {
            'id': node['id'],
            'keyword': node.get('keyword', ''),
            'name': node.get('name', ''),
            'description': cls.convert_description(node),
            'tags': cls.convert_tags(node),
            'location': cls.convert_location(node),
            'steps': tuple(cls.convert_step(step) for step in node.get('steps', ())),
        }

        if examples := node.get('examples'):
            return ScenarioOutline(
                **fields,
                examples=tuple(cls.convert_examples(item) for item in examples),
            )

        return Scenario(**fields)

    @classmethod
    def convert_examples(cls, node: RawNode) -> Examples:
        """Convert an examples AST node."""
        header = node.get('tableHeader') or {}

        return Examples(
            id=node['id'],
            keyword=node.get('keyword', ''),
            name=node.get('name', ''),
            description=cls.convert_description(node),
            tags=cls.convert_tags(node),
            location=cls.convert_location(node),
            header=cls.convert_cells(header),
            rows=tuple(
                ExamplesRow(
                    id=row['id'],
                    location=cls.convert_location(row),
                    values=cls.convert_cells(row),
                )
                for row in node.get('tableBody') or ()
            ),
        )

    @classmethod
    def convert_step(cls, node: RawNode) -> Step:
        """Convert a step AST node with its optional payload."""
        table = None
        if data_table := node.get('dataTable'):
            table = DataTable(rows=tuple(
                cls.convert_cells(row)
                for row in data_table.get('rows', ())
            ))

        docstring = None
        if doc_string := node.get('docString'):
            docstring = DocString(
                content=doc_string.get('content', ''),
                media_type=doc_string.get('mediaType') or None,
            )

        return Step(
            id=node['id'],
            keyword=node.get('keyword', ''),
            keyword_type=node.get('keywordType') or 'Unknown',
            text=node.get('text', ''),
            location=cls.convert_location(node),
            table=table,
            docstring=docstring,
        )

    @staticmethod
    def convert_cells(node: RawNode) -> tuple[str, ...]:
        """Extract cell values of a table row node."""
        return tuple(cell.get('value', '') for cell in node.get('cells', ()))

    @staticmethod
    def convert_tags(node: RawNode) -> tuple[str, ...]:
        """Extract tag literals of a node."""
        return tuple(tag['name'] for tag in node.get('tags', ()))

    @staticmethod
    def convert_description(node: RawNode) -> str:
        """Extract a normalized description of a node."""
        return (node.get('description') or '').strip()

    @staticmethod
    def convert_location(node: RawNode) -> Location | None:
        """Extract the location of a node, if present."""
        if not (location := node.get('location')):
            return None

        return Location(
            line=location['line'],
            column=location.get('column'),
        )
