"""Base Pydantic models for document, plan and event elements.

This module defines the foundational model classes used by the Gherkin
document tree, the resolved test plan, and lifecycle events. It enforces
immutability and strict schema validation to guarantee that parsed
documents and compiled plans are deterministic and safe to share.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pytest_cuke.names import Tag  # noqa: TC001


class SchemaModel(BaseModel):
    """Base immutable model for all document, plan and event elements.

    Design principles enforced by this model:
        - Immutability: elements cannot be modified after creation.
          This ensures deterministic plan building and prevents side
          effects while scenarios run concurrently.
        - Strict schema validation: unknown or extra fields are rejected
          to avoid silent errors caused by typos in converters.

    Arbitrary types are allowed because plan nodes carry user callbacks
    and compiled step patterns.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )


class DescribedMixin(SchemaModel):
    """Mixin providing element self-documentation.

    Holds the Gherkin keyword, the title and the free-form description
    of an element. These fields do not affect execution semantics and
    are used for matching scopes by name and for reporting.
    """

    keyword: str = Field(
        default='',
        title='Keyword',
        description='Gherkin keyword as written in the source, e.g. `Scenario`.',
    )

    name: str = Field(
        default='',
        title='Title',
        description='Short human-readable title of the element.',
    )

    description: str = Field(
        default='',
        title='Description',
        description='Detailed free-form description following the title line.',
    )


class TaggedMixin(SchemaModel):
    """Mixin providing Gherkin tags.

    Tags are kept in source order, including the leading `@`.
    """

    tags: tuple[Tag, ...] = Field(
        default=(),
        title='Tags',
        description='Tags attached to the element, e.g. `@smoke`.',
    )


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    This class serves as the root for all settings models responsible for
    resolving runtime configuration (for example, environment variables,
    CI-provided values, or pytest options).

    Design principles enforced by this model:
        - Immutability: resolved settings cannot be modified after creation.
        - Tolerant schema handling: unknown or extra fields are ignored.
          This allows the surrounding environment to contain unrelated
          variables without breaking configuration resolution.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )
