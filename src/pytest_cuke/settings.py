"""Runtime configuration.

Settings are resolved from `CUKE_*` environment variables and from
explicit values (pytest options, ini keys or CLI arguments), explicit
values taking precedence.
"""

from collections.abc import Callable  # noqa: TC003
from typing import Any

from pydantic import Field, ImportString, field_validator
from pydantic_settings import SettingsConfigDict

from pytest_cuke.events import EventDispatcher, LoggingSubscriber
from pytest_cuke.models import SettingsModel
from pytest_cuke.plan import PlanBuilder
from pytest_cuke.scopes import ScopeRegistry
from pytest_cuke.tags import compile_tag_expression
from pytest_cuke.world import World


class CukeSettings(SettingsModel):
    """Settings of a pytest-cuke run."""

    model_config = SettingsConfigDict(
        env_prefix='CUKE_',
        frozen=True,
        extra='ignore',
    )

    registry: ImportString[Any] | None = Field(
        default=None,
        title='Scope registry',
        description='Import path of a `ScopeRegistry`, e.g. `features.steps:registry`.',
    )

    world: ImportString[Callable[[], Any]] | None = Field(
        default=None,
        title='World factory',
        description='Import path of a factory building per-scenario worlds.',
    )

    tags: str | None = Field(
        default=None,
        title='Tag filter',
        description='Tag expression selecting scenarios, e.g. `@smoke and not @slow`.',
    )

    timeout: float | None = Field(
        default=None,
        gt=0,
        title='Scenario timeout',
        description='Default scenario timeout in seconds.',
    )

    language: str = Field(
        default='en',
        title='Gherkin dialect',
        description='Default language of feature files without a `# language:` header.',
    )

    strict: bool = Field(
        default=False,
        title='Strict mode',
        description='Whether subscriber loading issues are fatal.',
    )

    log_events: bool = Field(
        default=False,
        title='Log events',
        description='Whether lifecycle events are written to the `pytest_cuke` logger.',
    )

    @field_validator('registry')
    @classmethod
    def check_registry(cls, value: Any) -> Any:  # noqa: ANN401
        """Ensure the imported object is a scope registry."""
        if value is not None and not isinstance(value, ScopeRegistry):
            raise ValueError(f'{value!r} is not a ScopeRegistry')

        return value

    @field_validator('tags')
    @classmethod
    def check_tags(cls, value: str | None) -> str | None:
        """Ensure the tag filter is a valid expression."""
        if value:
            compile_tag_expression(value)

        return value or None

    def make_registry(self) -> ScopeRegistry:
        """Return the configured registry, or a new empty one."""
        return self.registry or ScopeRegistry()

    def make_world_factory(self) -> 'Callable[[], Any]':
        """Return the configured world factory."""
        return self.world or World

    def make_builder(self, registry: ScopeRegistry) -> PlanBuilder:
        """Build a plan builder for a frozen registry."""
        return PlanBuilder(
            registry,
            tag_filter=self.tags,
            default_timeout=self.timeout,
        )

    def make_dispatcher(self) -> EventDispatcher:
        """Build an event dispatcher with configured subscribers.

        Raises:
            SubscriberError: If a subscriber fails to load on strict mode.
        """
        dispatcher = EventDispatcher(strict=self.strict)
        if self.log_events:
            dispatcher.subscribe(LoggingSubscriber())

        dispatcher.load_subscribers()

        return dispatcher
