"""Runtime components and runtime plugins.

Runtime components are the shared collaborators a request pipeline needs
besides configuration: interceptors, a retry strategy and a time source.
Runtime plugins contribute both a config layer and a components builder;
the orchestrator merges them in registration order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from presigner.config_bag import FrozenLayer

if TYPE_CHECKING:
    from presigner.interceptors import Interceptor
    from presigner.retry import RetryStrategy


class TimeSource(ABC):
    """A source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware datetime."""
        pass


class SystemTimeSource(TimeSource):
    """Reads the real wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class StaticTimeSource(TimeSource):
    """A clock pinned to one instant. It never advances."""

    def __init__(self, instant: datetime):
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def __repr__(self) -> str:
        return f"StaticTimeSource({self._instant.isoformat()})"


@dataclass
class RuntimeComponents:
    """Components resolved for one request."""

    interceptors: list["Interceptor"]
    retry_strategy: "RetryStrategy"
    time_source: TimeSource


class RuntimeComponentsBuilder:
    """Collects runtime components contributed by a plugin.

    Args:
        name: Name of the contributor, used in error messages.
    """

    def __init__(self, name: str):
        self.name = name
        self.interceptors: list["Interceptor"] = []
        self.retry_strategy: Optional["RetryStrategy"] = None
        self.time_source: Optional[TimeSource] = None

    def with_interceptor(self, interceptor: "Interceptor") -> "RuntimeComponentsBuilder":
        self.interceptors.append(interceptor)
        return self

    def with_retry_strategy(
        self, retry_strategy: Optional["RetryStrategy"]
    ) -> "RuntimeComponentsBuilder":
        self.retry_strategy = retry_strategy
        return self

    def with_time_source(
        self, time_source: Optional[TimeSource]
    ) -> "RuntimeComponentsBuilder":
        self.time_source = time_source
        return self

    def merge_from(self, other: "RuntimeComponentsBuilder") -> "RuntimeComponentsBuilder":
        """Merge another builder into this one.

        Interceptors are appended. Retry strategy and time source are
        replaced only when `other` sets them.
        """
        self.interceptors.extend(other.interceptors)
        if other.retry_strategy is not None:
            self.retry_strategy = other.retry_strategy
        if other.time_source is not None:
            self.time_source = other.time_source
        return self

    def build(self) -> RuntimeComponents:
        """Resolve the final components.

        Raises:
            ValueError: If no retry strategy or time source was provided.
        """
        if self.retry_strategy is None:
            raise ValueError(f"{self.name}: a retry strategy is required")
        if self.time_source is None:
            raise ValueError(f"{self.name}: a time source is required")
        return RuntimeComponents(
            interceptors=list(self.interceptors),
            retry_strategy=self.retry_strategy,
            time_source=self.time_source,
        )

    def __repr__(self) -> str:
        return (
            f"RuntimeComponentsBuilder({self.name!r}, "
            f"interceptors={len(self.interceptors)})"
        )


class RuntimePlugin:
    """Contributes a config layer and runtime components to a pipeline."""

    def config(self) -> Optional[FrozenLayer]:
        """Return a frozen config layer, or None to contribute nothing."""
        return None

    def runtime_components(self) -> RuntimeComponentsBuilder:
        """Return the plugin's components builder.

        The builder is owned by the plugin and must not be mutated by callers.
        """
        return RuntimeComponentsBuilder(type(self).__name__)
