"""Interceptors: hook objects invoked at fixed points of request processing.

Extension points, in the order the orchestrator invokes them:

1. read_before_execution
2. modify_before_serialization
3. read_after_serialization
4. modify_before_signing
5. read_after_signing

Every hook defaults to a no-op, so an interceptor only implements the
points it cares about. An interceptor can be switched off for a request by
storing a DisableInterceptor marker for its type in the config bag.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Hashable, Optional, Type

from botocore.awsrequest import AWSRequest

from presigner.config_bag import ConfigBag

if TYPE_CHECKING:
    from presigner.components import RuntimeComponents

logger = logging.getLogger(__name__)

USER_AGENT_VERSION = "1.0.0"

HOOKS = (
    "read_before_execution",
    "modify_before_serialization",
    "read_after_serialization",
    "modify_before_signing",
    "read_after_signing",
)


@dataclass
class InterceptorContext:
    """In-flight state of one request.

    Attributes:
        input: The operation input the request is built from.
        request: The request being built. None before serialization.
        attempt: 1-indexed attempt number.
    """

    input: Any
    request: Optional[AWSRequest] = None
    attempt: int = 1


class Interceptor:
    """Base class for interceptors. All hooks are no-ops."""

    def read_before_execution(
        self, context: InterceptorContext, components: "RuntimeComponents", cfg: ConfigBag
    ) -> None:
        pass

    def modify_before_serialization(
        self, context: InterceptorContext, components: "RuntimeComponents", cfg: ConfigBag
    ) -> None:
        pass

    def read_after_serialization(
        self, context: InterceptorContext, components: "RuntimeComponents", cfg: ConfigBag
    ) -> None:
        pass

    def modify_before_signing(
        self, context: InterceptorContext, components: "RuntimeComponents", cfg: ConfigBag
    ) -> None:
        pass

    def read_after_signing(
        self, context: InterceptorContext, components: "RuntimeComponents", cfg: ConfigBag
    ) -> None:
        pass

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class DisableInterceptor:
    """Marker that switches off one interceptor type for a request."""

    target: Type[Interceptor]
    reason: str

    @property
    def storage_key(self) -> Hashable:
        return (DisableInterceptor, self.target)


def disable_interceptor(target: Type[Interceptor], reason: str) -> DisableInterceptor:
    """Build a marker disabling `target`, to be stored in a config layer."""
    return DisableInterceptor(target=target, reason=reason)


def disabled_reason(interceptor: Interceptor, cfg: ConfigBag) -> Optional[str]:
    """Return why `interceptor` is disabled, or None if it is enabled."""
    marker = cfg.load_key((DisableInterceptor, type(interceptor)))
    return marker.reason if marker is not None else None


def is_disabled(interceptor: Interceptor, cfg: ConfigBag) -> bool:
    return disabled_reason(interceptor, cfg) is not None


class Interceptors:
    """Dispatches hooks to a chain of interceptors, skipping disabled ones."""

    def __init__(self, interceptors: list[Interceptor]):
        self._interceptors = list(interceptors)

    def __iter__(self):
        return iter(self._interceptors)

    def __len__(self) -> int:
        return len(self._interceptors)

    def invoke(
        self,
        hook: str,
        context: InterceptorContext,
        components: "RuntimeComponents",
        cfg: ConfigBag,
    ) -> None:
        """Run `hook` on every enabled interceptor, in registration order.

        Raises:
            ValueError: If `hook` is not a known extension point.
            Exception: Whatever an interceptor raises, unchanged.
        """
        if hook not in HOOKS:
            raise ValueError(f"Unknown interceptor hook: {hook}")

        for interceptor in self._interceptors:
            reason = disabled_reason(interceptor, cfg)
            if reason is not None:
                logger.debug("Skipping %s.%s (disabled: %s)", interceptor.name, hook, reason)
                continue
            logger.debug("Running %s.%s", interceptor.name, hook)
            getattr(interceptor, hook)(context, components, cfg)


def set_header(request: AWSRequest, name: str, value: str) -> None:
    """Set a header, replacing any existing values for it."""
    # AWSRequest headers append on assignment
    del request.headers[name]
    request.headers[name] = value


class InvocationIdInterceptor(Interceptor):
    """Stamps a unique invocation id on every request."""

    HEADER = "amz-sdk-invocation-id"

    def modify_before_signing(self, context, components, cfg):
        set_header(context.request, self.HEADER, str(uuid.uuid4()))


class RequestInfoInterceptor(Interceptor):
    """Stamps the attempt number and attempt limit on every request."""

    HEADER = "amz-sdk-request"

    def modify_before_signing(self, context, components, cfg):
        max_attempts = components.retry_strategy.max_attempts
        set_header(
            context.request,
            self.HEADER,
            f"attempt={context.attempt}; max={max_attempts}",
        )


class UserAgentInterceptor(Interceptor):
    """Stamps the client user agent on every request.

    Args:
        product: Product token, e.g. "presigner".
        version: Product version.
        extras: Additional user agent tokens appended in order.
    """

    HEADER = "User-Agent"

    def __init__(
        self,
        product: str = "presigner",
        version: str = USER_AGENT_VERSION,
        extras: Optional[list[str]] = None,
    ):
        self.product = product
        self.version = version
        self.extras = list(extras or [])

    @property
    def user_agent(self) -> str:
        return " ".join([f"{self.product}/{self.version}", *self.extras])

    def modify_before_signing(self, context, components, cfg):
        set_header(context.request, self.HEADER, self.user_agent)
