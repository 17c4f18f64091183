"""Request orchestration: run plugins, interceptors, serializer and signer.

The orchestrator assembles a pipeline from runtime plugins and drives one
request through it:

    read_before_execution
    modify_before_serialization
    serialize
    read_after_serialization
    modify_before_signing
    sign
    read_after_signing

Nothing is transmitted. The signed request is returned to the caller, so
the pipeline serves both presigning and callers that send requests
themselves (e.g. with httpx).
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

from presigner.components import (
    RuntimeComponents,
    RuntimeComponentsBuilder,
    RuntimePlugin,
    SystemTimeSource,
)
from presigner.config_bag import ConfigBag
from presigner.errors import SigningError
from presigner.interceptors import (
    InterceptorContext,
    Interceptors,
    InvocationIdInterceptor,
    RequestInfoInterceptor,
    UserAgentInterceptor,
)
from presigner.models import (
    HeaderSerializationSettings,
    PresignedRequest,
    PresigningConfig,
    SigningOperationConfig,
)
from presigner.presigning import PresigningRuntimePlugin
from presigner.retry import StandardRetryStrategy, run_with_strategy
from presigner.signable_body import SignableBody, UnsignedPayload
from presigner.signing import SigningSetupPlugin, SigV4Signer

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class OperationInput:
    """What to send: method, target URL, body and explicit headers."""

    method: str
    url: str
    body: bytes = b""
    content_type: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)


def default_runtime_components() -> RuntimeComponentsBuilder:
    """Components every pipeline starts from, before plugins are merged."""
    return (
        RuntimeComponentsBuilder("defaults")
        .with_interceptor(InvocationIdInterceptor())
        .with_interceptor(RequestInfoInterceptor())
        .with_interceptor(UserAgentInterceptor())
        .with_retry_strategy(StandardRetryStrategy(delays=(0.0,)))
        .with_time_source(SystemTimeSource())
    )


def serialize(operation_input: OperationInput, cfg: ConfigBag) -> AWSRequest:
    """Build the HTTP request for `operation_input`.

    Adds default Content-Length and Content-Type headers unless the
    HeaderSerializationSettings in `cfg` say to omit them.
    """
    settings = cfg.load(HeaderSerializationSettings) or HeaderSerializationSettings()
    headers = dict(operation_input.headers)
    lowered = {name.lower() for name in headers}

    if operation_input.body and not settings.omit_default_content_length:
        if "content-length" not in lowered:
            headers["Content-Length"] = str(len(operation_input.body))
    if operation_input.body and not settings.omit_default_content_type:
        if "content-type" not in lowered:
            headers["Content-Type"] = operation_input.content_type or DEFAULT_CONTENT_TYPE

    return AWSRequest(
        method=operation_input.method.upper(),
        url=operation_input.url,
        headers=headers,
        data=operation_input.body or None,
    )


class Orchestrator:
    """Drives requests through a pipeline assembled from runtime plugins.

    Args:
        plugins: Runtime plugins, in registration order. Later plugins'
            config layers and components take precedence.
        signer: Signer used for the signing stage.
    """

    def __init__(
        self,
        plugins: Sequence[RuntimePlugin],
        signer: Optional[SigV4Signer] = None,
    ):
        self.plugins = list(plugins)
        self.signer = signer or SigV4Signer()

    def config_bag(self) -> ConfigBag:
        """Build a fresh bag for one request from the plugins' layers."""
        cfg = ConfigBag.base()
        for plugin in self.plugins:
            layer = plugin.config()
            if layer is not None:
                cfg.push_layer(layer)
        return cfg

    def runtime_components(self) -> RuntimeComponents:
        builder = default_runtime_components()
        for plugin in self.plugins:
            builder.merge_from(plugin.runtime_components())
        return builder.build()

    def invoke(
        self, operation_input: OperationInput, credentials: Optional[Credentials]
    ) -> AWSRequest:
        """Run one request through the pipeline and return it signed.

        Raises:
            PresigningError: If a presigning hook fails. Never retried.
            SigningError: If the request cannot be signed.
        """
        components = self.runtime_components()
        interceptors = Interceptors(components.interceptors)
        attempt_number = 0

        def attempt() -> AWSRequest:
            nonlocal attempt_number
            attempt_number += 1
            cfg = self.config_bag()
            context = InterceptorContext(input=operation_input, attempt=attempt_number)
            return self._run_attempt(context, interceptors, components, cfg, credentials)

        if not components.retry_strategy.should_attempt_initial_request():
            raise SigningError("Retry strategy refused the initial attempt")
        return run_with_strategy(attempt, components.retry_strategy)

    def _run_attempt(
        self,
        context: InterceptorContext,
        interceptors: Interceptors,
        components: RuntimeComponents,
        cfg: ConfigBag,
        credentials: Optional[Credentials],
    ) -> AWSRequest:
        interceptors.invoke("read_before_execution", context, components, cfg)
        interceptors.invoke("modify_before_serialization", context, components, cfg)
        context.request = serialize(context.input, cfg)
        interceptors.invoke("read_after_serialization", context, components, cfg)
        interceptors.invoke("modify_before_signing", context, components, cfg)

        signing_config = cfg.load(SigningOperationConfig)
        if signing_config is None:
            raise SigningError("No signing configuration was established")
        self.signer.sign(context.request, credentials, signing_config, components.time_source)

        interceptors.invoke("read_after_signing", context, components, cfg)
        return context.request


def presign(
    operation_input: OperationInput,
    credentials: Credentials,
    region: str,
    service: str,
    presigning_config: PresigningConfig,
    payload_override: Optional[SignableBody] = None,
    plugins: Sequence[RuntimePlugin] = (),
) -> PresignedRequest:
    """Presign `operation_input`.

    Args:
        operation_input: The request to presign.
        credentials: Credentials to sign with.
        region: Signing region.
        service: Signing service, e.g. "s3".
        presigning_config: Start time and expiry.
        payload_override: What the signature covers. Defaults to an
            unsigned payload.
        plugins: Extra plugins, registered before the presigning plugin.

    Returns:
        The presigned request.

    Raises:
        PresigningError: If the pipeline was assembled without a signing
            setup stage.
        SigningError: If the request cannot be signed.
    """
    if payload_override is None:
        payload_override = UnsignedPayload()

    orchestrator = Orchestrator(
        [
            SigningSetupPlugin(region, service),
            *plugins,
            PresigningRuntimePlugin(presigning_config, payload_override),
        ]
    )
    request = orchestrator.invoke(operation_input, credentials)
    return PresignedRequest(
        method=request.method,
        uri=request.url,
        headers=dict(request.headers.items()),
        expires_at=presigning_config.expires_at,
    )
