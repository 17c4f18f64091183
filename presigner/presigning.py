"""Presigning: turn a signed request into a presigned, query-signed one.

Registering PresigningRuntimePlugin with a pipeline makes its signing step
produce a time-limited request whose signature is carried in the query
string. The plugin:

- registers PresigningInterceptor, which edits the per-request config so
  the signer signs into query params with the configured expiry
- pins the clock to the presigning start time
- replaces the retry strategy with one that never retries
- disables interceptors that would stamp per-call metadata on the request
"""

import logging
from typing import Optional

from presigner.components import (
    RuntimeComponentsBuilder,
    RuntimePlugin,
    StaticTimeSource,
)
from presigner.config_bag import FrozenLayer, Layer
from presigner.errors import MissingSigningConfigError
from presigner.interceptors import (
    Interceptor,
    InvocationIdInterceptor,
    RequestInfoInterceptor,
    UserAgentInterceptor,
    disable_interceptor,
)
from presigner.models import (
    HeaderSerializationSettings,
    PresigningConfig,
    SignatureLocation,
    SigningOperationConfig,
)
from presigner.retry import NeverRetryStrategy
from presigner.signable_body import SignableBody

logger = logging.getLogger(__name__)

DISABLED_REASON = "presigning"


class PresigningInterceptor(Interceptor):
    """Tells the signer to sign into query params, with the presign expiry.

    Args:
        config: Start time and expiry of the presigned request.
        payload_override: What the signature covers in place of the body.
    """

    def __init__(self, config: PresigningConfig, payload_override: SignableBody):
        self._config = config
        self._payload_override = payload_override

    @property
    def config(self) -> PresigningConfig:
        return self._config

    @property
    def payload_override(self) -> SignableBody:
        return self._payload_override

    def modify_before_serialization(self, context, components, cfg):
        # The caller may send the presigned request with or without a body
        cfg.interceptor_state().store_put(
            HeaderSerializationSettings().omit_content_length().omit_content_type()
        )

    def modify_before_signing(self, context, components, cfg):
        signing_config = cfg.load(SigningOperationConfig)
        if signing_config is None:
            raise MissingSigningConfigError()

        signing_config = signing_config.copy()
        options = signing_config.signing_options
        options.expires_in = self._config.expires
        options.signature_location = SignatureLocation.QUERY_PARAMS
        options.payload_override = self._payload_override
        cfg.interceptor_state().store_put(signing_config)
        logger.debug(
            "Presigning %s request, expires in %s",
            signing_config.service,
            self._config.expires,
        )

    def __repr__(self) -> str:
        return (
            f"PresigningInterceptor(start_time={self._config.start_time.isoformat()}, "
            f"expires={self._config.expires}, payload_override={self._payload_override!r})"
        )


class PresigningRuntimePlugin(RuntimePlugin):
    """Registers the presigning interceptor, a fixed clock and no retries.

    Args:
        config: Start time and expiry of the presigned request.
        payload_override: What the signature covers in place of the body.
    """

    def __init__(self, config: PresigningConfig, payload_override: SignableBody):
        self._runtime_components = (
            RuntimeComponentsBuilder("PresigningRuntimePlugin")
            .with_interceptor(PresigningInterceptor(config, payload_override))
            .with_retry_strategy(NeverRetryStrategy())
            .with_time_source(StaticTimeSource(config.start_time))
        )

    def config(self) -> Optional[FrozenLayer]:
        layer = Layer("Presigning")
        layer.store_put(disable_interceptor(InvocationIdInterceptor, DISABLED_REASON))
        layer.store_put(disable_interceptor(RequestInfoInterceptor, DISABLED_REASON))
        layer.store_put(disable_interceptor(UserAgentInterceptor, DISABLED_REASON))
        return layer.freeze()

    def runtime_components(self) -> RuntimeComponentsBuilder:
        return self._runtime_components
