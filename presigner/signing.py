"""SigV4 signing of serialized requests.

The signer reads a SigningOperationConfig from the config bag and signs
either into headers or, for presigned requests, into query params. Time is
read from the injected time source rather than the wall clock, so a pinned
clock yields a reproducible signature.

SigningSetupPlugin is the upstream stage that puts the initial
SigningOperationConfig into the config bag. Presigning edits that entry;
it never creates one.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from botocore.auth import SIGV4_TIMESTAMP, UNSIGNED_PAYLOAD, SigV4Auth, SigV4QueryAuth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.utils import normalize_url_path

from presigner.components import RuntimeComponentsBuilder, RuntimePlugin, TimeSource
from presigner.config_bag import FrozenLayer, Layer
from presigner.errors import SigningError
from presigner.models import SignatureLocation, SigningOperationConfig, SigningOptions
from presigner.signable_body import SignableBody

logger = logging.getLogger(__name__)

# Services that sign the raw path instead of a normalized, double-encoded one
RAW_PATH_SERVICES = {"s3", "s3-object-lambda"}


class SigningSetupPlugin(RuntimePlugin):
    """Establishes the initial signing configuration for an operation.

    Args:
        region: Signing region, e.g. "us-east-1".
        service: Signing service name, e.g. "s3".
        options: Signing options. Defaults to header signing, with the URI
            handling the service expects.
    """

    def __init__(
        self,
        region: str,
        service: str,
        options: Optional[SigningOptions] = None,
    ):
        if options is None:
            raw_path = service in RAW_PATH_SERVICES
            options = SigningOptions(
                double_uri_encode=not raw_path,
                normalize_uri_path=not raw_path,
            )
        self.signing_config = SigningOperationConfig(
            region=region, service=service, signing_options=options
        )

    def config(self) -> Optional[FrozenLayer]:
        layer = Layer("SigningSetup")
        layer.store_put(self.signing_config.copy())
        return layer.freeze()

    def runtime_components(self) -> RuntimeComponentsBuilder:
        return RuntimeComponentsBuilder("SigningSetupPlugin")


class _ClockedSigningMixin:
    """Signs with a supplied timestamp and an optional payload override.

    normalize_uri_path removes dot segments from the canonical path and
    double_uri_encode percent-encodes the already encoded path once more.
    Each applies on its own; S3 turns both off.
    """

    def __init__(
        self,
        *args,
        timestamp: datetime,
        payload_override: Optional[SignableBody] = None,
        normalize_uri_path: bool = True,
        double_uri_encode: bool = True,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self._timestamp = timestamp.astimezone(timezone.utc)
        self._payload_override = payload_override
        self._normalize_uri_path = normalize_uri_path
        self._double_uri_encode = double_uri_encode

    def _normalize_url_path(self, path):
        if self._normalize_uri_path:
            path = normalize_url_path(path)
        if self._double_uri_encode:
            path = quote(path, safe="/~")
        return path

    def payload(self, request):
        if self._payload_override is not None:
            return self._payload_override.payload_hash()
        return super().payload(request)

    def add_auth(self, request):
        if self.credentials is None:
            raise SigningError("Unable to sign request without credentials")
        request.context["timestamp"] = self._timestamp.strftime(SIGV4_TIMESTAMP)
        self._modify_request_before_signing(request)
        canonical_request = self.canonical_request(request)
        logger.debug("CanonicalRequest:\n%s", canonical_request)
        string_to_sign = self.string_to_sign(request, canonical_request)
        logger.debug("StringToSign:\n%s", string_to_sign)
        signature = self.signature(string_to_sign, request)
        self._inject_signature_to_request(request, signature)


class HeaderSigV4Auth(_ClockedSigningMixin, SigV4Auth):
    """SigV4 with the signature in the Authorization header."""

    pass


class QuerySigV4Auth(_ClockedSigningMixin, SigV4QueryAuth):
    """SigV4 with the signature in the query string."""

    def payload(self, request):
        # Presigned URLs never carry the body they are used with
        if self._payload_override is not None:
            return self._payload_override.payload_hash()
        return UNSIGNED_PAYLOAD

    def _modify_request_before_signing(self, request):
        # Query signing moves a request body into the query string. A
        # presigned request carries no body; the payload is described by
        # the payload override instead.
        body, request.data = request.data, None
        try:
            super()._modify_request_before_signing(request)
        finally:
            request.data = body


class SigV4Signer:
    """Signs AWSRequests according to a SigningOperationConfig."""

    def sign(
        self,
        request: AWSRequest,
        credentials: Optional[Credentials],
        signing_config: SigningOperationConfig,
        time_source: TimeSource,
    ) -> AWSRequest:
        """Sign `request` in place and return it.

        Raises:
            SigningError: If credentials are missing or the expiry is not
                a whole, positive number of seconds.
        """
        if credentials is None:
            raise SigningError("Unable to sign request without credentials")

        options = signing_config.signing_options
        if options.omit_session_token and credentials.token:
            credentials = Credentials(credentials.access_key, credentials.secret_key)

        signer_kwargs = {
            "timestamp": time_source.now(),
            "payload_override": options.payload_override,
            "normalize_uri_path": options.normalize_uri_path,
            "double_uri_encode": options.double_uri_encode,
        }
        if options.signature_location == SignatureLocation.QUERY_PARAMS:
            signer = QuerySigV4Auth(
                credentials,
                signing_config.service,
                signing_config.region,
                expires=_expires_seconds(options),
                **signer_kwargs,
            )
        else:
            signer = HeaderSigV4Auth(
                credentials,
                signing_config.service,
                signing_config.region,
                **signer_kwargs,
            )

        logger.debug(
            "Signing %s %s (%s)",
            request.method,
            request.url,
            options.signature_location.value,
        )
        signer.add_auth(request)
        return request


def _expires_seconds(options: SigningOptions) -> int:
    if options.expires_in is None:
        return SigV4QueryAuth.DEFAULT_EXPIRES
    seconds = options.expires_in.total_seconds()
    if seconds <= 0 or seconds != int(seconds):
        raise SigningError(
            f"Presigned expiry must be a positive whole number of seconds, got {seconds}"
        )
    return int(seconds)
