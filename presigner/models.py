"""Data models for the presigner."""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

import httpx

from presigner.errors import PresigningConfigError
from presigner.retry import RetryStrategy, StandardRetryStrategy, run_with_strategy
from presigner.signable_body import SignableBody

if TYPE_CHECKING:
    from presigner.components import TimeSource

# SigV4 presigned URLs are valid for at most one week
MAX_PRESIGNED_EXPIRY = timedelta(days=7)


@dataclass
class ProviderConfig:
    """Configuration for an S3-compatible provider."""

    key: str
    provider_name: str
    endpoint_url: str
    aws_access_key_id: str
    aws_secret_access_key: str
    region_name: str
    bucket_name: str
    addressing_style: str = "path"
    presign_expires_seconds: int = 3600
    enabled: bool = True


@dataclass(frozen=True)
class PresigningConfig:
    """When a presigned request becomes valid and how long it stays valid.

    Args:
        start_time: Timezone-aware instant the signature is anchored to.
        expires: How long after start_time the request remains valid.

    Raises:
        PresigningConfigError: If start_time is naive, or expires is not
            positive or exceeds one week.
    """

    start_time: datetime
    expires: timedelta

    def __post_init__(self):
        if self.start_time.tzinfo is None:
            raise PresigningConfigError("start_time must be timezone-aware")
        if self.expires <= timedelta(0):
            raise PresigningConfigError(
                f"expires must be positive, got {self.expires}"
            )
        if self.expires > MAX_PRESIGNED_EXPIRY:
            raise PresigningConfigError(
                f"expires must be at most {MAX_PRESIGNED_EXPIRY}, got {self.expires}"
            )

    @classmethod
    def expires_in(
        cls,
        expires: timedelta,
        time_source: Optional["TimeSource"] = None,
    ) -> "PresigningConfig":
        """Build a config that starts now and lasts for `expires`.

        Args:
            expires: Validity window.
            time_source: Clock to read "now" from (system clock by default).
        """
        if time_source is None:
            start_time = datetime.now(timezone.utc)
        else:
            start_time = time_source.now()
        return cls(start_time=start_time, expires=expires)

    @property
    def expires_at(self) -> datetime:
        return self.start_time + self.expires


@dataclass(frozen=True)
class HeaderSerializationSettings:
    """Controls which default headers the serializer adds to a request."""

    omit_default_content_length: bool = False
    omit_default_content_type: bool = False

    def omit_content_length(self) -> "HeaderSerializationSettings":
        return replace(self, omit_default_content_length=True)

    def omit_content_type(self) -> "HeaderSerializationSettings":
        return replace(self, omit_default_content_type=True)


class SignatureLocation(Enum):
    """Where the signer places the signature."""

    HEADERS = "headers"
    QUERY_PARAMS = "query_params"


@dataclass
class SigningOptions:
    """Per-operation options read by the signer."""

    expires_in: Optional[timedelta] = None
    signature_location: SignatureLocation = SignatureLocation.HEADERS
    payload_override: Optional[SignableBody] = None
    double_uri_encode: bool = True
    normalize_uri_path: bool = True
    omit_session_token: bool = False


@dataclass
class SigningOperationConfig:
    """Signing configuration for a single operation.

    Lives in the config bag. The signing setup stage creates it, later
    stages edit a copy and store it back.
    """

    region: str
    service: str
    signing_options: SigningOptions = field(default_factory=SigningOptions)

    def copy(self) -> "SigningOperationConfig":
        """Return an independent copy. Payload bodies are shared, not copied."""
        return replace(self, signing_options=replace(self.signing_options))


@dataclass(frozen=True)
class PresignedRequest:
    """A signed request that can be sent later, by anyone holding it."""

    method: str
    uri: str
    headers: dict[str, str] = field(default_factory=dict)
    expires_at: Optional[datetime] = None

    def to_httpx_request(self, content: Any = None) -> httpx.Request:
        """Build an httpx request that sends this presigned request.

        Args:
            content: Body to attach, if the presigned operation takes one.
        """
        return httpx.Request(
            self.method, self.uri, headers=self.headers, content=content
        )

    def send(
        self,
        client: httpx.Client,
        content: Any = None,
        strategy: Optional[RetryStrategy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> httpx.Response:
        """Send this request with `client`, retrying transient failures.

        This is for whoever holds the URL; presigning itself never sends.
        Error responses raise httpx.HTTPStatusError, so 429 and 5xx answers
        are retried the same way as connection errors.

        Args:
            client: httpx client to send with.
            content: Body to attach, if the presigned operation takes one.
            strategy: Retry strategy. Defaults to StandardRetryStrategy.
            sleep: Called with each backoff delay.

        Raises:
            RetryExhausted: If every permitted attempt failed transiently.
            httpx.HTTPError: Non-transient failures, raised unchanged.
        """

        def attempt() -> httpx.Response:
            response = client.send(self.to_httpx_request(content))
            response.raise_for_status()
            return response

        return run_with_strategy(
            attempt, strategy or StandardRetryStrategy(), sleep=sleep
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "method": self.method,
            "uri": self.uri,
            "headers": dict(self.headers),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


class ResultStatus(Enum):
    """Status of a presign operation."""

    OK = "ok"
    ERROR = "error"


@dataclass
class PresignResult:
    """Result of presigning one object for one provider."""

    provider_key: str
    provider_name: str
    object_key: str
    status: ResultStatus
    request: Optional[PresignedRequest] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "name": self.provider_name,
            "key": self.object_key,
            "status": self.status.value,
        }
        if self.request is not None:
            data["request"] = self.request.to_dict()
        if self.error_message:
            data["error"] = self.error_message
        return data
