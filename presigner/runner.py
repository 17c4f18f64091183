"""Presign runner: presigns one object key across configured providers.

Coordinates:
- Iterating through configured providers
- Resolving credentials and object URLs per provider
- Building the presigning config (start time, expiry)
- Reporter callbacks
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from presigner.components import SystemTimeSource, TimeSource
from presigner.errors import PresignerError
from presigner.models import (
    PresignResult,
    PresigningConfig,
    ProviderConfig,
    ResultStatus,
)
from presigner.orchestrator import OperationInput, presign
from presigner.session import object_url, resolve_credentials
from presigner.signable_body import SignableBody, UnsignedPayload

logger = logging.getLogger(__name__)

SIGNING_SERVICE = "s3"


@dataclass
class PresignSpec:
    """What to presign for every provider.

    Attributes:
        object_key: Key of the object within each provider's bucket.
        method: HTTP method the presigned request is for.
        expires: Validity window. None uses each provider's configured default.
        start_time: Anchor of the validity window. None means "now".
        payload: What the signature covers.
        headers: Headers the eventual caller will send. They are signed.
    """

    object_key: str
    method: str = "GET"
    expires: Optional[timedelta] = None
    start_time: Optional[datetime] = None
    payload: SignableBody = field(default_factory=UnsignedPayload)
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class RunResult:
    """Results of presigning across all providers."""

    results: dict[str, PresignResult]

    @property
    def all_ok(self) -> bool:
        return bool(self.results) and all(
            r.status == ResultStatus.OK for r in self.results.values()
        )

    def to_dict(self) -> dict[str, Any]:
        return {key: result.to_dict() for key, result in self.results.items()}


class PresignRunner:
    """Presigns a PresignSpec for each configured provider.

    Args:
        providers: Dictionary of provider configurations
        reporter: Optional reporter for progress callbacks
        time_source: Clock used when the spec has no start time
    """

    def __init__(
        self,
        providers: dict[str, ProviderConfig],
        reporter: Optional[Any] = None,
        time_source: Optional[TimeSource] = None,
    ):
        self.providers = providers
        self.reporter = reporter
        self.time_source = time_source or SystemTimeSource()

    def run(self, spec: PresignSpec) -> RunResult:
        # One start time for every provider in the run
        start_time = spec.start_time or self.time_source.now()
        results: dict[str, PresignResult] = {}

        for provider_key, config in self.providers.items():
            if self.reporter:
                self.reporter.on_presign_start(config.provider_name, spec.object_key)

            try:
                result = self._presign_for_provider(config, spec, start_time)
            except PresignerError as e:
                logger.warning("Presigning failed for %s: %s", provider_key, e)
                result = PresignResult(
                    provider_key=provider_key,
                    provider_name=config.provider_name,
                    object_key=spec.object_key,
                    status=ResultStatus.ERROR,
                    error_message=str(e),
                )

            results[provider_key] = result

            if self.reporter:
                self.reporter.on_presign_complete(result)

        if self.reporter:
            self.reporter.on_run_complete(results)

        return RunResult(results=results)

    def _presign_for_provider(
        self,
        config: ProviderConfig,
        spec: PresignSpec,
        start_time: datetime,
    ) -> PresignResult:
        expires = spec.expires
        if expires is None:
            expires = timedelta(seconds=config.presign_expires_seconds)
        presigning_config = PresigningConfig(start_time=start_time, expires=expires)

        request = presign(
            OperationInput(
                method=spec.method,
                url=object_url(config, spec.object_key),
                headers=dict(spec.headers),
            ),
            credentials=resolve_credentials(config),
            region=config.region_name,
            service=SIGNING_SERVICE,
            presigning_config=presigning_config,
            payload_override=spec.payload,
        )

        return PresignResult(
            provider_key=config.key,
            provider_name=config.provider_name,
            object_key=spec.object_key,
            status=ResultStatus.OK,
            request=request,
        )
